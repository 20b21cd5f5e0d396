"""Vector store data models."""

from typing import Any

from pydantic import BaseModel, Field


class IndexedItem(BaseModel):
    """A record written to the vector store.

    Attributes:
        id: Stable identifier, ``"{kind}:{entity_id}"``.
        vector: The embedding vector.
        metadata: Display fields stored with the vector. Never used for ranking.
    """

    id: str = Field(description="Unique record identifier")
    vector: list[float] = Field(description="Embedding vector")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Display metadata",
    )


class VectorMatch(BaseModel):
    """Result from a vector similarity query.

    Attributes:
        id: Record identifier.
        score: Cosine similarity (higher is more similar).
        metadata: Stored display metadata.
    """

    id: str = Field(description="Record identifier")
    score: float = Field(description="Similarity score")
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        description="Record metadata",
    )

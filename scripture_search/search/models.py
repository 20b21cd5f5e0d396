"""Search request and response models.

Response models serialize with camelCase keys.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from scripture_search.keyword.models import SearchResult


class SearchMode(str, Enum):
    """Which scorer produced an entity search response."""

    SEMANTIC = "semantic"
    KEYWORD = "keyword"


class QueryRequest(BaseModel):
    """A validated verse search request."""

    text: str = Field(description="Query text")
    k: int = Field(ge=1, description="Number of results")
    model: str = Field(description="Embedding model")


class VerseSearchResult(BaseModel):
    """One verse in a semantic search response."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    entity_id: int = Field(description="Verse identifier")
    book_id: int
    book_name: str
    chapter: int
    verse_number: int
    reference: str = Field(description="e.g. John 3:16")
    url: str
    text: str
    score: float = Field(description="Cosine similarity")


class VerseSearchResponse(BaseModel):
    """Envelope for verse search results."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str
    model: str
    k: int
    results: list[VerseSearchResult] = Field(default_factory=list)


class EntitySearchResponse(BaseModel):
    """Envelope for entity search results."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    query: str
    mode: SearchMode
    fallback_reason: str | None = Field(
        default=None,
        description="Why semantic search fell back to keyword scoring",
    )
    total_results: int
    results: list[SearchResult] = Field(default_factory=list)
    grouped: dict[str, list[SearchResult]] = Field(
        default_factory=dict,
        description="Results grouped by kind",
    )

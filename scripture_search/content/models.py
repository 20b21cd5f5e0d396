"""Content data models.

Entities are owned by the content-management side of the site. This package
only reads them, except for verse embeddings which it writes.
"""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator


class EntityKind(str, Enum):
    """Kinds of searchable content."""

    VERSE = "verse"
    SITUATION = "situation"
    PRAYER_POINT = "prayer_point"
    PLACE = "place"
    PROFESSION = "profession"
    NAME = "name"


# Route prefix per kind; verses use a book/chapter/verse slug.
URL_PREFIXES: dict[EntityKind, str] = {
    EntityKind.VERSE: "/verse",
    EntityKind.SITUATION: "/bible-verses-for",
    EntityKind.PRAYER_POINT: "/prayer-points",
    EntityKind.PLACE: "/bible-places",
    EntityKind.PROFESSION: "/prayers-for-professions",
    EntityKind.NAME: "/meaning-of",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SearchableEntity(BaseModel):
    """A published content record that can be searched.

    Attributes:
        id: Stable identifier within its kind.
        kind: Content kind.
        slug: URL slug.
        title: Display title (or name).
        description: Short description.
        body: Long-form content, if any.
        extra_fields: Extra kind-specific text fields.
        published: Whether the record is publicly visible.
        priority: Editorial priority (higher first).
        updated_at: Last modification time.
    """

    id: str = Field(description="Stable identifier")
    kind: EntityKind = Field(description="Content kind")
    slug: str = Field(description="URL slug")
    title: str = Field(description="Display title")
    description: str = Field(default="", description="Short description")
    body: str | None = Field(default=None, description="Long-form content")
    extra_fields: dict[str, str] = Field(
        default_factory=dict,
        description="Extra kind-specific text fields",
    )
    published: bool = Field(default=True, description="Publicly visible")
    priority: int = Field(default=0, description="Editorial priority")
    updated_at: datetime = Field(
        default_factory=_utcnow,
        description="Last modification time",
    )

    @property
    def url(self) -> str:
        """Canonical site URL for the entity."""
        return f"{URL_PREFIXES[self.kind]}/{self.slug}"

    @property
    def index_id(self) -> str:
        """Identifier used in the vector store."""
        return f"{self.kind.value}:{self.id}"

    def text_field(self, name: str) -> str | None:
        """Look up a text field by name, core attributes first."""
        if name in ("title", "description", "body"):
            return getattr(self, name)
        return self.extra_fields.get(name)


# Translation columns in the order their text is preferred.
TRANSLATION_PRIORITY: tuple[str, ...] = (
    "text_kjv",
    "text_web",
    "text_asv",
    "text_rv",
    "text_bl",
)


class VerseRecord(BaseModel):
    """A single Bible verse with its available translations."""

    id: int = Field(description="Numeric verse identifier")
    book_id: int = Field(description="Book identifier")
    book_name: str = Field(description="Book display name")
    book_slug: str = Field(description="Book URL slug")
    chapter: int = Field(ge=1, description="Chapter number")
    verse_number: int = Field(ge=1, description="Verse number")
    text_kjv: str | None = None
    text_web: str | None = None
    text_asv: str | None = None
    text_rv: str | None = None
    text_bl: str | None = None
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def reference(self) -> str:
        """Human-readable reference, e.g. ``John 3:16``."""
        return f"{self.book_name} {self.chapter}:{self.verse_number}"

    @property
    def slug(self) -> str:
        return f"{self.book_slug}/{self.chapter}/{self.verse_number}"

    def raw_text(self) -> str | None:
        """First non-blank translation in priority order."""
        for attr in TRANSLATION_PRIORITY:
            text = getattr(self, attr)
            if text is not None and text.strip():
                return text
        return None

    def to_entity(self, text: str) -> SearchableEntity:
        """Present the verse as a searchable entity."""
        return SearchableEntity(
            id=str(self.id),
            kind=EntityKind.VERSE,
            slug=self.slug,
            title=self.reference,
            description=text,
            updated_at=self.updated_at,
        )


class VerseEmbeddingRecord(BaseModel):
    """Stored embedding for a verse, one per verse."""

    verse_id: int = Field(description="Owning verse identifier")
    model: str = Field(description="Model that produced the vector")
    dims: int = Field(description="Vector dimensionality")
    vector: list[float] = Field(description="Embedding vector")
    content_hash: str = Field(description="Hash of model and normalized text")
    updated_at: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _check_dims(self) -> "VerseEmbeddingRecord":
        if self.dims != len(self.vector):
            raise ValueError(
                f"dims ({self.dims}) does not match vector length ({len(self.vector)})"
            )
        return self


class CandidateVector(BaseModel):
    """A pre-computed vector considered for one query.

    Attributes:
        candidate_id: Stable identifier used for tie-breaking.
        vector: Stored embedding.
        display: Fields needed to render the result.
    """

    candidate_id: int | str = Field(description="Stable candidate identifier")
    vector: list[float] = Field(description="Stored embedding")
    display: dict[str, Any] = Field(
        default_factory=dict,
        description="Display fields joined into results",
    )


class ContentSnapshot(BaseModel):
    """Serializable snapshot of the content tables used by this service."""

    entities: list[SearchableEntity] = Field(default_factory=list)
    verses: list[VerseRecord] = Field(default_factory=list)
    verse_embeddings: list[VerseEmbeddingRecord] = Field(default_factory=list)

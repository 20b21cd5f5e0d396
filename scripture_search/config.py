"""Application configuration using Pydantic Settings.

All configuration is loaded from environment variables and resolved once per
process. No secrets are hardcoded.
"""

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from scripture_search.content.models import EntityKind


class Environment(str, Enum):
    """Application environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class EmbeddingProvider(str, Enum):
    """Embedding provider variants."""

    MOCK = "mock"
    HTTP = "http"


class VectorBackend(str, Enum):
    """Vector store variants.

    ``NONE`` means no vector backend; callers fall back to keyword search.
    """

    PINECONE = "pinecone"
    QDRANT = "qdrant"
    NONE = "none"


class EmbeddingSettings(BaseSettings):
    """Embedding provider configuration.

    The HTTP provider speaks the OpenAI-compatible ``/embeddings`` API.
    """

    model_config = SettingsConfigDict(env_prefix="EMBEDDING_")

    provider: EmbeddingProvider = Field(
        default=EmbeddingProvider.MOCK,
        description="Embedding provider (mock needs no network)",
    )
    base_url: str = Field(
        default="https://api.openai.com/v1",
        description="Embedding API base URL",
    )
    model: str = Field(
        default="text-embedding-3-small",
        description="Embedding model name",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="API key for the HTTP provider",
    )
    dimensions: int = Field(
        default=1536,
        ge=1,
        description="Vector dimensions produced by the mock provider",
    )
    batch_size: int = Field(
        default=100,
        ge=1,
        description="Texts per embedding request",
    )
    max_input_chars: int = Field(
        default=8000,
        ge=1,
        description="Inputs longer than this are truncated",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds",
    )


class VectorStoreSettings(BaseSettings):
    """Vector backend selector."""

    model_config = SettingsConfigDict(env_prefix="VECTOR_")

    provider: VectorBackend = Field(
        default=VectorBackend.NONE,
        description="Vector backend (none falls back to keyword search)",
    )


class PineconeSettings(BaseSettings):
    """Pinecone managed index configuration."""

    model_config = SettingsConfigDict(env_prefix="PINECONE_")

    api_key: SecretStr | None = Field(
        default=None,
        description="Pinecone API key",
    )
    index_host: str = Field(
        default="",
        description="Index data-plane host, e.g. https://my-index-abc.svc.pinecone.io",
    )
    namespace: str = Field(
        default="",
        description="Index namespace",
    )
    batch_size: int = Field(
        default=100,
        ge=1,
        le=100,
        description="Vectors per upsert request",
    )
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Request timeout in seconds",
    )


class QdrantSettings(BaseSettings):
    """Qdrant cluster configuration."""

    model_config = SettingsConfigDict(env_prefix="QDRANT_")

    url: str = Field(
        default="http://localhost:6333",
        description="Qdrant server URL",
    )
    api_key: SecretStr | None = Field(
        default=None,
        description="Qdrant API key (optional for local)",
    )
    collection_name: str = Field(
        default="scripture_search",
        description="Collection holding indexed content",
    )
    batch_size: int = Field(
        default=1000,
        ge=1,
        le=1000,
        description="Points per upsert request",
    )
    timeout: int = Field(
        default=30,
        gt=0,
        description="Request timeout in seconds",
    )


class SearchSettings(BaseSettings):
    """Query path limits and defaults."""

    model_config = SettingsConfigDict(env_prefix="SEARCH_")

    default_model: str = Field(
        default="text-embedding-3-small",
        description="Model used when a query does not name one",
    )
    default_k: int = Field(default=10, ge=1, description="Default result count")
    max_k: int = Field(default=20, ge=1, description="Hard ceiling on k")
    min_query_length: int = Field(default=3, ge=1)
    max_query_length: int = Field(default=300, ge=1)
    candidate_limit: int = Field(
        default=5000,
        ge=1,
        description="Maximum candidate vectors ranked per query",
    )
    max_limit: int = Field(
        default=100,
        ge=1,
        description="Hard ceiling on the entity search limit",
    )
    provider_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Timeout for each provider or store call, in seconds",
    )
    corpus_path: Path | None = Field(
        default=None,
        description="JSON content snapshot loaded at startup",
    )

    @model_validator(mode="after")
    def _check_bounds(self) -> "SearchSettings":
        if self.default_k > self.max_k:
            raise ValueError("default_k must not exceed max_k")
        if self.min_query_length > self.max_query_length:
            raise ValueError("min_query_length must not exceed max_query_length")
        return self


def _default_base_scores() -> dict[EntityKind, int]:
    return {
        EntityKind.PLACE: 65,
        EntityKind.SITUATION: 60,
        EntityKind.PRAYER_POINT: 55,
        EntityKind.NAME: 55,
        EntityKind.PROFESSION: 50,
        EntityKind.VERSE: 40,
    }


class KeywordSettings(BaseSettings):
    """Keyword fallback scoring constants.

    Base scores are per kind; bonuses are added per match tier.
    """

    model_config = SettingsConfigDict(env_prefix="KEYWORD_")

    base_scores: dict[EntityKind, int] = Field(default_factory=_default_base_scores)
    exact_bonus: int = Field(default=50)
    prefix_bonus: int = Field(default=30)
    word_bonus: int = Field(default=20)
    substring_bonus: int = Field(default=10)

    @model_validator(mode="after")
    def _check_tiers(self) -> "KeywordSettings":
        bonuses = [
            self.exact_bonus,
            self.prefix_bonus,
            self.word_bonus,
            self.substring_bonus,
            0,
        ]
        if any(a <= b for a, b in zip(bonuses, bonuses[1:], strict=False)):
            raise ValueError(
                "tier bonuses must strictly decrease: exact > prefix > word > substring > 0"
            )
        return self

    def base_score(self, kind: EntityKind) -> int:
        """Base score for a kind (50 when not configured)."""
        return self.base_scores.get(kind, 50)


class IndexingSettings(BaseSettings):
    """Offline indexing configuration."""

    model_config = SettingsConfigDict(env_prefix="INDEXING_")

    batch_size: int = Field(default=100, ge=1, description="Entities per batch")
    max_workers: int = Field(
        default=4,
        ge=1,
        le=4,
        description="Entity kinds indexed concurrently",
    )
    kinds: list[EntityKind] = Field(
        default_factory=lambda: list(EntityKind),
        description="Entity kinds to index",
    )
    checkpoint_path: Path | None = Field(
        default=None,
        description="JSON file recording per-kind progress",
    )
    verse_limit: int = Field(
        default=500,
        ge=1,
        le=1000,
        description="Verses processed per embedding generator run",
    )


class Settings(BaseSettings):
    """Main application settings.

    Aggregates all configuration sections.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Application environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    # API settings
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host",
    )
    api_port: int = Field(
        default=8000,
        description="API server port",
    )

    # Nested settings
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    vector: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
    pinecone: PineconeSettings = Field(default_factory=PineconeSettings)
    qdrant: QdrantSettings = Field(default_factory=QdrantSettings)
    search: SearchSettings = Field(default_factory=SearchSettings)
    keyword: KeywordSettings = Field(default_factory=KeywordSettings)
    indexing: IndexingSettings = Field(default_factory=IndexingSettings)


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()

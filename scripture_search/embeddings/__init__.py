"""Embedding provider module."""

from scripture_search.embeddings.models import EmbeddingVector
from scripture_search.embeddings.service import (
    EmbeddingService,
    HTTPEmbeddingService,
    MockEmbeddingService,
    create_embedding_service,
    mock_embedding,
)

__all__ = [
    "EmbeddingService",
    "EmbeddingVector",
    "HTTPEmbeddingService",
    "MockEmbeddingService",
    "create_embedding_service",
    "mock_embedding",
]

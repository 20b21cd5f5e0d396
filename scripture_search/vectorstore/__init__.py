"""Vector store module."""

from scripture_search.vectorstore.models import IndexedItem, VectorMatch
from scripture_search.vectorstore.service import (
    NullVectorStore,
    PineconeVectorStore,
    QdrantVectorStore,
    VectorStore,
    create_vector_store,
)

__all__ = [
    "IndexedItem",
    "NullVectorStore",
    "PineconeVectorStore",
    "QdrantVectorStore",
    "VectorMatch",
    "VectorStore",
    "create_vector_store",
]

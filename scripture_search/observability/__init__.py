"""Observability module for metrics and monitoring."""

from scripture_search.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    track_embedding_request,
    track_indexed_items,
    track_keyword_fallback,
    track_search_request,
    track_vectorstore_operation,
    track_verse_ranking,
)

__all__ = [
    "MetricsMiddleware",
    "get_metrics",
    "track_embedding_request",
    "track_indexed_items",
    "track_keyword_fallback",
    "track_search_request",
    "track_vectorstore_operation",
    "track_verse_ranking",
]

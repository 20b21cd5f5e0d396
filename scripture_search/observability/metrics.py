"""Prometheus metrics for the search service.

Provides metrics instrumentation for:
- HTTP request latency and counts
- Search requests by endpoint and outcome
- Embedding request latency
- Vector store operations
- Keyword fallbacks and candidate set sizes
- Offline indexing throughput
"""

import time
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Histogram,
    generate_latest,
)
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

# HTTP Request Metrics
HTTP_REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint", "status_code"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

HTTP_REQUEST_TOTAL = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "endpoint", "status_code"],
)

# Search Metrics
SEARCH_REQUEST_DURATION = Histogram(
    "search_request_duration_seconds",
    "Search request duration in seconds",
    ["endpoint", "outcome"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

SEARCH_REQUEST_TOTAL = Counter(
    "search_requests_total",
    "Total search requests",
    ["endpoint", "outcome"],
)

SEARCH_CANDIDATES = Histogram(
    "search_candidates_fetched",
    "Candidate vectors fetched per verse query",
    buckets=[0, 1, 10, 100, 500, 1000, 2500, 5000, 10000],
)

SEARCH_TOP_SCORE = Histogram(
    "search_top_score",
    "Top similarity score per verse query",
    buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 1.0],
)

KEYWORD_FALLBACK_TOTAL = Counter(
    "keyword_fallback_total",
    "Semantic searches answered by the keyword scorer",
    ["reason"],
)

# Embedding Metrics
EMBEDDING_REQUEST_DURATION = Histogram(
    "embedding_request_duration_seconds",
    "Embedding request duration in seconds",
    ["model", "status"],
    buckets=[0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0],
)

EMBEDDING_REQUEST_TOTAL = Counter(
    "embedding_requests_total",
    "Total embedding requests",
    ["model", "status"],
)

EMBEDDING_BATCH_SIZE = Histogram(
    "embedding_batch_size",
    "Embedding batch size",
    ["model"],
    buckets=[1, 5, 10, 25, 50, 100, 250, 500],
)

# Vector Store Metrics
VECTORSTORE_OPERATION_DURATION = Histogram(
    "vectorstore_operation_duration_seconds",
    "Vector store operation duration",
    ["backend", "operation", "status"],
    buckets=[0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.0],
)

# Indexing Metrics
INDEXING_ITEMS_TOTAL = Counter(
    "indexing_items_total",
    "Entities processed by the offline indexing pipeline",
    ["kind", "result"],
)


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware to collect HTTP request metrics."""

    def __init__(self, app: ASGIApp) -> None:
        """Initialize the middleware."""
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        """Process request and collect metrics."""
        # Skip metrics endpoint to avoid recursion
        if request.url.path == "/metrics":
            return await call_next(request)

        start_time = time.perf_counter()
        response = await call_next(request)
        duration = time.perf_counter() - start_time

        endpoint = self._normalize_endpoint(request.url.path)

        HTTP_REQUEST_DURATION.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).observe(duration)

        HTTP_REQUEST_TOTAL.labels(
            method=request.method,
            endpoint=endpoint,
            status_code=response.status_code,
        ).inc()

        return response

    def _normalize_endpoint(self, path: str) -> str:
        """Normalize endpoint path to reduce cardinality."""
        if path.startswith("/health"):
            return "/health"
        if path.startswith("/api/v1/"):
            return path.rstrip("/")
        return "other"


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    """Get the content type for metrics response."""
    return CONTENT_TYPE_LATEST


def track_search_request(endpoint: str, outcome: str, duration: float) -> None:
    """Track one search request.

    Args:
        endpoint: Logical endpoint name (``verses`` or ``entities``).
        outcome: ``ok``, ``empty``, ``invalid``, ``provider_error`` or ``error``.
        duration: Request duration in seconds.
    """
    SEARCH_REQUEST_DURATION.labels(endpoint=endpoint, outcome=outcome).observe(duration)
    SEARCH_REQUEST_TOTAL.labels(endpoint=endpoint, outcome=outcome).inc()


def track_verse_ranking(candidates: int, top_score: float | None) -> None:
    """Track candidate set size and the best score of a verse query."""
    SEARCH_CANDIDATES.observe(candidates)
    if top_score is not None and top_score > 0:
        SEARCH_TOP_SCORE.observe(top_score)


def track_keyword_fallback(reason: str) -> None:
    """Track a semantic search that fell back to keyword scoring."""
    KEYWORD_FALLBACK_TOTAL.labels(reason=reason).inc()


def track_embedding_request(
    model: str,
    duration: float,
    batch_size: int,
    success: bool = True,
) -> None:
    """Track embedding request metrics.

    Args:
        model: Embedding model name.
        duration: Request duration in seconds.
        batch_size: Number of texts in the batch.
        success: Whether the request succeeded.
    """
    status = "success" if success else "error"

    EMBEDDING_REQUEST_DURATION.labels(model=model, status=status).observe(duration)
    EMBEDDING_REQUEST_TOTAL.labels(model=model, status=status).inc()
    EMBEDDING_BATCH_SIZE.labels(model=model).observe(batch_size)


def track_vectorstore_operation(
    backend: str,
    operation: str,
    duration: float,
    success: bool = True,
) -> None:
    """Track one vector store call."""
    status = "success" if success else "error"
    VECTORSTORE_OPERATION_DURATION.labels(
        backend=backend,
        operation=operation,
        status=status,
    ).observe(duration)


def track_indexed_items(kind: str, result: str, count: int) -> None:
    """Track entities indexed or skipped by the pipeline."""
    if count > 0:
        INDEXING_ITEMS_TOTAL.labels(kind=kind, result=result).inc(count)

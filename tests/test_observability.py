"""Tests for observability module."""

import pytest
from httpx import AsyncClient
from prometheus_client import REGISTRY

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


def _sample(name: str, labels: dict[str, str] | None = None) -> float:
    return REGISTRY.get_sample_value(name, labels or {}) or 0.0


class TestMetricsEndpoint:
    """Tests for /metrics endpoint."""

    @pytest.mark.asyncio
    async def test_metrics_endpoint_returns_prometheus_format(self, client: AsyncClient) -> None:
        """Metrics endpoint returns Prometheus format."""
        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]
        assert b"# HELP" in response.content


class TestMetricsFunctions:
    """Tests for metrics tracking functions."""

    def test_get_metrics_returns_bytes(self) -> None:
        """get_metrics returns bytes."""
        metrics = get_metrics()
        assert isinstance(metrics, bytes)

    def test_track_search_request(self) -> None:
        """track_search_request counts by endpoint and outcome."""
        labels = {"endpoint": "verses", "outcome": "empty"}
        before = _sample("search_requests_total", labels)

        track_search_request("verses", "empty", 0.02)

        assert _sample("search_requests_total", labels) == before + 1
        assert "search_request_duration_seconds" in get_metrics().decode()

    def test_track_verse_ranking(self) -> None:
        """Candidate counts and top scores are observed."""
        before = _sample("search_candidates_fetched_count")

        track_verse_ranking(5000, 0.83)
        track_verse_ranking(0, None)

        assert _sample("search_candidates_fetched_count") == before + 2
        assert "search_top_score" in get_metrics().decode()

    def test_track_keyword_fallback(self) -> None:
        """Fallbacks are counted by reason."""
        labels = {"reason": "no_vector_backend"}
        before = _sample("keyword_fallback_total", labels)

        track_keyword_fallback("no_vector_backend")

        assert _sample("keyword_fallback_total", labels) == before + 1

    def test_track_embedding_request(self) -> None:
        """track_embedding_request records request."""
        track_embedding_request(
            model="text-embedding-3-small",
            duration=0.1,
            batch_size=10,
            success=True,
        )

        metrics = get_metrics().decode()
        assert "embedding_request_duration_seconds" in metrics
        assert "embedding_batch_size" in metrics

    def test_track_vectorstore_operation(self) -> None:
        """Vector store calls are timed by backend, operation and status."""
        labels = {"backend": "qdrant", "operation": "query", "status": "error"}
        before = _sample("vectorstore_operation_duration_seconds_count", labels)

        track_vectorstore_operation("qdrant", "query", 0.3, success=False)

        assert _sample("vectorstore_operation_duration_seconds_count", labels) == before + 1

    def test_track_indexed_items(self) -> None:
        """Indexed counts accumulate; zero counts are ignored."""
        labels = {"kind": "place", "result": "indexed"}
        before = _sample("indexing_items_total", labels)

        track_indexed_items("place", "indexed", 3)
        track_indexed_items("place", "indexed", 0)

        assert _sample("indexing_items_total", labels) == before + 3


class TestMetricsMiddleware:
    """Tests for MetricsMiddleware."""

    @pytest.mark.asyncio
    async def test_middleware_records_request_metrics(self, client: AsyncClient) -> None:
        """Middleware records HTTP request metrics."""
        await client.get("/health")

        metrics = get_metrics().decode()
        assert "http_request_duration_seconds" in metrics
        assert "http_requests_total" in metrics

    @pytest.mark.asyncio
    async def test_middleware_normalizes_endpoints(self, client: AsyncClient) -> None:
        """Health probes share one endpoint label."""
        labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
        before = _sample("http_requests_total", labels)

        await client.get("/health")
        await client.get("/health/ready")
        await client.get("/health/live")

        assert _sample("http_requests_total", labels) == before + 3

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/health/ready", "/health"),
            ("/api/v1/search/", "/api/v1/search"),
            ("/favicon.ico", "other"),
        ],
    )
    def test_normalize_endpoint(self, path: str, expected: str) -> None:
        """Paths are folded to low-cardinality labels."""
        middleware = MetricsMiddleware(app=lambda *_: None)
        assert middleware._normalize_endpoint(path) == expected

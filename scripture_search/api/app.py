"""FastAPI application entry point.

Configures the application with logging, exception handling, metrics and
health checks.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse

from scripture_search import __version__
from scripture_search.api.dependencies import SearchRuntime, build_runtime
from scripture_search.api.routes import router
from scripture_search.config import get_settings
from scripture_search.exceptions import ErrorCode, SearchPlatformError
from scripture_search.logging_config import get_logger, setup_logging
from scripture_search.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    get_metrics_content_type,
)

logger = get_logger(__name__)

_BAD_GATEWAY_CODES = frozenset(
    {
        ErrorCode.EMBEDDING_PROVIDER_ERROR,
        ErrorCode.EMBEDDING_TIMEOUT,
        ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
        ErrorCode.VECTOR_STORE_ERROR,
        ErrorCode.VECTOR_BACKEND_NOT_CONFIGURED,
        ErrorCode.CONTENT_STORE_ERROR,
        ErrorCode.CONTENT_STORE_TIMEOUT,
    }
)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager.

    Builds the service runtime on startup and releases its clients on
    shutdown.
    """
    settings = get_settings()
    setup_logging(level=settings.log_level)
    logger.info(
        "Starting Scripture Search",
        extra={
            "version": __version__,
            "environment": settings.environment.value,
            "embedding_provider": settings.embedding.provider.value,
            "vector_backend": settings.vector.provider.value,
        },
    )

    if getattr(app.state, "runtime", None) is None:
        app.state.runtime = build_runtime(settings)

    yield

    logger.info("Shutting down Scripture Search")
    runtime: SearchRuntime | None = getattr(app.state, "runtime", None)
    if runtime is not None:
        await runtime.close()


def create_app(runtime: SearchRuntime | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        runtime: Pre-built services (for testing). Built at startup if omitted.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Scripture Search",
        description="Semantic verse search with keyword fallback",
        version=__version__,
        lifespan=lifespan,
        debug=settings.debug,
    )
    app.state.runtime = runtime

    app.add_middleware(MetricsMiddleware)
    app.add_exception_handler(SearchPlatformError, search_exception_handler)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/ready", readiness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/health/live", liveness_check, methods=["GET"], tags=["Health"])
    app.add_api_route("/metrics", metrics_endpoint, methods=["GET"], tags=["Observability"])
    app.include_router(router)

    return app


async def search_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Convert SearchPlatformError to a ``{error, code}`` JSON response.

    Internal messages and details are logged, never returned.
    """
    if not isinstance(exc, SearchPlatformError):
        return JSONResponse(
            status_code=500,
            content={"error": "internal_error", "code": ErrorCode.INTERNAL_ERROR.value},
        )

    status_code = _get_status_code(exc.code)
    log = logger.warning if status_code < 500 else logger.error
    log(
        f"Request failed: {exc.message}",
        extra={
            "error_code": exc.code.value,
            "path": request.url.path,
            "details": exc.details,
        },
    )

    return JSONResponse(status_code=status_code, content=exc.to_dict())


def _get_status_code(code: ErrorCode) -> int:
    """Map error code to HTTP status code."""
    if code is ErrorCode.VALIDATION_ERROR:
        return 400
    if code in _BAD_GATEWAY_CODES:
        return 502
    return 500


async def health_check() -> dict[str, Any]:
    """Basic health check endpoint.

    Returns:
        Health status with version and timestamp.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "timestamp": datetime.now(UTC).isoformat(),
    }


async def readiness_check(request: Request) -> JSONResponse:
    """Readiness probe.

    Ready once the service runtime exists. The vector backend is reported
    but not required: without one, search falls back to keyword scoring.
    """
    runtime: SearchRuntime | None = getattr(request.app.state, "runtime", None)
    settings = get_settings()

    backend = runtime.vector_store.backend if runtime else settings.vector.provider
    checks: dict[str, str] = {
        "config": "ok",
        "runtime": "ok" if runtime is not None else "not_started",
        "vector_backend": backend.value,
    }
    ready = runtime is not None

    return JSONResponse(
        status_code=200 if ready else 503,
        content={
            "status": "ready" if ready else "not_ready",
            "checks": checks,
            "timestamp": datetime.now(UTC).isoformat(),
        },
    )


async def liveness_check() -> dict[str, str]:
    """Liveness probe.

    Returns:
        Liveness status.
    """
    return {"status": "alive"}


async def metrics_endpoint() -> Response:
    """Prometheus scrape endpoint."""
    return Response(content=get_metrics(), media_type=get_metrics_content_type())


app = create_app()

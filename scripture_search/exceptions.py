"""Application exception hierarchy.

All custom exceptions inherit from SearchPlatformError.
Each exception has an error code for structured error handling and a public
error string that is safe to return to callers.
"""

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Error codes for structured error handling."""

    # General errors (1xxx)
    INTERNAL_ERROR = "SRCH-1000"
    CONFIGURATION_ERROR = "SRCH-1001"
    VALIDATION_ERROR = "SRCH-1002"

    # Embedding errors (2xxx)
    EMBEDDING_PROVIDER_ERROR = "SRCH-2000"
    EMBEDDING_TIMEOUT = "SRCH-2001"
    EMBEDDING_DIMENSION_MISMATCH = "SRCH-2002"

    # Vector store errors (3xxx)
    VECTOR_STORE_ERROR = "SRCH-3000"
    VECTOR_BACKEND_NOT_CONFIGURED = "SRCH-3001"

    # Content store errors (4xxx)
    CONTENT_STORE_ERROR = "SRCH-4000"
    CONTENT_STORE_TIMEOUT = "SRCH-4001"

    # Indexing errors (5xxx)
    INDEXING_ERROR = "SRCH-5000"
    UPSERT_FAILED = "SRCH-5001"


class SearchPlatformError(Exception):
    """Base exception for all search platform errors.

    Attributes:
        message: Human-readable error message.
        code: Structured error code.
        details: Additional error context.
    """

    public_error = "internal_error"

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.public_error,
            "code": self.code.value,
        }


class ConfigurationError(SearchPlatformError):
    """Configuration or environment error."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details)


class ValidationError(SearchPlatformError):
    """Invalid request parameters. The message is returned to the caller."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)

    @property
    def public_error(self) -> str:  # type: ignore[override]
        return self.message


class InternalError(SearchPlatformError):
    """Unanticipated failure. Details are logged, never returned."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.INTERNAL_ERROR, details)


class ProviderError(SearchPlatformError):
    """An upstream provider or store is unavailable or misconfigured.

    Safe for the caller to retry with backoff.
    """

    public_error = "provider_error"


class EmbeddingError(ProviderError):
    """Embedding provider error."""

    public_error = "embedding_provider_error"

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.EMBEDDING_PROVIDER_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class VectorStoreError(ProviderError):
    """Vector store operation error."""

    public_error = "vector_store_error"

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.VECTOR_STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class NoVectorBackendError(VectorStoreError):
    """No vector backend is configured; callers should use keyword search."""

    def __init__(
        self,
        message: str = "No vector backend configured",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, ErrorCode.VECTOR_BACKEND_NOT_CONFIGURED, details)


class ContentStoreError(ProviderError):
    """Content store read or write error."""

    public_error = "content_store_error"

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONTENT_STORE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)


class IndexingError(SearchPlatformError):
    """Offline indexing error. ``details`` carries the resume position."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INDEXING_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, code, details)

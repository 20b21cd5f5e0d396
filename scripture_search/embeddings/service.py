"""Embedding service interface and implementations.

Overflow policy: inputs longer than ``EmbeddingSettings.max_input_chars`` are
truncated to that many characters before they are embedded. Blank inputs are
rejected with ``ValidationError``.
"""

import hashlib
import math
import time
from abc import ABC, abstractmethod

import httpx

from scripture_search.config import EmbeddingProvider, EmbeddingSettings, get_settings
from scripture_search.embeddings.models import EmbeddingVector
from scripture_search.exceptions import EmbeddingError, ErrorCode, ValidationError
from scripture_search.logging_config import get_logger
from scripture_search.observability.metrics import track_embedding_request

logger = get_logger(__name__)


def prepare_texts(texts: list[str], max_chars: int) -> list[str]:
    """Apply the input policy: reject blanks, truncate long inputs."""
    prepared: list[str] = []
    for position, text in enumerate(texts):
        if not text or not text.strip():
            raise ValidationError(
                "Cannot embed an empty text",
                details={"position": position},
            )
        prepared.append(text[:max_chars])
    return prepared


def mock_embedding(text: str, dimensions: int = 1536) -> list[float]:
    """Deterministic, content-addressed embedding.

    SHA-256 digests of the text are chained (each next seed is the hex form
    of the previous digest) and every digest byte is scaled into [-1, 1]
    until ``dimensions`` slots are filled. The result is L2-normalized.
    """
    values: list[float] = []
    seed = text.encode("utf-8")
    while len(values) < dimensions:
        digest = hashlib.sha256(seed).digest()
        remaining = dimensions - len(values)
        values.extend(byte / 127.5 - 1 for byte in digest[:remaining])
        seed = digest.hex().encode("ascii")

    magnitude = math.sqrt(sum(v * v for v in values))
    if magnitude > 0:
        values = [v / magnitude for v in values]
    return values


class EmbeddingService(ABC):
    """Abstract base class for embedding services.

    Defines the interface for generating text embeddings.
    """

    @abstractmethod
    async def embed_batch(
        self,
        texts: list[str],
        model: str | None = None,
    ) -> list[EmbeddingVector]:
        """Generate embeddings for multiple texts.

        Args:
            texts: Texts to embed.
            model: Model override (defaults to the configured model).

        Returns:
            One EmbeddingVector per input, in input order.

        Raises:
            EmbeddingError: If the provider fails.
            ValidationError: If an input is blank.
        """
        ...

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Get the default model name used for embeddings."""
        ...

    @property
    @abstractmethod
    def dimensions(self) -> int:
        """Get the embedding dimensions."""
        ...

    async def embed(self, text: str, model: str | None = None) -> EmbeddingVector:
        """Generate embedding for a single text."""
        results = await self.embed_batch([text], model=model)
        return results[0]

    async def close(self) -> None:
        """Release any held resources."""
        return None


class MockEmbeddingService(EmbeddingService):
    """Offline embedding service backed by ``mock_embedding``.

    Makes no network calls; the same text always yields the same vector.
    """

    def __init__(self, settings: EmbeddingSettings | None = None) -> None:
        self._settings = settings or get_settings().embedding

    @property
    def model_name(self) -> str:
        return self._settings.model

    @property
    def dimensions(self) -> int:
        return self._settings.dimensions

    async def embed_batch(
        self,
        texts: list[str],
        model: str | None = None,
    ) -> list[EmbeddingVector]:
        if not texts:
            return []
        prepared = prepare_texts(texts, self._settings.max_input_chars)
        model = model or self.model_name
        return [
            EmbeddingVector(
                text=text,
                embedding=mock_embedding(text, self.dimensions),
                model=model,
                dimensions=self.dimensions,
            )
            for text in prepared
        ]


class HTTPEmbeddingService(EmbeddingService):
    """Embedding service using an HTTP API.

    Compatible with OpenAI-style embedding APIs and
    text-embeddings-inference (TEI) servers.
    """

    # Known model dimensions
    MODEL_DIMENSIONS = {
        "text-embedding-3-small": 1536,
        "text-embedding-3-large": 3072,
        "text-embedding-ada-002": 1536,
        "BAAI/bge-large-en-v1.5": 1024,
        "BAAI/bge-base-en-v1.5": 768,
        "BAAI/bge-small-en-v1.5": 384,
    }

    def __init__(
        self,
        settings: EmbeddingSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the HTTP embedding service.

        Args:
            settings: Embedding configuration. Uses defaults if not provided.
            client: HTTP client. Creates new one if not provided.
        """
        self._settings = settings or get_settings().embedding
        self._client = client
        self._owns_client = client is None
        self._dimensions: dict[str, int] = {}

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def model_name(self) -> str:
        return self._settings.model

    @property
    def dimensions(self) -> int:
        """Get embedding dimensions, learned from responses when unknown."""
        model = self._settings.model
        if model in self._dimensions:
            return self._dimensions[model]
        return self.MODEL_DIMENSIONS.get(model, self._settings.dimensions)

    def _headers(self) -> dict[str, str]:
        if self._settings.api_key is None:
            return {}
        return {"Authorization": f"Bearer {self._settings.api_key.get_secret_value()}"}

    async def embed_batch(
        self,
        texts: list[str],
        model: str | None = None,
    ) -> list[EmbeddingVector]:
        if not texts:
            return []

        prepared = prepare_texts(texts, self._settings.max_input_chars)
        model = model or self._settings.model
        client = await self._get_client()
        url = f"{self._settings.base_url.rstrip('/')}/embeddings"
        batch_size = self._settings.batch_size

        all_results: list[EmbeddingVector] = []
        started = time.perf_counter()
        success = False
        try:
            for i in range(0, len(prepared), batch_size):
                batch = prepared[i : i + batch_size]
                all_results.extend(
                    await self._embed_batch_request(client, url, batch, model)
                )
            success = True
        finally:
            track_embedding_request(
                model=model,
                duration=time.perf_counter() - started,
                batch_size=len(prepared),
                success=success,
            )

        return all_results

    async def _embed_batch_request(
        self,
        client: httpx.AsyncClient,
        url: str,
        texts: list[str],
        model: str,
    ) -> list[EmbeddingVector]:
        """Make one embedding request.

        Raises:
            EmbeddingError: If the request fails or the payload is malformed.
        """
        payload = {"input": texts, "model": model}

        try:
            response = await client.post(url, json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                f"Embedding request failed: {e.response.status_code}",
                extra={"url": url, "status": e.response.status_code},
            )
            raise EmbeddingError(
                f"Embedding service returned {e.response.status_code}",
                code=ErrorCode.EMBEDDING_PROVIDER_ERROR,
                details={"status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            logger.error(f"Embedding request error: {e}", extra={"url": url})
            raise EmbeddingError(
                f"Failed to connect to embedding service: {e}",
                code=ErrorCode.EMBEDDING_PROVIDER_ERROR,
                details={"url": url},
            ) from e

        try:
            rows = response.json()["data"]
            # Rows may arrive out of order; "index" refers to the input position.
            ordered = sorted(
                enumerate(rows),
                key=lambda pair: pair[1].get("index", pair[0]),
            )
            embeddings = [[float(v) for v in row["embedding"]] for _, row in ordered]
        except (KeyError, TypeError, ValueError) as e:
            raise EmbeddingError(
                f"Invalid response from embedding service: {e}",
                code=ErrorCode.EMBEDDING_PROVIDER_ERROR,
                details={"error": str(e)},
            ) from e

        if len(embeddings) != len(texts):
            raise EmbeddingError(
                f"Embedding service returned {len(embeddings)} vectors for {len(texts)} inputs",
                code=ErrorCode.EMBEDDING_PROVIDER_ERROR,
                details={"expected": len(texts), "received": len(embeddings)},
            )

        results: list[EmbeddingVector] = []
        for text, embedding in zip(texts, embeddings, strict=True):
            if not embedding:
                raise EmbeddingError(
                    "Embedding service returned an empty vector",
                    code=ErrorCode.EMBEDDING_PROVIDER_ERROR,
                )
            expected = self._dimensions.setdefault(model, len(embedding))
            if len(embedding) != expected:
                raise EmbeddingError(
                    f"Expected {expected} dimensions, got {len(embedding)}",
                    code=ErrorCode.EMBEDDING_DIMENSION_MISMATCH,
                    details={"expected": expected, "received": len(embedding)},
                )
            results.append(
                EmbeddingVector(
                    text=text,
                    embedding=embedding,
                    model=model,
                    dimensions=len(embedding),
                )
            )
        return results


def create_embedding_service(
    settings: EmbeddingSettings | None = None,
) -> EmbeddingService:
    """Build the configured embedding service."""
    settings = settings or get_settings().embedding
    if settings.provider is EmbeddingProvider.HTTP:
        return HTTPEmbeddingService(settings=settings)
    return MockEmbeddingService(settings=settings)

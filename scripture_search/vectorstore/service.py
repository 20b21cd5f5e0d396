"""Vector store interface and backend implementations.

Three variants are selected by configuration:

- ``pinecone``: managed index service, spoken to over its REST data plane.
- ``qdrant``: self-hosted cluster, through ``qdrant-client``.
- ``none``: no backend. Every operation raises ``NoVectorBackendError`` so
  callers can tell "no backend" apart from "no matches".

Writes are chunked at the backend's maximum batch size. Upserts are keyed by
item id, so retrying a chunk is safe.
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any
from uuid import NAMESPACE_URL, uuid5

import httpx
from qdrant_client import AsyncQdrantClient
from qdrant_client.models import Distance, PointStruct, VectorParams

from scripture_search.config import (
    PineconeSettings,
    QdrantSettings,
    Settings,
    VectorBackend,
    get_settings,
)
from scripture_search.exceptions import ErrorCode, NoVectorBackendError, VectorStoreError
from scripture_search.logging_config import get_logger
from scripture_search.observability.metrics import track_vectorstore_operation
from scripture_search.vectorstore.models import IndexedItem, VectorMatch

logger = get_logger(__name__)


def chunked(items: list[IndexedItem], size: int) -> Iterator[list[IndexedItem]]:
    """Yield consecutive slices of at most ``size`` items."""
    for i in range(0, len(items), size):
        yield items[i : i + size]


@contextmanager
def _tracked(backend: VectorBackend, operation: str) -> Iterator[None]:
    started = time.perf_counter()
    success = False
    try:
        yield
        success = True
    finally:
        track_vectorstore_operation(
            backend=backend.value,
            operation=operation,
            duration=time.perf_counter() - started,
            success=success,
        )


class VectorStore(ABC):
    """Abstract base class for vector stores.

    Subclasses implement single-chunk writes; chunking lives here.
    """

    backend: VectorBackend
    max_batch_size: int

    @property
    def batch_size(self) -> int:
        """Items per write request."""
        return self.max_batch_size

    async def prepare(self, dimensions: int) -> None:
        """Make sure the backend can accept vectors of ``dimensions``."""
        return None

    async def upsert(self, items: list[IndexedItem]) -> int:
        """Insert or replace items by id.

        Returns:
            Number of items written.

        Raises:
            VectorStoreError: If any chunk fails. Earlier chunks stay written.
        """
        if not items:
            return 0

        written = 0
        for chunk in chunked(items, self.batch_size):
            written += await self._upsert_chunk(chunk)

        logger.debug(
            f"Upserted {written} items",
            extra={"backend": self.backend.value},
        )
        return written

    @abstractmethod
    async def _upsert_chunk(self, items: list[IndexedItem]) -> int:
        """Write one chunk no larger than ``batch_size``."""
        ...

    @abstractmethod
    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        """Return up to ``top_k`` matches, most similar first.

        Raises:
            VectorStoreError: If the query fails.
        """
        ...

    async def close(self) -> None:
        """Release any held resources."""
        return None


class PineconeVectorStore(VectorStore):
    """Pinecone index accessed through its REST data plane."""

    backend = VectorBackend.PINECONE
    max_batch_size = 100
    API_VERSION = "2024-07"

    def __init__(
        self,
        settings: PineconeSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Pinecone store.

        Args:
            settings: Pinecone configuration.
            client: Existing HTTP client bound to the index host (for testing).
        """
        self._settings = settings or get_settings().pinecone
        self._client = client
        self._owns_client = client is None

    @property
    def batch_size(self) -> int:
        return min(self._settings.batch_size, self.max_batch_size)

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            if self._settings.api_key is None:
                raise VectorStoreError(
                    "PINECONE_API_KEY not configured",
                    details={"backend": self.backend.value},
                )
            if not self._settings.index_host:
                raise VectorStoreError(
                    "PINECONE_INDEX_HOST not configured",
                    details={"backend": self.backend.value},
                )
            host = self._settings.index_host
            if not host.startswith(("http://", "https://")):
                host = f"https://{host}"
            self._client = httpx.AsyncClient(
                base_url=host,
                timeout=self._settings.timeout,
                headers={
                    "Api-Key": self._settings.api_key.get_secret_value(),
                    "X-Pinecone-API-Version": self.API_VERSION,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if we own it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        client = await self._get_client()
        try:
            response = await client.post(path, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise VectorStoreError(
                f"Pinecone returned {e.response.status_code}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"path": path, "status_code": e.response.status_code},
            ) from e
        except httpx.RequestError as e:
            raise VectorStoreError(
                f"Failed to reach Pinecone: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"path": path},
            ) from e
        except ValueError as e:
            raise VectorStoreError(
                f"Invalid response from Pinecone: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"path": path},
            ) from e

    async def _upsert_chunk(self, items: list[IndexedItem]) -> int:
        payload = {
            "vectors": [
                {"id": item.id, "values": item.vector, "metadata": item.metadata}
                for item in items
            ],
            "namespace": self._settings.namespace,
        }
        with _tracked(self.backend, "upsert"):
            data = await self._post("/vectors/upsert", payload)
        return int(data.get("upsertedCount", len(items)))

    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        payload = {
            "vector": vector,
            "topK": top_k,
            "includeMetadata": True,
            "includeValues": False,
            "namespace": self._settings.namespace,
        }
        with _tracked(self.backend, "query"):
            data = await self._post("/query", payload)

        return [
            VectorMatch(
                id=str(match["id"]),
                score=float(match.get("score") or 0.0),
                metadata=dict(match.get("metadata") or {}),
            )
            for match in data.get("matches", [])
        ]


class QdrantVectorStore(VectorStore):
    """Qdrant collection with cosine distance.

    Qdrant point ids must be UUIDs or integers, so item ids are mapped to
    UUIDv5 values and the original id is kept in the payload.
    """

    backend = VectorBackend.QDRANT
    max_batch_size = 1000
    ITEM_ID_KEY = "item_id"

    def __init__(
        self,
        settings: QdrantSettings | None = None,
        client: AsyncQdrantClient | None = None,
    ) -> None:
        """Initialize Qdrant vector store.

        Args:
            settings: Qdrant configuration.
            client: Existing client (for testing).
        """
        self._settings = settings or get_settings().qdrant
        self._client = client
        self._owns_client = client is None

    @property
    def batch_size(self) -> int:
        return min(self._settings.batch_size, self.max_batch_size)

    @staticmethod
    def point_id(item_id: str) -> str:
        """Deterministic Qdrant point id for an item id."""
        return str(uuid5(NAMESPACE_URL, item_id))

    async def _get_client(self) -> AsyncQdrantClient:
        """Get or create Qdrant client."""
        if self._client is None:
            api_key = None
            if self._settings.api_key:
                api_key = self._settings.api_key.get_secret_value()

            self._client = AsyncQdrantClient(
                url=self._settings.url,
                api_key=api_key,
                timeout=self._settings.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the Qdrant client."""
        if self._owns_client and self._client is not None:
            await self._client.close()
            self._client = None

    async def prepare(self, dimensions: int) -> None:
        """Create the collection if it does not exist."""
        client = await self._get_client()
        name = self._settings.collection_name

        try:
            if await client.collection_exists(name):
                return
            await client.create_collection(
                collection_name=name,
                vectors_config=VectorParams(size=dimensions, distance=Distance.COSINE),
            )
            logger.info(f"Created collection: {name}", extra={"dimensions": dimensions})
        except Exception as e:
            raise VectorStoreError(
                f"Failed to prepare collection: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": name, "error": str(e)},
            ) from e

    async def _upsert_chunk(self, items: list[IndexedItem]) -> int:
        client = await self._get_client()
        collection = self._settings.collection_name

        points = [
            PointStruct(
                id=self.point_id(item.id),
                vector=item.vector,
                payload={**item.metadata, self.ITEM_ID_KEY: item.id},
            )
            for item in items
        ]

        try:
            with _tracked(self.backend, "upsert"):
                await client.upsert(collection_name=collection, points=points, wait=True)
        except Exception as e:
            raise VectorStoreError(
                f"Failed to upsert records: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": collection, "error": str(e)},
            ) from e
        return len(points)

    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        client = await self._get_client()
        collection = self._settings.collection_name

        try:
            with _tracked(self.backend, "query"):
                results = await client.query_points(
                    collection_name=collection,
                    query=vector,
                    limit=top_k,
                    with_payload=True,
                )
        except Exception as e:
            raise VectorStoreError(
                f"Failed to search: {e}",
                code=ErrorCode.VECTOR_STORE_ERROR,
                details={"collection": collection, "error": str(e)},
            ) from e

        matches: list[VectorMatch] = []
        for point in results.points:
            payload = dict(point.payload) if point.payload else {}
            item_id = payload.pop(self.ITEM_ID_KEY, str(point.id))
            matches.append(
                VectorMatch(
                    id=str(item_id),
                    score=point.score if point.score is not None else 0.0,
                    metadata=payload,
                )
            )
        return matches


class NullVectorStore(VectorStore):
    """The "none" backend. Fails fast on every operation."""

    backend = VectorBackend.NONE
    max_batch_size = 1

    async def prepare(self, dimensions: int) -> None:
        raise NoVectorBackendError()

    async def upsert(self, items: list[IndexedItem]) -> int:
        raise NoVectorBackendError()

    async def _upsert_chunk(self, items: list[IndexedItem]) -> int:
        raise NoVectorBackendError()

    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        raise NoVectorBackendError()


def create_vector_store(settings: Settings | None = None) -> VectorStore:
    """Build the vector store selected by ``VECTOR_PROVIDER``."""
    settings = settings or get_settings()
    backend = settings.vector.provider

    if backend is VectorBackend.PINECONE:
        return PineconeVectorStore(settings=settings.pinecone)
    if backend is VectorBackend.QDRANT:
        return QdrantVectorStore(settings=settings.qdrant)
    return NullVectorStore()

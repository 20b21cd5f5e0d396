"""Service wiring for the API.

All services are built once per process from a single ``Settings`` and kept
on ``app.state.runtime``. Tests install their own runtime.
"""

from dataclasses import dataclass

from fastapi import Request

from scripture_search.config import Settings, get_settings
from scripture_search.content.store import ContentStore, InMemoryContentStore
from scripture_search.embeddings.service import EmbeddingService, create_embedding_service
from scripture_search.keyword.scorer import KeywordSearcher
from scripture_search.logging_config import get_logger
from scripture_search.search.orchestrator import VerseSearchOrchestrator
from scripture_search.search.service import EntitySearchService
from scripture_search.vectorstore.service import VectorStore, create_vector_store

logger = get_logger(__name__)


@dataclass
class SearchRuntime:
    """Long-lived services shared by all requests."""

    settings: Settings
    content_store: ContentStore
    embedding_service: EmbeddingService
    vector_store: VectorStore
    verse_search: VerseSearchOrchestrator
    entity_search: EntitySearchService

    async def close(self) -> None:
        await self.embedding_service.close()
        await self.vector_store.close()


def build_runtime(
    settings: Settings | None = None,
    content_store: ContentStore | None = None,
    embedding_service: EmbeddingService | None = None,
    vector_store: VectorStore | None = None,
) -> SearchRuntime:
    """Build the runtime, using configured implementations for anything omitted."""
    settings = settings or get_settings()

    if content_store is None:
        if settings.search.corpus_path is not None:
            content_store = InMemoryContentStore.from_file(settings.search.corpus_path)
        else:
            logger.warning("SEARCH_CORPUS_PATH not set, starting with empty content")
            content_store = InMemoryContentStore()

    embedding_service = embedding_service or create_embedding_service(settings.embedding)
    vector_store = vector_store or create_vector_store(settings)

    return SearchRuntime(
        settings=settings,
        content_store=content_store,
        embedding_service=embedding_service,
        vector_store=vector_store,
        verse_search=VerseSearchOrchestrator(content_store, embedding_service, settings.search),
        entity_search=EntitySearchService(
            embedding_service,
            vector_store,
            KeywordSearcher(content_store, settings.keyword),
            settings.search,
        ),
    )


def get_runtime(request: Request) -> SearchRuntime:
    """FastAPI dependency returning the process runtime, built on first use."""
    runtime: SearchRuntime | None = getattr(request.app.state, "runtime", None)
    if runtime is None:
        runtime = build_runtime()
        request.app.state.runtime = runtime
    return runtime

"""Entity search across content kinds.

Keyword mode uses the keyword scorer. Semantic mode embeds the query and asks
the vector store; when no vector backend is configured it falls back to
keyword mode and says so in the response.
"""

import asyncio
import time
from collections.abc import Iterable

from scripture_search.config import SearchSettings, VectorBackend, get_settings
from scripture_search.content.models import EntityKind
from scripture_search.embeddings.service import EmbeddingService
from scripture_search.exceptions import (
    EmbeddingError,
    ErrorCode,
    InternalError,
    NoVectorBackendError,
    ProviderError,
    SearchPlatformError,
    ValidationError,
    VectorStoreError,
)
from scripture_search.keyword.models import SearchResult
from scripture_search.keyword.scorer import KeywordSearcher, result_order
from scripture_search.logging_config import get_logger
from scripture_search.observability.metrics import track_keyword_fallback, track_search_request
from scripture_search.search.models import EntitySearchResponse, SearchMode
from scripture_search.vectorstore.models import VectorMatch
from scripture_search.vectorstore.service import VectorStore

logger = get_logger(__name__)

DEFAULT_LIMIT = 20

# Alternative spellings accepted in the ``types`` filter.
_KIND_ALIASES = {
    "prayerpoint": EntityKind.PRAYER_POINT,
    "prayer-point": EntityKind.PRAYER_POINT,
}


def parse_kinds(types: str | None) -> list[EntityKind]:
    """Parse a comma-separated kind filter; unknown names are ignored."""
    if not types:
        return []
    kinds: list[EntityKind] = []
    for raw in types.split(","):
        name = raw.strip().lower()
        if not name:
            continue
        kind = _KIND_ALIASES.get(name)
        if kind is None:
            try:
                kind = EntityKind(name)
            except ValueError:
                continue
        if kind not in kinds:
            kinds.append(kind)
    return kinds


def group_by_kind(results: Iterable[SearchResult]) -> dict[str, list[SearchResult]]:
    grouped: dict[str, list[SearchResult]] = {}
    for result in results:
        grouped.setdefault(result.kind.value, []).append(result)
    return grouped


class EntitySearchService:
    """Semantic entity search with keyword fallback."""

    def __init__(
        self,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        keyword_searcher: KeywordSearcher,
        settings: SearchSettings | None = None,
    ) -> None:
        self._embeddings = embedding_service
        self._vector_store = vector_store
        self._keyword = keyword_searcher
        self._settings = settings or get_settings().search

    def _parse_limit(self, limit: str | int | None) -> int:
        if limit is None or limit == "":
            value = DEFAULT_LIMIT
        else:
            try:
                value = int(limit.strip()) if isinstance(limit, str) else int(limit)
            except ValueError:
                value = DEFAULT_LIMIT
        return min(max(1, value), self._settings.max_limit)

    async def search(
        self,
        q: str | None,
        mode: str | None = None,
        limit: str | int | None = None,
        types: str | None = None,
    ) -> EntitySearchResponse:
        """Run an entity search from raw request parameters.

        ``limit`` is clamped to ``1..max_limit``; unparseable values use the
        default.

        Raises:
            ValidationError: Missing query or unknown mode.
            ProviderError: Embedding or vector store failure in semantic mode.
        """
        started = time.perf_counter()
        outcome = "error"
        try:
            query = (q or "").strip()
            if not query:
                raise ValidationError("Query parameter 'q' is required")
            try:
                requested = SearchMode((mode or SearchMode.KEYWORD.value).strip().lower())
            except ValueError as e:
                raise ValidationError("Parameter mode must be 'keyword' or 'semantic'") from e

            response = await self._run(
                query, requested, self._parse_limit(limit), parse_kinds(types)
            )
            outcome = "ok" if response.results else "empty"
            return response
        except ValidationError:
            outcome = "invalid"
            raise
        except ProviderError:
            outcome = "provider_error"
            raise
        except SearchPlatformError:
            raise
        except Exception as e:
            logger.exception("Entity search failed")
            raise InternalError("Entity search failed", details={"error": str(e)}) from e
        finally:
            track_search_request("entities", outcome, time.perf_counter() - started)

    async def _run(
        self,
        query: str,
        mode: SearchMode,
        limit: int,
        kinds: list[EntityKind],
    ) -> EntitySearchResponse:
        fallback_reason: str | None = None

        if mode is SearchMode.SEMANTIC:
            try:
                results = await self._semantic(query, limit, kinds)
            except NoVectorBackendError as e:
                logger.info("Falling back to keyword search", extra={"reason": e.message})
                track_keyword_fallback("no_vector_backend")
                fallback_reason = e.message
                mode = SearchMode.KEYWORD
                results = await self._keyword.search(query, limit=limit, kinds=kinds)
        else:
            results = await self._keyword.search(query, limit=limit, kinds=kinds)

        return EntitySearchResponse(
            query=query,
            mode=mode,
            fallback_reason=fallback_reason,
            total_results=len(results),
            results=results,
            grouped=group_by_kind(results),
        )

    async def _semantic(
        self,
        query: str,
        limit: int,
        kinds: list[EntityKind],
    ) -> list[SearchResult]:
        if self._vector_store.backend is VectorBackend.NONE:
            raise NoVectorBackendError()

        timeout = self._settings.provider_timeout
        try:
            embedded = await asyncio.wait_for(self._embeddings.embed(query), timeout=timeout)
        except TimeoutError as e:
            raise EmbeddingError(
                "Embedding provider timed out",
                code=ErrorCode.EMBEDDING_TIMEOUT,
            ) from e

        try:
            matches = await asyncio.wait_for(
                self._vector_store.query(embedded.embedding, limit * 2),
                timeout=timeout,
            )
        except TimeoutError as e:
            raise VectorStoreError(
                "Vector store query timed out",
                details={"backend": self._vector_store.backend.value},
            ) from e

        results = [r for r in (self._to_result(m) for m in matches) if r is not None]
        if kinds:
            results = [r for r in results if r.kind in kinds]
        return sorted(results, key=result_order)[:limit]

    @staticmethod
    def _to_result(match: VectorMatch) -> SearchResult | None:
        metadata = match.metadata
        try:
            kind = EntityKind(metadata.get("kind", match.id.split(":", 1)[0]))
        except ValueError:
            logger.warning("Skipping match with unknown kind", extra={"id": match.id})
            return None

        return SearchResult(
            entity_id=str(metadata.get("entity_id") or match.id.split(":", 1)[-1]),
            kind=kind,
            title=str(metadata.get("title", "")),
            description=str(metadata.get("description", "")),
            slug=str(metadata.get("slug", "")),
            url=str(metadata.get("url", "")),
            score=match.score,
        )

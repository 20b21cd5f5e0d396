"""Verse semantic search.

One pass per request, no retries:

1. Validate the query text, ``k`` and model name.
2. Fetch up to ``candidate_limit`` stored verse vectors for the model,
   newest first. No candidates means an empty result, not an error.
3. Embed the query once.
4. Rank candidates by cosine similarity in a worker thread.
5. Join ranked ids to their display fields and return the envelope.
"""

import asyncio
import re
import time

from scripture_search.config import SearchSettings, get_settings
from scripture_search.content.models import CandidateVector
from scripture_search.content.store import ContentStore
from scripture_search.embeddings.service import EmbeddingService
from scripture_search.exceptions import (
    ContentStoreError,
    EmbeddingError,
    ErrorCode,
    InternalError,
    ProviderError,
    SearchPlatformError,
    ValidationError,
)
from scripture_search.logging_config import get_logger
from scripture_search.observability.metrics import track_search_request, track_verse_ranking
from scripture_search.ranking.kernel import rank_top_k, sort_ranked
from scripture_search.search.models import QueryRequest, VerseSearchResponse, VerseSearchResult

logger = get_logger(__name__)

MODEL_PATTERN = re.compile(r"^[A-Za-z0-9._:/-]{1,100}$")


class VerseSearchOrchestrator:
    """Answers verse queries from stored verse embeddings."""

    def __init__(
        self,
        content_store: ContentStore,
        embedding_service: EmbeddingService,
        settings: SearchSettings | None = None,
    ) -> None:
        self._store = content_store
        self._embeddings = embedding_service
        self._settings = settings or get_settings().search

    def validate(
        self,
        q: str | None,
        k: str | int | None = None,
        model: str | None = None,
    ) -> QueryRequest:
        """Check raw request parameters.

        ``k`` above the maximum is clamped; ``k`` below 1 is rejected.

        Raises:
            ValidationError: With a message safe to show the caller.
        """
        settings = self._settings

        if not q:
            raise ValidationError("Missing required parameter: q")
        if len(q) < settings.min_query_length:
            raise ValidationError(
                f"Query must be at least {settings.min_query_length} characters"
            )
        if len(q) > settings.max_query_length:
            raise ValidationError(
                f"Query must be at most {settings.max_query_length} characters"
            )

        if k is None:
            k_value = settings.default_k
        else:
            try:
                parsed = int(k.strip()) if isinstance(k, str) else int(k)
            except ValueError as e:
                raise ValidationError("Parameter k must be a positive integer") from e
            if parsed < 1:
                raise ValidationError("Parameter k must be a positive integer")
            k_value = min(parsed, settings.max_k)

        model_name = model or settings.default_model
        if not MODEL_PATTERN.match(model_name):
            raise ValidationError("Parameter model is not a valid model name")

        return QueryRequest(text=q, k=k_value, model=model_name)

    async def search(
        self,
        q: str | None,
        k: str | int | None = None,
        model: str | None = None,
    ) -> VerseSearchResponse:
        """Validate and run a verse query.

        Raises:
            ValidationError: Invalid parameters.
            EmbeddingError: The embedding provider failed or timed out.
            ContentStoreError: Candidates could not be read.
            InternalError: Anything unanticipated.
        """
        started = time.perf_counter()
        outcome = "error"
        try:
            request = self.validate(q, k, model)
            response = await self._execute(request)
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
            logger.exception("Verse search failed")
            raise InternalError("Verse search failed", details={"error": str(e)}) from e
        finally:
            track_search_request("verses", outcome, time.perf_counter() - started)

    async def _execute(self, request: QueryRequest) -> VerseSearchResponse:
        response = VerseSearchResponse(query=request.text, model=request.model, k=request.k)

        candidates = await self._fetch_candidates(request.model)
        if not candidates:
            logger.info("No candidate vectors", extra={"model": request.model})
            track_verse_ranking(0, None)
            return response

        query_vector = await self._embed_query(request)

        usable = [c for c in candidates if len(c.vector) == len(query_vector)]
        if len(usable) < len(candidates):
            logger.warning(
                "Dropped candidates with mismatched dimensions",
                extra={
                    "model": request.model,
                    "expected": len(query_vector),
                    "dropped": len(candidates) - len(usable),
                },
            )
        if not usable:
            track_verse_ranking(len(candidates), None)
            return response

        ranked = await asyncio.to_thread(
            rank_top_k,
            query_vector,
            [c.candidate_id for c in usable],
            [c.vector for c in usable],
            request.k,
        )

        results = [
            VerseSearchResult.model_validate(
                {
                    **usable[item.index].display,
                    "entity_id": item.candidate_id,
                    "score": item.score,
                }
            )
            for item in ranked
        ]
        response.results = sort_ranked(results, id_attr="entity_id")

        track_verse_ranking(len(candidates), ranked[0].score if ranked else None)
        logger.info(
            "Verse search complete",
            extra={
                "model": request.model,
                "candidates": len(candidates),
                "results": len(response.results),
            },
        )
        return response

    async def _fetch_candidates(self, model: str) -> list[CandidateVector]:
        try:
            return await asyncio.wait_for(
                self._store.find_candidate_vectors(model, self._settings.candidate_limit),
                timeout=self._settings.provider_timeout,
            )
        except TimeoutError as e:
            raise ContentStoreError(
                "Timed out fetching candidate vectors",
                code=ErrorCode.CONTENT_STORE_TIMEOUT,
                details={"model": model},
            ) from e

    async def _embed_query(self, request: QueryRequest) -> list[float]:
        try:
            result = await asyncio.wait_for(
                self._embeddings.embed(request.text, model=request.model),
                timeout=self._settings.provider_timeout,
            )
        except TimeoutError as e:
            raise EmbeddingError(
                "Embedding provider timed out",
                code=ErrorCode.EMBEDDING_TIMEOUT,
                details={"model": request.model},
            ) from e
        return result.embedding

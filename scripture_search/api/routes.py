"""API routes for search.

Query parameters are taken as raw strings and validated by the services, so
bad input yields a 400 ``{error, code}`` body rather than FastAPI's 422.
"""

from fastapi import APIRouter, Depends

from scripture_search.api.dependencies import SearchRuntime, get_runtime
from scripture_search.search.models import EntitySearchResponse, VerseSearchResponse

router = APIRouter(prefix="/api/v1", tags=["Search"])


@router.get(
    "/semantic-search/verses",
    response_model=VerseSearchResponse,
    response_model_by_alias=True,
)
async def search_verses(
    q: str | None = None,
    k: str | None = None,
    model: str | None = None,
    runtime: SearchRuntime = Depends(get_runtime),
) -> VerseSearchResponse:
    """Rank stored verse embeddings against the query."""
    return await runtime.verse_search.search(q, k, model)


@router.get(
    "/search",
    response_model=EntitySearchResponse,
    response_model_by_alias=True,
)
async def search_entities(
    q: str | None = None,
    mode: str | None = None,
    limit: str | None = None,
    types: str | None = None,
    runtime: SearchRuntime = Depends(get_runtime),
) -> EntitySearchResponse:
    """Search content entities, semantically or by keyword."""
    return await runtime.entity_search.search(q, mode, limit, types)

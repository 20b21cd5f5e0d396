"""Query path: verse semantic search and entity search."""

from scripture_search.search.models import (
    EntitySearchResponse,
    QueryRequest,
    SearchMode,
    VerseSearchResponse,
    VerseSearchResult,
)
from scripture_search.search.orchestrator import VerseSearchOrchestrator
from scripture_search.search.service import EntitySearchService

__all__ = [
    "EntitySearchResponse",
    "EntitySearchService",
    "QueryRequest",
    "SearchMode",
    "VerseSearchOrchestrator",
    "VerseSearchResponse",
    "VerseSearchResult",
]

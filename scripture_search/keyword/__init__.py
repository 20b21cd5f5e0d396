"""Keyword fallback search."""

from scripture_search.keyword.models import SearchResult
from scripture_search.keyword.scorer import (
    KeywordSearcher,
    MatchTier,
    match_tier,
    score_match,
)

__all__ = [
    "KeywordSearcher",
    "MatchTier",
    "SearchResult",
    "match_tier",
    "score_match",
]

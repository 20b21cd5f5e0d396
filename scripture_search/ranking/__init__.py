"""Similarity ranking."""

from scripture_search.ranking.kernel import (
    ScoredCandidate,
    cosine_similarity,
    rank_top_k,
    ranking_key,
    score_candidates,
    sort_ranked,
)

__all__ = [
    "ScoredCandidate",
    "cosine_similarity",
    "rank_top_k",
    "ranking_key",
    "score_candidates",
    "sort_ranked",
]

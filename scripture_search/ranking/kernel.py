"""Cosine similarity ranking.

Results are totally ordered by score descending, then candidate id
ascending, so equal inputs always produce the same output order.
"""

import heapq
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

import numpy as np

CandidateId = int | str
T = TypeVar("T")


@dataclass(frozen=True)
class ScoredCandidate:
    """A candidate with its similarity to the query.

    Attributes:
        candidate_id: Identifier used for tie-breaking.
        index: Position of the candidate in the ranked input.
        score: Cosine similarity in [-1, 1].
    """

    candidate_id: CandidateId
    index: int
    score: float


def ranking_key(candidate_id: CandidateId, score: float) -> tuple[float, CandidateId]:
    """Sort key for (score desc, id asc)."""
    return (-score, candidate_id)


def score_candidates(
    query: Sequence[float],
    vectors: Sequence[Sequence[float]],
) -> np.ndarray:
    """Cosine similarity of ``query`` against every row of ``vectors``.

    Each row is reduced on its own, so a candidate's score does not depend on
    which other candidates are in the batch. Zero-norm rows (or a zero-norm
    query) score 0.0.

    Raises:
        ValueError: If any vector's length differs from the query's.
    """
    q = np.asarray(query, dtype=np.float64)
    if q.ndim != 1:
        raise ValueError("query must be a one-dimensional vector")
    if len(vectors) == 0:
        return np.zeros(0, dtype=np.float64)

    matrix = np.asarray(vectors, dtype=np.float64)
    if matrix.ndim != 2 or matrix.shape[1] != q.shape[0]:
        raise ValueError(
            f"dimension mismatch: query has {q.shape[0]}, candidates have shape {matrix.shape}"
        )

    query_norm = float(np.sqrt((q * q).sum()))
    if query_norm == 0.0:
        return np.zeros(matrix.shape[0], dtype=np.float64)

    norms = np.sqrt((matrix * matrix).sum(axis=1))
    dots = (matrix * q).sum(axis=1)
    denom = norms * query_norm

    scores = np.zeros(matrix.shape[0], dtype=np.float64)
    nonzero = denom > 0
    scores[nonzero] = dots[nonzero] / denom[nonzero]
    scores[~np.isfinite(scores)] = 0.0
    return scores


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity of two equal-length vectors (0.0 if either is zero)."""
    return float(score_candidates(a, [b])[0])


def rank_top_k(
    query: Sequence[float],
    candidate_ids: Sequence[CandidateId],
    vectors: Sequence[Sequence[float]],
    k: int,
) -> list[ScoredCandidate]:
    """Top ``k`` candidates by cosine similarity.

    Selection keeps only ``k`` entries on a heap, O(N log k).

    Args:
        query: Query vector.
        candidate_ids: One id per vector. Ids must be mutually comparable.
        vectors: Candidate vectors, same length as the query.
        k: Number of results (at least 1).

    Raises:
        ValueError: On a dimension mismatch, ``k < 1`` or mismatched inputs.
    """
    if k < 1:
        raise ValueError("k must be at least 1")
    if len(candidate_ids) != len(vectors):
        raise ValueError("candidate_ids and vectors must have the same length")
    if not vectors:
        return []

    scores = score_candidates(query, vectors)
    best = heapq.nsmallest(
        k,
        range(len(candidate_ids)),
        key=lambda i: ranking_key(candidate_ids[i], float(scores[i])),
    )
    return [
        ScoredCandidate(candidate_id=candidate_ids[i], index=i, score=float(scores[i]))
        for i in best
    ]


def sort_ranked(
    items: Iterable[T],
    id_attr: str = "candidate_id",
    score_attr: str = "score",
) -> list[T]:
    """Sort result objects into ranking order by attribute name."""

    def key(item: Any) -> tuple[float, CandidateId]:
        return ranking_key(getattr(item, id_attr), getattr(item, score_attr))

    return sorted(items, key=key)

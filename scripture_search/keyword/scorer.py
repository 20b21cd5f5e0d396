"""Keyword fallback scorer.

Used when no vector backend is configured, or when a caller asks for keyword
mode explicitly. Each entity gets its kind's base score plus a bonus for the
best way its display text matches the query (exact, prefix, whole word,
substring).
"""

import asyncio
import re
from collections.abc import Iterable
from enum import IntEnum

from scripture_search.config import KeywordSettings, get_settings
from scripture_search.content.models import EntityKind, SearchableEntity
from scripture_search.content.store import ContentStore
from scripture_search.content.text import display_text
from scripture_search.keyword.models import SearchResult
from scripture_search.logging_config import get_logger

logger = get_logger(__name__)

DESCRIPTION_CHARS = 200


class MatchTier(IntEnum):
    """How well a text matches a query, best last."""

    NONE = 0
    SUBSTRING = 1
    WORD = 2
    PREFIX = 3
    EXACT = 4


def match_tier(text: str, query: str) -> MatchTier:
    """Classify a case-insensitive match of ``query`` in ``text``."""
    lowered = text.lower()
    needle = query.lower()
    if not needle:
        return MatchTier.NONE
    if lowered == needle:
        return MatchTier.EXACT
    if lowered.startswith(needle):
        return MatchTier.PREFIX
    if re.search(rf"\b{re.escape(needle)}\b", lowered):
        return MatchTier.WORD
    if needle in lowered:
        return MatchTier.SUBSTRING
    return MatchTier.NONE


def tier_bonus(tier: MatchTier, settings: KeywordSettings) -> int:
    bonuses = {
        MatchTier.EXACT: settings.exact_bonus,
        MatchTier.PREFIX: settings.prefix_bonus,
        MatchTier.WORD: settings.word_bonus,
        MatchTier.SUBSTRING: settings.substring_bonus,
    }
    return bonuses.get(tier, 0)


def score_match(
    text: str,
    query: str,
    base_score: int,
    settings: KeywordSettings,
) -> int:
    """Base score plus the bonus for the match tier."""
    return base_score + tier_bonus(match_tier(text, query), settings)


def id_order(entity_id: str) -> tuple[int, int, str]:
    """Numeric ids compare as numbers and sort ahead of other ids."""
    if entity_id.isdecimal():
        return (0, int(entity_id), "")
    return (1, 0, entity_id)


def result_order(result: SearchResult) -> tuple[float, str, tuple[int, int, str]]:
    """Sort key for merged entity results: score desc, then kind, then id."""
    return (-result.score, result.kind.value, id_order(result.entity_id))


class KeywordSearcher:
    """Searches every requested kind and merges the scored results."""

    def __init__(
        self,
        content_store: ContentStore,
        settings: KeywordSettings | None = None,
    ) -> None:
        self._store = content_store
        self._settings = settings or get_settings().keyword

    def _to_result(self, entity: SearchableEntity, term: str) -> SearchResult:
        return SearchResult(
            entity_id=entity.id,
            kind=entity.kind,
            title=entity.title,
            description=entity.description[:DESCRIPTION_CHARS],
            slug=entity.slug,
            url=entity.url,
            score=score_match(
                display_text(entity),
                term,
                self._settings.base_score(entity.kind),
                self._settings,
            ),
        )

    async def _search_kind(
        self,
        kind: EntityKind,
        term: str,
        limit: int,
    ) -> list[SearchResult]:
        entities = await self._store.search_entities(kind, term, limit)
        return [self._to_result(entity, term) for entity in entities]

    async def search(
        self,
        query: str,
        limit: int = 20,
        offset: int = 0,
        kinds: Iterable[EntityKind] | None = None,
    ) -> list[SearchResult]:
        """Keyword search across kinds.

        Args:
            query: Free-text query; trimmed and lower-cased.
            limit: Maximum results returned.
            offset: Results to skip after merging.
            kinds: Kinds to search (all when empty or None).

        Returns:
            Results ordered by score desc, kind, id.
        """
        term = query.strip().lower()
        if not term or limit < 1:
            return []

        selected = list(dict.fromkeys(kinds or ())) or list(EntityKind)
        per_kind_limit = offset + limit

        batches = await asyncio.gather(
            *(self._search_kind(kind, term, per_kind_limit) for kind in selected)
        )
        merged = sorted(
            (result for batch in batches for result in batch),
            key=result_order,
        )

        logger.debug(
            "Keyword search complete",
            extra={"kinds": [k.value for k in selected], "matches": len(merged)},
        )
        return merged[offset : offset + limit]

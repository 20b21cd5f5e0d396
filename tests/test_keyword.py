"""Tests for the keyword fallback scorer."""

import pytest

from scripture_search.config import KeywordSettings
from scripture_search.content.models import ContentSnapshot, EntityKind, SearchableEntity
from scripture_search.content.store import InMemoryContentStore
from scripture_search.keyword.scorer import (
    KeywordSearcher,
    MatchTier,
    id_order,
    match_tier,
    score_match,
)


class TestMatchTier:
    """Tests for match classification."""

    @pytest.mark.parametrize(
        ("text", "query", "expected"),
        [
            ("Anxiety", "anxiety", MatchTier.EXACT),
            ("Anxiety and fear", "anxiety", MatchTier.PREFIX),
            ("Overcoming anxiety today", "anxiety", MatchTier.WORD),
            ("Shepherds", "herd", MatchTier.SUBSTRING),
            ("Jerusalem", "peace", MatchTier.NONE),
            ("Jerusalem", "", MatchTier.NONE),
        ],
    )
    def test_tiers(self, text: str, query: str, expected: MatchTier) -> None:
        """Each tier is detected case-insensitively."""
        assert match_tier(text, query) is expected

    def test_regex_characters_escaped(self) -> None:
        """Queries are matched literally."""
        assert match_tier("Psalm 23 (KJV)", "(kjv)") is MatchTier.SUBSTRING


class TestScoreMatch:
    """Tests for score_match."""

    def test_base_plus_bonus(self) -> None:
        """Score is the kind base plus the tier bonus."""
        settings = KeywordSettings()
        assert score_match("David", "david", 55, settings) == 105
        assert score_match("King David", "david", 55, settings) == 75
        assert score_match("Davidson", "david", 55, settings) == 85
        assert score_match("Goliath", "david", 55, settings) == 55

    def test_custom_bonuses(self) -> None:
        """Bonuses come from settings."""
        settings = KeywordSettings(exact_bonus=9, prefix_bonus=7, word_bonus=5, substring_bonus=3)
        assert score_match("grace", "grace", 1, settings) == 10


class TestIdOrder:
    """Tests for the id tie-break key."""

    def test_numeric_ids_compare_as_numbers(self) -> None:
        """Verse 9 sorts before verse 10."""
        assert sorted(["10", "9", "100"], key=id_order) == ["9", "10", "100"]

    def test_text_ids_after_numeric(self) -> None:
        """Non-numeric ids compare as strings after numeric ones."""
        assert sorted(["p2", "7", "n1"], key=id_order) == ["7", "n1", "p2"]


class TestKeywordSearcher:
    """Tests for KeywordSearcher."""

    async def test_exact_title(self, content_store: InMemoryContentStore) -> None:
        """Exact title match scores base plus exact bonus."""
        results = await KeywordSearcher(content_store, KeywordSettings()).search("Anxiety")

        assert [r.entity_id for r in results] == ["s1"]
        assert results[0].score == 110
        assert results[0].url == "/bible-verses-for/anxiety"

    async def test_merges_kinds_by_score(self, content_store: InMemoryContentStore) -> None:
        """Results from different kinds merge in score order."""
        results = await KeywordSearcher(content_store, KeywordSettings()).search("peace")

        assert [(r.kind, r.entity_id, r.score) for r in results] == [
            (EntityKind.PRAYER_POINT, "pp1", 75),
            (EntityKind.SITUATION, "s1", 60),
        ]

    async def test_verses_scored_on_text(self, content_store: InMemoryContentStore) -> None:
        """Verse matches are graded on the verse text."""
        results = await KeywordSearcher(content_store, KeywordSettings()).search(
            "the lord", kinds=[EntityKind.VERSE]
        )

        assert [(r.entity_id, r.score) for r in results] == [("1", 70), ("4", 60)]
        assert results[0].title == "Psalms 1:1"

    async def test_kinds_filter(self, content_store: InMemoryContentStore) -> None:
        """Only the requested kinds are searched."""
        results = await KeywordSearcher(content_store, KeywordSettings()).search(
            "david", kinds=[EntityKind.PLACE]
        )
        assert [r.entity_id for r in results] == ["p1"]

    async def test_offset_and_limit(self, content_store: InMemoryContentStore) -> None:
        """Offset applies after merging."""
        searcher = KeywordSearcher(content_store, KeywordSettings())

        everything = await searcher.search("david")
        second = await searcher.search("david", limit=1, offset=1)

        assert [r.entity_id for r in everything] == ["n1", "p1"]
        assert [r.entity_id for r in second] == ["p1"]

    async def test_ties_order_by_kind_then_id(self) -> None:
        """Equal scores order by kind name, then id."""
        store = InMemoryContentStore(
            ContentSnapshot(
                entities=[
                    SearchableEntity(id="b", kind=EntityKind.SITUATION, slug="b", title="Hope"),
                    SearchableEntity(id="a", kind=EntityKind.SITUATION, slug="a", title="Hope"),
                    SearchableEntity(id="c", kind=EntityKind.PROFESSION, slug="c", title="Hope"),
                ]
            )
        )
        settings = KeywordSettings(
            base_scores={EntityKind.SITUATION: 50, EntityKind.PROFESSION: 50}
        )

        results = await KeywordSearcher(store, settings).search("hope")

        assert [(r.kind.value, r.entity_id) for r in results] == [
            ("profession", "c"),
            ("situation", "a"),
            ("situation", "b"),
        ]

    async def test_long_description_truncated(self) -> None:
        """Descriptions are cut to 200 characters."""
        store = InMemoryContentStore(
            ContentSnapshot(
                entities=[
                    SearchableEntity(
                        id="1",
                        kind=EntityKind.NAME,
                        slug="ruth",
                        title="Ruth",
                        description="x" * 500,
                    )
                ]
            )
        )
        results = await KeywordSearcher(store, KeywordSettings()).search("ruth")
        assert len(results[0].description) == 200

    async def test_blank_query(self, content_store: InMemoryContentStore) -> None:
        """Blank query returns nothing."""
        assert await KeywordSearcher(content_store, KeywordSettings()).search("   ") == []

    async def test_camel_case_serialization(self, content_store: InMemoryContentStore) -> None:
        """Results serialize with camelCase keys."""
        results = await KeywordSearcher(content_store, KeywordSettings()).search("anxiety")
        dumped = results[0].model_dump(by_alias=True)
        assert dumped["entityId"] == "s1"
        assert dumped["kind"] == "situation"

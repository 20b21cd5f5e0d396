"""Pytest configuration and shared fixtures."""

from collections.abc import AsyncGenerator
from datetime import UTC, datetime, timedelta

import pytest
from httpx import ASGITransport, AsyncClient

from scripture_search.api.app import create_app
from scripture_search.api.dependencies import SearchRuntime, build_runtime
from scripture_search.config import (
    EmbeddingSettings,
    IndexingSettings,
    SearchSettings,
    Settings,
    VectorBackend,
)
from scripture_search.content.models import (
    ContentSnapshot,
    EntityKind,
    SearchableEntity,
    VerseEmbeddingRecord,
    VerseRecord,
)
from scripture_search.content.store import InMemoryContentStore
from scripture_search.content.text import content_hash, verse_text
from scripture_search.embeddings.service import MockEmbeddingService, mock_embedding
from scripture_search.exceptions import VectorStoreError
from scripture_search.ranking.kernel import rank_top_k
from scripture_search.vectorstore.models import IndexedItem, VectorMatch
from scripture_search.vectorstore.service import NullVectorStore, VectorStore

TEST_DIMENSIONS = 64
TEST_MODEL = "text-embedding-3-small"
BASE_TIME = datetime(2024, 1, 1, tzinfo=UTC)


class InMemoryVectorStore(VectorStore):
    """Vector store double that ranks with the real kernel.

    ``fail_on_call`` makes the n-th chunk write (1-based) raise.
    """

    backend = VectorBackend.QDRANT
    max_batch_size = 1000

    def __init__(self, fail_on_call: int | None = None) -> None:
        self.items: dict[str, IndexedItem] = {}
        self.upsert_calls = 0
        self.prepared_dimensions: int | None = None
        self.fail_on_call = fail_on_call

    async def prepare(self, dimensions: int) -> None:
        self.prepared_dimensions = dimensions

    async def _upsert_chunk(self, items: list[IndexedItem]) -> int:
        self.upsert_calls += 1
        if self.fail_on_call is not None and self.upsert_calls == self.fail_on_call:
            raise VectorStoreError("simulated upsert failure")
        for item in items:
            self.items[item.id] = item
        return len(items)

    async def query(self, vector: list[float], top_k: int) -> list[VectorMatch]:
        if not self.items:
            return []
        ids = sorted(self.items)
        ranked = rank_top_k(vector, ids, [self.items[i].vector for i in ids], top_k)
        return [
            VectorMatch(
                id=r.candidate_id,
                score=r.score,
                metadata=self.items[r.candidate_id].metadata,
            )
            for r in ranked
        ]


def make_verse(
    verse_id: int,
    text: str,
    book_id: int = 19,
    book_name: str = "Psalms",
    chapter: int = 1,
    updated_at: datetime | None = None,
) -> VerseRecord:
    return VerseRecord(
        id=verse_id,
        book_id=book_id,
        book_name=book_name,
        book_slug=book_name.lower(),
        chapter=chapter,
        verse_number=verse_id,
        text_kjv=text,
        updated_at=updated_at or BASE_TIME,
    )


def embed_verse(
    verse: VerseRecord,
    model: str = TEST_MODEL,
    dimensions: int = TEST_DIMENSIONS,
    updated_at: datetime | None = None,
) -> VerseEmbeddingRecord:
    """Stored embedding for a verse, as the generator would write it."""
    text = verse_text(verse)
    vector = mock_embedding(text, dimensions)
    return VerseEmbeddingRecord(
        verse_id=verse.id,
        model=model,
        dims=dimensions,
        vector=vector,
        content_hash=content_hash(model, text),
        updated_at=updated_at or BASE_TIME,
    )


SAMPLE_VERSES = [
    make_verse(1, "The LORD is my shepherd; I shall not want."),
    make_verse(2, "God is our refuge and strength, a very present help in trouble."),
    make_verse(3, "Be still, and know that I am God."),
    make_verse(4, "Cast thy burden upon the LORD, and he shall sustain thee."),
]

SAMPLE_ENTITIES = [
    SearchableEntity(
        id="s1",
        kind=EntityKind.SITUATION,
        slug="anxiety",
        title="Anxiety",
        description="Verses for anxious hearts",
        body="Peace that passes understanding.",
    ),
    SearchableEntity(
        id="s2",
        kind=EntityKind.SITUATION,
        slug="grief",
        title="Grief and loss",
        description="Comfort for those who mourn",
    ),
    SearchableEntity(
        id="p1",
        kind=EntityKind.PLACE,
        slug="jerusalem",
        title="Jerusalem",
        description="The holy city",
        extra_fields={"country": "Israel", "biblical_context": "City of David"},
        priority=10,
    ),
    SearchableEntity(
        id="pp1",
        kind=EntityKind.PRAYER_POINT,
        slug="prayer-for-peace",
        title="Prayer for peace",
        description="Ask for peace in anxious times",
        extra_fields={"opening_prayer": "Lord, grant us peace."},
    ),
    SearchableEntity(
        id="n1",
        kind=EntityKind.NAME,
        slug="david",
        title="David",
        description="Beloved",
        extra_fields={"character_description": "King of Israel"},
    ),
    SearchableEntity(
        id="draft",
        kind=EntityKind.SITUATION,
        slug="unpublished",
        title="Anxiety draft",
        published=False,
    ),
]


@pytest.fixture
def settings() -> Settings:
    """Settings with small mock vectors and no vector backend."""
    return Settings(
        embedding=EmbeddingSettings(dimensions=TEST_DIMENSIONS),
        search=SearchSettings(),
        indexing=IndexingSettings(batch_size=2, checkpoint_path=None),
    )


@pytest.fixture
def embedding_service(settings: Settings) -> MockEmbeddingService:
    return MockEmbeddingService(settings.embedding)


@pytest.fixture
def snapshot() -> ContentSnapshot:
    return ContentSnapshot(
        entities=list(SAMPLE_ENTITIES),
        verses=list(SAMPLE_VERSES),
        verse_embeddings=[embed_verse(v) for v in SAMPLE_VERSES],
    )


@pytest.fixture
def content_store(snapshot: ContentSnapshot) -> InMemoryContentStore:
    return InMemoryContentStore(snapshot)


@pytest.fixture
def vector_store() -> InMemoryVectorStore:
    return InMemoryVectorStore()


@pytest.fixture
def runtime(
    settings: Settings,
    content_store: InMemoryContentStore,
    embedding_service: MockEmbeddingService,
) -> SearchRuntime:
    """Runtime with no vector backend, like a default deployment."""
    return build_runtime(
        settings,
        content_store=content_store,
        embedding_service=embedding_service,
        vector_store=NullVectorStore(),
    )


@pytest.fixture
async def client(runtime: SearchRuntime) -> AsyncGenerator[AsyncClient, None]:
    """Create async test client for FastAPI app.

    Yields:
        AsyncClient configured for testing.
    """
    transport = ASGITransport(app=create_app(runtime))
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def recent(minutes: int) -> datetime:
    """A timestamp ``minutes`` after the base time."""
    return BASE_TIME + timedelta(minutes=minutes)

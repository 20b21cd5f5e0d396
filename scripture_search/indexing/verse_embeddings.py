"""Verse embedding generator.

Keeps the stored verse vectors that the verse search ranks. Each verse is
embedded from its normalized display text; a verse whose stored embedding
has the same model and content hash is skipped, so reruns only touch verses
whose text changed.
"""

from dataclasses import dataclass

from pydantic import BaseModel

from scripture_search.config import IndexingSettings, get_settings
from scripture_search.content.models import VerseEmbeddingRecord
from scripture_search.content.store import ContentStore
from scripture_search.content.text import content_hash, verse_text
from scripture_search.embeddings.service import EmbeddingService
from scripture_search.exceptions import (
    ContentStoreError,
    EmbeddingError,
    ErrorCode,
    IndexingError,
    ValidationError,
)
from scripture_search.logging_config import get_logger
from scripture_search.observability.metrics import track_indexed_items

logger = get_logger(__name__)

MAX_LIMIT = 1000


@dataclass
class PlannedVerse:
    verse_id: int
    text: str
    content_hash: str


class GenerationStats(BaseModel):
    """Counters for one generator run."""

    model: str
    planned: int = 0
    processed: int = 0
    skipped: int = 0
    written: int = 0
    errors: int = 0


class VerseEmbeddingGenerator:
    """Embeds verses whose stored vectors are missing or stale."""

    def __init__(
        self,
        content_store: ContentStore,
        embedding_service: EmbeddingService,
        settings: IndexingSettings | None = None,
    ) -> None:
        self._store = content_store
        self._embeddings = embedding_service
        self._settings = settings or get_settings().indexing

    async def plan(
        self,
        model: str,
        limit: int,
        since_id: int | None = None,
    ) -> tuple[list[PlannedVerse], int]:
        """Select up to ``limit`` verses needing an embedding, by ascending id.

        Returns:
            The verses to embed and how many up-to-date verses were passed over.
        """
        planned: list[PlannedVerse] = []
        skipped = 0
        cursor = since_id

        while len(planned) < limit:
            verses = await self._store.list_verses(since_id=cursor, limit=limit)
            if not verses:
                break
            cursor = verses[-1].id

            candidates: list[PlannedVerse] = []
            for verse in verses:
                text = verse_text(verse)
                if text:
                    candidates.append(PlannedVerse(verse.id, text, content_hash(model, text)))

            existing = await self._store.get_verse_embeddings(
                [c.verse_id for c in candidates],
                model,
            )
            for candidate in candidates:
                stored = existing.get(candidate.verse_id)
                if stored is not None and stored.content_hash == candidate.content_hash:
                    skipped += 1
                    continue
                planned.append(candidate)
                if len(planned) >= limit:
                    break

        return planned, skipped

    async def run(
        self,
        model: str | None = None,
        limit: int | None = None,
        since_id: int | None = None,
        dry_run: bool = False,
    ) -> GenerationStats:
        """Generate and store embeddings.

        Args:
            model: Embedding model (defaults to the service's model).
            limit: Maximum verses to embed (capped at 1000).
            since_id: Only consider verses with a greater id.
            dry_run: Plan and report without embedding or writing.

        Raises:
            IndexingError: If writing embeddings fails.
        """
        model = model or self._embeddings.model_name
        limit = min(limit or self._settings.verse_limit, MAX_LIMIT)
        stats = GenerationStats(model=model)

        planned, stats.skipped = await self.plan(model, limit, since_id)
        stats.planned = len(planned)
        logger.info(
            f"{len(planned)} verses need embeddings",
            extra={"model": model, "skipped": stats.skipped, "dry_run": dry_run},
        )

        if dry_run or not planned:
            stats.processed = len(planned)
            return stats

        batch_size = self._settings.batch_size
        for start in range(0, len(planned), batch_size):
            batch = planned[start : start + batch_size]
            try:
                vectors = await self._embeddings.embed_batch([p.text for p in batch], model=model)
            except (EmbeddingError, ValidationError) as e:
                stats.errors += len(batch)
                logger.error(
                    "Embedding batch failed",
                    extra={"first_verse_id": batch[0].verse_id, "error": e.message},
                )
                continue

            records = [
                VerseEmbeddingRecord(
                    verse_id=item.verse_id,
                    model=model,
                    dims=len(vector.embedding),
                    vector=vector.embedding,
                    content_hash=item.content_hash,
                )
                for item, vector in zip(batch, vectors, strict=True)
            ]
            try:
                stats.written += await self._store.upsert_verse_embeddings(records)
            except ContentStoreError as e:
                raise IndexingError(
                    f"Failed to write verse embeddings: {e.message}",
                    code=ErrorCode.UPSERT_FAILED,
                    details={"first_verse_id": batch[0].verse_id, "written": stats.written},
                ) from e
            stats.processed += len(batch)

        track_indexed_items("verse_embedding", "indexed", stats.written)
        track_indexed_items("verse_embedding", "error", stats.errors)
        logger.info("Verse embedding run finished", extra=stats.model_dump())
        return stats

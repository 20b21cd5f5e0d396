"""Offline indexing pipeline.

Embeds published content and upserts it into the vector store, one kind at a
time per worker. Batches within a kind run strictly in order and progress is
checkpointed after each successful upsert, so an interrupted run resumes
where it stopped. Kinds that finish cleanly are dropped from the checkpoint,
so the next run re-indexes them from the start and picks up edited content.
Upserts are keyed by ``"{kind}:{id}"``, so re-running is idempotent.
"""

import asyncio
from collections.abc import Iterable
from typing import Any

from scripture_search.config import IndexingSettings, get_settings
from scripture_search.content.models import EntityKind, SearchableEntity
from scripture_search.content.store import ContentStore
from scripture_search.content.text import build_search_text
from scripture_search.embeddings.models import EmbeddingVector
from scripture_search.embeddings.service import EmbeddingService
from scripture_search.exceptions import (
    ContentStoreError,
    EmbeddingError,
    ErrorCode,
    IndexingError,
    ValidationError,
    VectorStoreError,
)
from scripture_search.indexing.models import IndexingCheckpoint, IndexingReport, KindReport
from scripture_search.logging_config import get_logger
from scripture_search.observability.metrics import track_indexed_items
from scripture_search.vectorstore.models import IndexedItem
from scripture_search.vectorstore.service import VectorStore

logger = get_logger(__name__)

METADATA_DESCRIPTION_CHARS = 500


def entity_metadata(entity: SearchableEntity) -> dict[str, Any]:
    """Display metadata stored alongside an entity's vector."""
    return {
        "kind": entity.kind.value,
        "entity_id": entity.id,
        "title": entity.title,
        "description": entity.description[:METADATA_DESCRIPTION_CHARS],
        "slug": entity.slug,
        "url": entity.url,
    }


class IndexingPipeline:
    """Indexes content kinds into the vector store."""

    def __init__(
        self,
        content_store: ContentStore,
        embedding_service: EmbeddingService,
        vector_store: VectorStore,
        settings: IndexingSettings | None = None,
        checkpoint: IndexingCheckpoint | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            content_store: Source of published entities.
            embedding_service: Embeds canonical search text.
            vector_store: Destination store.
            settings: Indexing configuration.
            checkpoint: Progress to resume from. Loaded from
                ``settings.checkpoint_path`` when omitted.
        """
        self._store = content_store
        self._embeddings = embedding_service
        self._vector_store = vector_store
        self._settings = settings or get_settings().indexing
        self._checkpoint = checkpoint or IndexingCheckpoint.load(self._settings.checkpoint_path)

    @property
    def checkpoint(self) -> IndexingCheckpoint:
        return self._checkpoint

    def _persist(self) -> None:
        if self._settings.checkpoint_path is not None:
            self._checkpoint.save(self._settings.checkpoint_path)

    def _release_finished(self, report: IndexingReport) -> None:
        finished = [kind for kind, r in report.kinds.items() if r.error is None]
        if not finished:
            return
        for kind in finished:
            self._checkpoint.forget(kind)
        path = self._settings.checkpoint_path
        if path is None:
            return
        if self._checkpoint.is_empty:
            IndexingCheckpoint.discard(path)
        else:
            self._checkpoint.save(path)

    async def run(self, kinds: Iterable[EntityKind] | None = None) -> IndexingReport:
        """Index every requested kind.

        Kinds run concurrently up to ``max_workers``. A kind whose upsert
        fails is reported with its resume offset; other kinds continue.

        Raises:
            VectorStoreError: If the store cannot be prepared (including
                when no vector backend is configured).
        """
        selected = list(dict.fromkeys(kinds or self._settings.kinds))
        await self._vector_store.prepare(self._embeddings.dimensions)

        semaphore = asyncio.Semaphore(self._settings.max_workers)

        async def guarded(kind: EntityKind) -> KindReport:
            async with semaphore:
                return await self._index_kind_reporting(kind)

        reports = await asyncio.gather(*(guarded(kind) for kind in selected))
        report = IndexingReport(kinds={r.kind: r for r in reports})
        self._release_finished(report)

        logger.info(
            "Indexing run finished",
            extra={
                "indexed": report.total_indexed,
                "skipped": report.total_skipped,
                "failed_kinds": [k.value for k in report.failed_kinds],
            },
        )
        return report

    async def _index_kind_reporting(self, kind: EntityKind) -> KindReport:
        report = KindReport(kind=kind)
        try:
            await self.index_kind(kind, report)
        except IndexingError as e:
            report.error = e.message
            report.resume_offset = e.details.get("offset")
            logger.error(
                f"Indexing failed for {kind.value}",
                extra={"kind": kind.value, "offset": report.resume_offset},
            )
        return report

    async def index_kind(self, kind: EntityKind, report: KindReport | None = None) -> KindReport:
        """Index one kind from its checkpointed offset to the end.

        Raises:
            IndexingError: If a page cannot be read or an upsert fails.
                ``details["offset"]`` is where a rerun resumes.
        """
        report = report or KindReport(kind=kind)
        if self._checkpoint.is_complete(kind):
            logger.info(f"Skipping {kind.value}: already complete", extra={"kind": kind.value})
            report.completed = True
            return report

        batch_size = self._settings.batch_size
        offset = self._checkpoint.offset(kind)
        logger.info(f"Indexing {kind.value}", extra={"kind": kind.value, "offset": offset})

        while True:
            try:
                entities = await self._store.list_entities(kind, offset, batch_size)
            except ContentStoreError as e:
                raise IndexingError(
                    f"Failed to read {kind.value} records: {e.message}",
                    details={"kind": kind.value, "offset": offset},
                ) from e
            if not entities:
                break

            items, skipped = await self._embed_entities(entities)
            if items:
                try:
                    await self._vector_store.upsert(items)
                except VectorStoreError as e:
                    raise IndexingError(
                        f"Upsert failed for {kind.value}: {e.message}",
                        code=ErrorCode.UPSERT_FAILED,
                        details={"kind": kind.value, "offset": offset},
                    ) from e

            offset += len(entities)
            report.indexed += len(items)
            report.skipped += skipped
            report.batches += 1
            track_indexed_items(kind.value, "indexed", len(items))
            track_indexed_items(kind.value, "skipped", skipped)

            self._checkpoint.advance(kind, offset)
            self._persist()
            logger.info(
                f"Indexed {report.indexed} {kind.value} records",
                extra={"kind": kind.value, "offset": offset},
            )

            if len(entities) < batch_size:
                break

        self._checkpoint.mark_complete(kind)
        self._persist()
        report.completed = True
        return report

    async def _embed_entities(
        self,
        entities: list[SearchableEntity],
    ) -> tuple[list[IndexedItem], int]:
        """Embed a batch, falling back to one call per entity on failure.

        Returns:
            Items ready to upsert and the number of entities skipped.
        """
        pending: list[tuple[SearchableEntity, str]] = []
        skipped = 0
        for entity in entities:
            text = build_search_text(entity)
            if text:
                pending.append((entity, text))
            else:
                skipped += 1
                logger.warning("Skipping entity without text", extra={"id": entity.index_id})

        if not pending:
            return [], skipped

        embedded: list[tuple[SearchableEntity, EmbeddingVector]] = []
        try:
            vectors = await self._embeddings.embed_batch([text for _, text in pending])
            embedded = [(entity, vector) for (entity, _), vector in zip(pending, vectors, strict=True)]
        except (EmbeddingError, ValidationError) as e:
            logger.warning(
                "Batch embedding failed, embedding individually",
                extra={"size": len(pending), "error": e.message},
            )
            for entity, text in pending:
                try:
                    embedded.append((entity, await self._embeddings.embed(text)))
                except (EmbeddingError, ValidationError) as err:
                    skipped += 1
                    logger.warning(
                        "Skipping entity after embedding failure",
                        extra={"id": entity.index_id, "error": err.message},
                    )

        items = [
            IndexedItem(
                id=entity.index_id,
                vector=vector.embedding,
                metadata=entity_metadata(entity),
            )
            for entity, vector in embedded
        ]
        return items, skipped

"""Content store interface and the snapshot-backed in-memory implementation.

The production content tables belong to the site's content-management side.
The service only needs the read operations below plus verse-embedding writes,
so any database adapter implementing ``ContentStore`` can be plugged in.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from scripture_search.content.models import (
    URL_PREFIXES,
    CandidateVector,
    ContentSnapshot,
    EntityKind,
    SearchableEntity,
    VerseEmbeddingRecord,
    VerseRecord,
)
from scripture_search.content.text import KEYWORD_FIELDS, verse_text
from scripture_search.exceptions import ContentStoreError
from scripture_search.logging_config import get_logger

logger = get_logger(__name__)


class ContentStore(ABC):
    """Read access to published content plus verse-embedding storage."""

    @abstractmethod
    async def find_candidate_vectors(self, model: str, limit: int) -> list[CandidateVector]:
        """Stored verse vectors for ``model``, newest first, at most ``limit``.

        Ties on update time are broken by ascending verse id.
        """
        ...

    @abstractmethod
    async def list_entities(
        self,
        kind: EntityKind,
        offset: int,
        limit: int,
    ) -> list[SearchableEntity]:
        """One page of published entities of ``kind`` in a stable order."""
        ...

    @abstractmethod
    async def search_entities(
        self,
        kind: EntityKind,
        term: str,
        limit: int,
    ) -> list[SearchableEntity]:
        """Published entities whose keyword fields contain ``term``."""
        ...

    @abstractmethod
    async def list_verses(
        self,
        since_id: int | None = None,
        limit: int | None = None,
    ) -> list[VerseRecord]:
        """Verses ordered by id, optionally only those after ``since_id``."""
        ...

    @abstractmethod
    async def get_verse_embeddings(
        self,
        verse_ids: list[int],
        model: str,
    ) -> dict[int, VerseEmbeddingRecord]:
        """Stored embeddings for the given verses and model, keyed by verse id."""
        ...

    @abstractmethod
    async def upsert_verse_embeddings(self, records: list[VerseEmbeddingRecord]) -> int:
        """Insert or replace embeddings (one per verse). Returns rows written."""
        ...


def _updated_desc(entity: SearchableEntity) -> tuple[float, str]:
    return (-entity.updated_at.timestamp(), entity.id)


def _priority_desc(entity: SearchableEntity) -> tuple[int, str]:
    return (-entity.priority, entity.id)


def _title_asc(entity: SearchableEntity) -> tuple[str, str]:
    return (entity.title, entity.id)


# Ordering of keyword matches per kind before truncation to ``limit``.
_SEARCH_ORDER: dict[EntityKind, Callable[[SearchableEntity], Any]] = {
    EntityKind.SITUATION: _updated_desc,
    EntityKind.PRAYER_POINT: _priority_desc,
    EntityKind.PLACE: _priority_desc,
    EntityKind.PROFESSION: _updated_desc,
    EntityKind.NAME: _title_asc,
}


class InMemoryContentStore(ContentStore):
    """Content store over a ``ContentSnapshot`` held in memory.

    Used for development, the offline scripts and tests. Snapshots are
    plain JSON so they can be exported from the site database.
    """

    def __init__(self, snapshot: ContentSnapshot | None = None) -> None:
        snapshot = snapshot or ContentSnapshot()
        self._entities: dict[EntityKind, list[SearchableEntity]] = {}
        for entity in snapshot.entities:
            self._entities.setdefault(entity.kind, []).append(entity)
        self._verses: dict[int, VerseRecord] = {v.id: v for v in snapshot.verses}
        self._embeddings: dict[int, VerseEmbeddingRecord] = {
            e.verse_id: e for e in snapshot.verse_embeddings
        }

    @classmethod
    def from_file(cls, path: Path) -> "InMemoryContentStore":
        """Load a JSON snapshot.

        Raises:
            ContentStoreError: If the file is missing or malformed.
        """
        try:
            snapshot = ContentSnapshot.model_validate_json(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise ContentStoreError(
                f"Cannot read content snapshot: {e}",
                details={"path": str(path)},
            ) from e
        except PydanticValidationError as e:
            raise ContentStoreError(
                f"Invalid content snapshot: {e.error_count()} errors",
                details={"path": str(path)},
            ) from e

        logger.info(
            "Loaded content snapshot",
            extra={
                "path": str(path),
                "entities": len(snapshot.entities),
                "verses": len(snapshot.verses),
                "verse_embeddings": len(snapshot.verse_embeddings),
            },
        )
        return cls(snapshot)

    def snapshot(self) -> ContentSnapshot:
        """Current contents as a snapshot."""
        return ContentSnapshot(
            entities=[e for group in self._entities.values() for e in group],
            verses=sorted(self._verses.values(), key=lambda v: v.id),
            verse_embeddings=sorted(self._embeddings.values(), key=lambda e: e.verse_id),
        )

    def save(self, path: Path) -> None:
        """Write the current contents back to a JSON snapshot."""
        try:
            path.write_text(self.snapshot().model_dump_json(), encoding="utf-8")
        except OSError as e:
            raise ContentStoreError(
                f"Cannot write content snapshot: {e}",
                details={"path": str(path)},
            ) from e

    async def find_candidate_vectors(self, model: str, limit: int) -> list[CandidateVector]:
        records = [
            record
            for record in self._embeddings.values()
            if record.model == model and record.verse_id in self._verses
        ]
        records.sort(key=lambda r: (-r.updated_at.timestamp(), r.verse_id))

        candidates: list[CandidateVector] = []
        for record in records[:limit]:
            verse = self._verses[record.verse_id]
            candidates.append(
                CandidateVector(
                    candidate_id=verse.id,
                    vector=record.vector,
                    display={
                        "book_id": verse.book_id,
                        "book_name": verse.book_name,
                        "book_slug": verse.book_slug,
                        "chapter": verse.chapter,
                        "verse_number": verse.verse_number,
                        "reference": verse.reference,
                        "url": f"{URL_PREFIXES[EntityKind.VERSE]}/{verse.slug}",
                        "text": verse_text(verse),
                    },
                )
            )
        return candidates

    def _verse_entities(self, verses: Iterable[VerseRecord]) -> list[SearchableEntity]:
        entities: list[SearchableEntity] = []
        for verse in verses:
            text = verse_text(verse)
            if text:
                entities.append(verse.to_entity(text))
        return entities

    async def list_entities(
        self,
        kind: EntityKind,
        offset: int,
        limit: int,
    ) -> list[SearchableEntity]:
        if kind is EntityKind.VERSE:
            verses = sorted(self._verses.values(), key=lambda v: v.id)
            return self._verse_entities(verses)[offset : offset + limit]

        published = [e for e in self._entities.get(kind, []) if e.published]
        published.sort(key=lambda e: (e.slug, e.id))
        return published[offset : offset + limit]

    async def search_entities(
        self,
        kind: EntityKind,
        term: str,
        limit: int,
    ) -> list[SearchableEntity]:
        needle = term.strip().lower()
        if not needle:
            return []

        if kind is EntityKind.VERSE:
            verses = sorted(
                self._verses.values(),
                key=lambda v: (v.book_id, v.chapter, v.verse_number),
            )
            matching = [
                v
                for v in verses
                if any(needle in (t or "").lower() for t in (v.text_kjv, v.text_web))
            ]
            return self._verse_entities(matching)[:limit]

        fields = KEYWORD_FIELDS[kind]
        matches = [
            entity
            for entity in self._entities.get(kind, [])
            if entity.published
            and any(needle in (entity.text_field(name) or "").lower() for name in fields)
        ]
        matches.sort(key=_SEARCH_ORDER[kind])
        return matches[:limit]

    async def list_verses(
        self,
        since_id: int | None = None,
        limit: int | None = None,
    ) -> list[VerseRecord]:
        verses = sorted(self._verses.values(), key=lambda v: v.id)
        if since_id is not None:
            verses = [v for v in verses if v.id > since_id]
        if limit is not None:
            verses = verses[:limit]
        return verses

    async def get_verse_embeddings(
        self,
        verse_ids: list[int],
        model: str,
    ) -> dict[int, VerseEmbeddingRecord]:
        found: dict[int, VerseEmbeddingRecord] = {}
        for verse_id in verse_ids:
            record = self._embeddings.get(verse_id)
            if record is not None and record.model == model:
                found[verse_id] = record
        return found

    async def upsert_verse_embeddings(self, records: list[VerseEmbeddingRecord]) -> int:
        for record in records:
            if record.verse_id not in self._verses:
                raise ContentStoreError(
                    f"Unknown verse: {record.verse_id}",
                    details={"verse_id": record.verse_id},
                )
            self._embeddings[record.verse_id] = record
        return len(records)

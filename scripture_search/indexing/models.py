"""Indexing progress and report models."""

from pathlib import Path

from pydantic import BaseModel, Field

from scripture_search.content.models import EntityKind
from scripture_search.exceptions import IndexingError


class IndexingCheckpoint(BaseModel):
    """Per-kind progress of the indexing pipeline.

    ``offsets`` holds the number of records already indexed for each kind,
    which is where a later run resumes. A kind's progress is dropped once a
    run finishes it without error, so the checkpoint only outlives failed runs.
    """

    offsets: dict[EntityKind, int] = Field(default_factory=dict)
    completed: list[EntityKind] = Field(default_factory=list)

    @classmethod
    def load(cls, path: Path | None) -> "IndexingCheckpoint":
        """Load a checkpoint, or start fresh if ``path`` is unset or missing."""
        if path is None or not path.exists():
            return cls()
        try:
            return cls.model_validate_json(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise IndexingError(
                f"Cannot read checkpoint: {e}",
                details={"path": str(path)},
            ) from e

    def save(self, path: Path) -> None:
        try:
            path.write_text(self.model_dump_json(indent=2), encoding="utf-8")
        except OSError as e:
            raise IndexingError(
                f"Cannot write checkpoint: {e}",
                details={"path": str(path)},
            ) from e

    def offset(self, kind: EntityKind) -> int:
        return self.offsets.get(kind, 0)

    def advance(self, kind: EntityKind, offset: int) -> None:
        self.offsets[kind] = offset

    def mark_complete(self, kind: EntityKind) -> None:
        if kind not in self.completed:
            self.completed.append(kind)

    def is_complete(self, kind: EntityKind) -> bool:
        return kind in self.completed

    def forget(self, kind: EntityKind) -> None:
        """Drop all progress for ``kind`` so the next run starts it afresh."""
        self.offsets.pop(kind, None)
        if kind in self.completed:
            self.completed.remove(kind)

    @property
    def is_empty(self) -> bool:
        return not self.offsets and not self.completed

    @staticmethod
    def discard(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise IndexingError(
                f"Cannot remove checkpoint: {e}",
                details={"path": str(path)},
            ) from e


class KindReport(BaseModel):
    """Outcome of indexing one kind."""

    kind: EntityKind
    indexed: int = 0
    skipped: int = 0
    batches: int = 0
    completed: bool = False
    error: str | None = None
    resume_offset: int | None = None


class IndexingReport(BaseModel):
    """Outcome of a pipeline run."""

    kinds: dict[EntityKind, KindReport] = Field(default_factory=dict)

    @property
    def total_indexed(self) -> int:
        return sum(r.indexed for r in self.kinds.values())

    @property
    def total_skipped(self) -> int:
        return sum(r.skipped for r in self.kinds.values())

    @property
    def failed_kinds(self) -> list[EntityKind]:
        return [kind for kind, r in self.kinds.items() if r.error is not None]

    @property
    def succeeded(self) -> bool:
        return not self.failed_kinds

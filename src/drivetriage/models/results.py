"""Result models for bulk export and batch trash."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional


@dataclass(slots=True)
class ExportFailure:
    """An item that no fallback tier could fetch."""

    item_id: str
    error_type: str
    message: str


@dataclass(slots=True)
class ChunkResult:
    """Outcome of one export chunk. `archive` is None when nothing succeeded."""

    index: int
    item_ids: list[str]
    archive: Optional[bytes] = None
    entries: list[str] = field(default_factory=list)
    errors: list[ExportFailure] = field(default_factory=list)


@dataclass(slots=True)
class ExportResult:
    """Aggregate result of a bulk export job."""

    chunks: list[ChunkResult] = field(default_factory=list)

    @property
    def archives(self) -> list[bytes]:
        return [c.archive for c in self.chunks if c.archive is not None]

    @property
    def failures(self) -> list[ExportFailure]:
        return [f for c in self.chunks for f in c.errors]

    @property
    def summary(self) -> dict[str, int]:
        return {
            "chunks": len(self.chunks),
            "archives": len(self.archives),
            "exported": sum(len(c.entries) for c in self.chunks),
            "failed": len(self.failures),
        }


@dataclass(slots=True)
class DeleteResult:
    """
    Outcome of removing item ids from a Drive folder.

    `deleted` holds items moved to the Drive trash. `deleted` and `missing`
    (already gone remotely) are both safe to forget locally; `failed` maps
    item id -> error message and must keep its mark.
    """

    deleted: list[str] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def removed(self) -> list[str]:
        return self.deleted + self.missing

    def extend(self, other: "DeleteResult") -> None:
        self.deleted.extend(other.deleted)
        self.missing.extend(other.missing)
        self.failed.update(other.failed)

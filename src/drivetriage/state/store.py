"""TriageStateStore: per-folder marks and view settings, persisted locally."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol
from urllib.parse import quote

from drivetriage.models import FilterMode, Mark, TriageState

logger = logging.getLogger(__name__)


class StateBackend(Protocol):
    """Raw record storage keyed by folder id."""

    def read(self, folder_id: str) -> Optional[str]: ...

    def write(self, folder_id: str, payload: str) -> None: ...


class MemoryStateBackend:
    """Keeps records in a dict; nothing survives the process."""

    def __init__(self) -> None:
        self.records: dict[str, str] = {}

    def read(self, folder_id: str) -> Optional[str]:
        return self.records.get(folder_id)

    def write(self, folder_id: str, payload: str) -> None:
        self.records[folder_id] = payload


class FileStateBackend:
    """One JSON file per folder under `state_dir`, replaced atomically on write."""

    def __init__(self, state_dir: Path | str) -> None:
        self.state_dir = Path(state_dir)

    def path_for(self, folder_id: str) -> Path:
        return self.state_dir / f"ps_{quote(folder_id, safe='')}.json"

    def read(self, folder_id: str) -> Optional[str]:
        path = self.path_for(folder_id)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("Could not read triage state %s: %s", path, exc)
            return None

    def write(self, folder_id: str, payload: str) -> None:
        self.state_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(folder_id)
        fd, tmp = tempfile.mkstemp(dir=self.state_dir, prefix=path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.write("\n")
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise


class TriageStateStore:
    """
    Load/save TriageState per folder id.

    All operations are synchronous and local. A missing or corrupt record
    loads as the default empty state; it is never reported as an error.
    Mutating helpers reload, change and save in one step so that two
    overlapping user actions cannot lose each other's update.
    """

    def __init__(self, backend: StateBackend) -> None:
        self._backend = backend

    @classmethod
    def in_directory(cls, state_dir: Path | str) -> "TriageStateStore":
        return cls(FileStateBackend(state_dir))

    @classmethod
    def in_memory(cls) -> "TriageStateStore":
        return cls(MemoryStateBackend())

    def load(self, folder_id: str) -> TriageState:
        raw = self._backend.read(folder_id)
        if raw is None:
            return TriageState()
        try:
            return TriageState.from_dict(json.loads(raw))
        except (ValueError, TypeError) as exc:
            logger.warning("Corrupt triage state for folder %s, using defaults: %s", folder_id, exc)
            return TriageState()

    def save(self, folder_id: str, state: TriageState) -> None:
        """Full overwrite; last writer wins."""
        self._backend.write(folder_id, json.dumps(state.to_dict()))

    def update(self, folder_id: str, fn: Callable[[TriageState], None]) -> TriageState:
        state = self.load(folder_id)
        fn(state)
        self.save(folder_id, state)
        return state

    # ----------------------------
    # Marks
    # ----------------------------
    def set_mark(self, folder_id: str, item_id: str, mark: Optional[Mark]) -> TriageState:
        """Set KEEP/DECLINE, or clear the explicit mark with None (soft-touch is kept)."""

        def apply(state: TriageState) -> None:
            if mark is None:
                state.marks.pop(item_id, None)
            else:
                state.marks[item_id] = Mark(mark)

        return self.update(folder_id, apply)

    def set_soft(self, folder_id: str, item_id: str) -> TriageState:
        """Flag an undecided item as looked-at. No-op if it carries an explicit mark."""

        def apply(state: TriageState) -> None:
            if item_id not in state.marks:
                state.soft_touched.add(item_id)

        return self.update(folder_id, apply)

    def clear_marks(self, folder_id: str, item_ids: Iterable[str]) -> TriageState:
        """Forget marks and soft-touches of items that no longer exist remotely."""
        ids = set(item_ids)

        def apply(state: TriageState) -> None:
            for item_id in ids:
                state.marks.pop(item_id, None)
            state.soft_touched.difference_update(ids)

        return self.update(folder_id, apply)

    def ids_with_mark(self, folder_id: str, mark: Mark) -> list[str]:
        state = self.load(folder_id)
        return [item_id for item_id, m in state.marks.items() if m is mark]

    # ----------------------------
    # View settings
    # ----------------------------
    def set_filter(self, folder_id: str, mode: FilterMode) -> TriageState:
        def apply(state: TriageState) -> None:
            state.filter_mode = FilterMode(mode)

        return self.update(folder_id, apply)

    def set_hide_processed(self, folder_id: str, hide: bool) -> TriageState:
        def apply(state: TriageState) -> None:
            state.hide_processed = bool(hide)

        return self.update(folder_id, apply)

    def set_position(self, folder_id: str, page_index: int, cursor: Optional[str]) -> TriageState:
        """Remember the page being viewed; `cursor` is recorded, never replayed."""

        def apply(state: TriageState) -> None:
            state.page_index = page_index
            state.cursor = cursor

        return self.update(folder_id, apply)

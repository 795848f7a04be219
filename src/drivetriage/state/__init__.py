"""Per-folder triage state persistence."""

from __future__ import annotations

from .store import FileStateBackend, MemoryStateBackend, StateBackend, TriageStateStore

__all__ = [
    "TriageStateStore",
    "StateBackend",
    "FileStateBackend",
    "MemoryStateBackend",
]

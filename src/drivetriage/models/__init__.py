"""Public model exports for drivetriage."""

from __future__ import annotations

from .item import Page, RemoteItem, RemotePage
from .results import ChunkResult, DeleteResult, ExportFailure, ExportResult
from .triage import DownloadUrlCacheEntry, FilterMode, Mark, TriageState

__all__ = [
    "RemoteItem",
    "Page",
    "RemotePage",
    "Mark",
    "FilterMode",
    "TriageState",
    "DownloadUrlCacheEntry",
    "ExportFailure",
    "ChunkResult",
    "ExportResult",
    "DeleteResult",
]

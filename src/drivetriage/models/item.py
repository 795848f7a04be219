"""Data models for remote media items and listing pages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional


@dataclass(slots=True)
class RemoteItem:
    """
    A photo or video listed from a Drive folder.

    Notes:
        - `id` is the Drive file id, stable and unique within the drive.
        - Everything except `thumbnail_url` is fixed once fetched; the
          thumbnail is attached lazily by the page cache.
    """

    id: str
    name: str
    is_video: bool = False
    mime_type: str = ""
    created_at: Optional[datetime] = None
    thumbnail_url: Optional[str] = None


@dataclass(slots=True)
class Page:
    """One cursor-delimited slice of a folder listing (0-indexed)."""

    index: int
    items: list[RemoteItem] = field(default_factory=list)
    next_cursor: Optional[str] = None
    thumbnails_loaded: bool = False

    @property
    def is_terminal(self) -> bool:
        """True when no page follows this one."""
        return self.next_cursor is None

    @property
    def item_ids(self) -> list[str]:
        return [it.id for it in self.items]


@dataclass(slots=True)
class RemotePage:
    """Raw result of one listing call, before it is stored as a Page."""

    items: list[RemoteItem]
    next_cursor: Optional[str] = None
    total_count: Optional[int] = None

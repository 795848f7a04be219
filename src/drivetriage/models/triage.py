"""Per-folder triage state and its persisted layout."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class Mark(str, Enum):
    """Explicit user decision on an item."""

    KEEP = "KEEP"
    DECLINE = "DECLINE"


class FilterMode(str, Enum):
    """Which items a page view shows."""

    ALL = "ALL"
    KEPT = "KEPT"
    DECLINED = "DECLINED"
    UNMARKED = "UNMARKED"


@dataclass(slots=True)
class TriageState:
    """
    Triage state of a single folder.

    Invariants:
        - An item is KEEP, DECLINE or absent from `marks`.
        - `soft_touched` never overrides an explicit mark; it only records
          that an undecided item has been looked at.

    `cursor` is the continuation token after `page_index` at the time it was
    viewed. It is kept for inspection only: Drive page tokens expire, so a
    resume rebuilds the page chain from page 0 instead of reusing it.
    """

    marks: dict[str, Mark] = field(default_factory=dict)
    soft_touched: set[str] = field(default_factory=set)
    filter_mode: FilterMode = FilterMode.ALL
    hide_processed: bool = False
    cursor: Optional[str] = None
    page_index: int = 0

    def mark_of(self, item_id: str) -> Optional[Mark]:
        return self.marks.get(item_id)

    def is_processed(self, item_id: str) -> bool:
        """True if the item carries an explicit mark or a soft-touch."""
        return item_id in self.marks or item_id in self.soft_touched

    def to_dict(self) -> dict[str, Any]:
        """Flat JSON-serializable layout used by the state store."""
        return {
            "marks": {item_id: mark.value for item_id, mark in self.marks.items()},
            "softTouched": sorted(self.soft_touched),
            "filterMode": self.filter_mode.value,
            "hideProcessed": self.hide_processed,
            "cursor": self.cursor,
            "pageIndex": self.page_index,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TriageState":
        """
        Build state from its persisted layout.

        Missing keys take their defaults. Wrongly typed values raise
        ValueError/TypeError so the caller can fall back to defaults.
        """
        if not isinstance(data, dict):
            raise TypeError("triage state must be a JSON object")

        raw_marks = data.get("marks") or {}
        if not isinstance(raw_marks, dict):
            raise TypeError("marks must be an object")
        marks = {str(k): Mark(v) for k, v in raw_marks.items()}

        raw_soft = data.get("softTouched") or []
        if not isinstance(raw_soft, list):
            raise TypeError("softTouched must be a list")
        soft = {str(v) for v in raw_soft}

        cursor = data.get("cursor")
        if cursor is not None and not isinstance(cursor, str):
            raise TypeError("cursor must be a string or null")

        page_index = data.get("pageIndex", 0)
        if not isinstance(page_index, int) or isinstance(page_index, bool) or page_index < 0:
            raise ValueError("pageIndex must be a non-negative integer")

        hide = data.get("hideProcessed", False)
        if not isinstance(hide, bool):
            raise TypeError("hideProcessed must be a boolean")

        return cls(
            marks=marks,
            soft_touched=soft,
            filter_mode=FilterMode(data.get("filterMode", FilterMode.ALL.value)),
            hide_processed=hide,
            cursor=cursor,
            page_index=page_index,
        )


@dataclass(slots=True, frozen=True)
class DownloadUrlCacheEntry:
    """A resolved direct-download link and when it was fetched."""

    item_id: str
    url: str
    fetched_at: datetime
    name: Optional[str] = None

"""Cursor-walking folder listing with a page-indexed cache."""

from __future__ import annotations

from .page_cache import PageCache, PageSource

__all__ = ["PageCache", "PageSource"]

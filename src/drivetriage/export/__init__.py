"""Bulk export of selected items as archives."""

from __future__ import annotations

from .archive import ArchiveBuilder, build_zip
from .pipeline import BulkExportPipeline

__all__ = ["BulkExportPipeline", "ArchiveBuilder", "build_zip"]

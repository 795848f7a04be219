"""drivetriage public API."""

from __future__ import annotations

import logging

from drivetriage.config import TriageConfig
from drivetriage.controller import DriveController
from drivetriage.errors import (
    ApiError,
    AuthError,
    ConfirmationDeclinedError,
    DriveTriageError,
    HttpErrorInfo,
    InvalidArgumentError,
    InvalidStateError,
    NetworkError,
    NotFoundError,
    PageOutOfRangeError,
    PermissionError,
    QuotaExceededError,
    RateLimitError,
    ResolutionError,
    map_http_error,
)
from drivetriage.export import BulkExportPipeline
from drivetriage.fetcher import RateLimitedFetcher
from drivetriage.models import (
    ChunkResult,
    DeleteResult,
    ExportFailure,
    ExportResult,
    FilterMode,
    Mark,
    Page,
    RemoteItem,
    TriageState,
)
from drivetriage.paging import PageCache
from drivetriage.resolver import DownloadUrlResolver
from drivetriage.session import PreviewTicket, TriageSession
from drivetriage.state import TriageStateStore
from drivetriage.visibility import is_visible, visible

logging.getLogger(__name__).addHandler(logging.NullHandler())

__all__ = [
    # High-level
    "TriageSession",
    "TriageConfig",
    "PreviewTicket",
    # Engine
    "TriageStateStore",
    "PageCache",
    "DownloadUrlResolver",
    "RateLimitedFetcher",
    "BulkExportPipeline",
    "DriveController",
    "visible",
    "is_visible",
    # Models
    "RemoteItem",
    "Page",
    "Mark",
    "FilterMode",
    "TriageState",
    "ChunkResult",
    "ExportFailure",
    "ExportResult",
    "DeleteResult",
    # Errors
    "DriveTriageError",
    "InvalidArgumentError",
    "InvalidStateError",
    "AuthError",
    "PermissionError",
    "NotFoundError",
    "RateLimitError",
    "QuotaExceededError",
    "NetworkError",
    "ApiError",
    "ResolutionError",
    "PageOutOfRangeError",
    "ConfirmationDeclinedError",
    "HttpErrorInfo",
    "map_http_error",
]

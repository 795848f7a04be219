"""Public error exports for drivetriage."""

from __future__ import annotations

from .exceptions import (
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

__all__ = [
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

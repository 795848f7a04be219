"""Exception hierarchy and HTTP error mapping for drivetriage."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class DriveTriageError(Exception):
    """
    Base exception for drivetriage.

    Attributes:
        details: Structured context (HTTP status, response body, item id...).
        cause: The lower-level exception this one was translated from.
        retryable: Whether the fetcher may repeat the call once.
    """

    retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


# Caller mistakes and session misuse.
class InvalidArgumentError(DriveTriageError):
    """Bad argument or setting; also HTTP 400."""


class InvalidStateError(DriveTriageError):
    """Session used before a folder was opened, or a page asked for before it was loaded."""


class PageOutOfRangeError(DriveTriageError):
    """Page index beyond the terminal page of a folder."""


class ConfirmationDeclinedError(DriveTriageError):
    """confirm() refused a destructive batch; nothing was sent to Drive."""


# Remote failures.
class AuthError(DriveTriageError):
    """Credentials rejected (HTTP 401) or the Drive client could not be built."""


class PermissionError(DriveTriageError):
    """Access denied (HTTP 403 that is neither throttling nor quota)."""


class QuotaExceededError(DriveTriageError):
    """Daily or download quota used up (HTTP 403 with a quota reason)."""


class NotFoundError(DriveTriageError):
    """Item gone (HTTP 404/410), typically deleted or trashed mid-session."""


class RateLimitError(DriveTriageError):
    """Throttled (HTTP 429, or 403 rateLimitExceeded)."""

    retryable = True

    @property
    def retry_after(self) -> Optional[str]:
        """Raw Retry-After header value, if the server sent one."""
        value = self.details.get("retry_after")
        return value if isinstance(value, str) else None


class NetworkError(DriveTriageError):
    """Connection reset, DNS failure or timeout before any HTTP status."""

    retryable = True


class ApiError(DriveTriageError):
    """Any other HTTP failure (5xx, unexpected 4xx)."""


class ResolutionError(DriveTriageError):
    """No usable bytes behind an item's direct link (absent link, HTML page, item gone)."""


@dataclass(frozen=True)
class HttpErrorInfo:
    """Status, reason and context pulled out of an HTTP error response."""

    status_code: int
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


_BY_STATUS: dict[int, type[DriveTriageError]] = {
    400: InvalidArgumentError,
    401: AuthError,
    404: NotFoundError,
    410: NotFoundError,
    429: RateLimitError,
}

# Drive signals per-user throttling as 403 with one of these reasons.
_THROTTLE_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


def _classify_403(reason: str | None) -> type[DriveTriageError]:
    if reason in _THROTTLE_REASONS:
        return RateLimitError
    # dailyLimitExceeded, downloadQuotaExceeded, storageQuotaExceeded, usageLimits...
    lowered = (reason or "").lower()
    if "quota" in lowered or "dailylimit" in lowered or "usagelimits" in lowered:
        return QuotaExceededError
    return PermissionError


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> DriveTriageError:
    """
    Translate an HTTP error into the matching drivetriage exception.

    400 invalid argument, 401 auth, 403 throttling/quota/permission by
    reason, 404 and 410 not found, 429 rate limit; anything else ApiError.
    The status code and reason are always present in ``details``.
    """
    if info.status_code == 403:
        cls = _classify_403(info.reason)
    else:
        cls = _BY_STATUS.get(info.status_code, ApiError)

    details: dict[str, Any] = {"status_code": info.status_code, "reason": info.reason}
    details.update(info.details or {})
    return cls(info.message or f"HTTP error {info.status_code}", details=details, cause=cause)

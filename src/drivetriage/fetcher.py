"""RateLimitedFetcher: the single place retry/backoff policy lives."""

from __future__ import annotations

import asyncio
import json
import logging
import math
from typing import Any, Awaitable, Callable, Optional, TypeVar

from drivetriage.errors import (
    ApiError,
    DriveTriageError,
    HttpErrorInfo,
    NetworkError,
    RateLimitError,
    map_http_error,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)

# One call plus exactly one retry.
MAX_ATTEMPTS = 2
DEFAULT_RETRY_AFTER_SEC = 2.0

Sleep = Callable[[float], Awaitable[None]]


class RateLimitedFetcher:
    """
    Run blocking remote calls off the event loop with a bounded retry.

    A rate-limited (429) or network failure is retried once after the
    server's Retry-After hint (or the default delay); a second failure
    surfaces. Any other error surfaces immediately, mapped to a
    drivetriage exception with the response body in ``details["body"]``.
    """

    def __init__(
        self,
        *,
        default_retry_after_sec: float = DEFAULT_RETRY_AFTER_SEC,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self._default_retry_after = default_retry_after_sec
        self._sleep: Sleep = sleep or asyncio.sleep

    async def call(self, request: Callable[[], T]) -> T:
        """Perform `request` (a zero-arg blocking callable) with the retry policy."""
        last: Optional[DriveTriageError] = None
        for attempt in range(MAX_ATTEMPTS):
            try:
                return await asyncio.to_thread(request)
            except Exception as exc:
                mapped = map_exception(exc)
                if not mapped.retryable or attempt + 1 >= MAX_ATTEMPTS:
                    if mapped is exc:
                        raise
                    raise mapped from exc
                last = mapped

                delay = self.retry_delay(mapped)
                logger.debug(
                    "%s on attempt %d, retrying in %.1fs",
                    type(mapped).__name__,
                    attempt + 1,
                    delay,
                )
                await self._sleep(delay)

        raise ApiError("Unexpected retry loop termination", cause=last)

    def retry_delay(self, exc: DriveTriageError) -> float:
        if isinstance(exc, RateLimitError):
            return parse_retry_after(exc.retry_after, self._default_retry_after)
        return self._default_retry_after


def parse_retry_after(value: Any, default: float = DEFAULT_RETRY_AFTER_SEC) -> float:
    """Retry-After in seconds; `default` when missing, non-numeric or negative."""
    if value is None:
        return default
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return default
    if not math.isfinite(seconds) or seconds < 0:
        return default
    return seconds


def map_exception(exc: BaseException) -> DriveTriageError:
    """Translate any error raised by a remote call into a drivetriage exception."""
    if isinstance(exc, DriveTriageError):
        return exc

    try:
        from googleapiclient.errors import HttpError
    except Exception:  # pragma: no cover
        HttpError = None  # type: ignore[assignment]

    if HttpError is not None and isinstance(exc, HttpError):
        return map_http_error(http_error_to_info(exc), cause=exc)

    if isinstance(exc, (OSError, TimeoutError)):
        return NetworkError("Network error", cause=exc)

    return ApiError("Drive API error", cause=exc)


def http_error_to_info(exc: Any) -> HttpErrorInfo:
    """Extract status, reason, message, Retry-After and body from a googleapiclient HttpError."""
    resp = getattr(exc, "resp", None)
    status_code = getattr(resp, "status", None)
    reason = getattr(resp, "reason", None)

    message = None
    details: dict[str, Any] = {}

    retry_after = _header(resp, "retry-after")
    if retry_after is not None:
        details["retry_after"] = retry_after

    content = getattr(exc, "content", None)
    if isinstance(content, (bytes, bytearray)):
        body = content.decode("utf-8", errors="replace")
        details["body"] = body
        try:
            payload = json.loads(body)
        except ValueError:
            payload = None
        if isinstance(payload, dict) and isinstance(payload.get("error"), dict):
            err = payload["error"]
            message = err.get("message") or None
            errors = err.get("errors") or []
            if errors and isinstance(errors, list) and isinstance(errors[0], dict):
                details["domain"] = errors[0].get("domain")
                if isinstance(errors[0].get("reason"), str):
                    reason = errors[0]["reason"]

    if not isinstance(status_code, int):
        status_code = 0

    return HttpErrorInfo(
        status_code=status_code,
        reason=reason if isinstance(reason, str) else None,
        message=message if isinstance(message, str) else None,
        details=details or None,
    )


def response_error_info(status_code: int, headers: Any, body: str) -> HttpErrorInfo:
    """Build HttpErrorInfo for a plain HTTP response (e.g. a direct-link download)."""
    details: dict[str, Any] = {"body": body}
    retry_after = _header(headers, "retry-after")
    if retry_after is not None:
        details["retry_after"] = retry_after
    return HttpErrorInfo(
        status_code=status_code,
        message=f"HTTP error {status_code}",
        details=details,
    )


def _header(headers: Any, name: str) -> Optional[str]:
    if headers is None or not hasattr(headers, "get"):
        return None
    # httplib2 lowercases header names; requests' mapping is case-insensitive.
    value = headers.get(name)
    if value is None:
        value = headers.get(name.title())
    return str(value) if value is not None else None

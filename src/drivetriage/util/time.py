from __future__ import annotations

from datetime import datetime, timezone


def now_utc() -> datetime:
    """Return current time as tz-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse RFC3339 timestamp string into tz-aware UTC datetime.

    Accepts strings like:
      - 2025-01-01T12:34:56Z
      - 2025-01-01T12:34:56.123Z
      - 2025-01-01T12:34:56+09:00
    """
    if not isinstance(value, str) or not value:
        raise ValueError("RFC3339 value must be a non-empty string")

    s = value.strip()
    # fromisoformat doesn't accept 'Z' before 3.11, so normalize.
    if s.endswith("Z"):
        s = s[:-1] + "+00:00"

    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        raise ValueError("RFC3339 value must carry a UTC offset")
    return dt.astimezone(timezone.utc)


def age_seconds(then: datetime, now: datetime) -> float:
    """Seconds elapsed between two tz-aware datetimes (negative if `then` is in the future)."""
    if then.tzinfo is None or now.tzinfo is None:
        raise ValueError("naive datetime is not allowed; timezone-aware required")
    return (now - then).total_seconds()

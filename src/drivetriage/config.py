"""Runtime settings for drivetriage."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Mapping, Optional

from drivetriage.errors import InvalidArgumentError

ENV_PREFIX = "DRIVETRIAGE_"

ORDER_BY_KEYS: tuple[str, ...] = ("name", "createdTime")

# Drive accepts more per batch request; 20 keeps each call small and matches
# the limit the deletion flow was designed around.
MAX_DELETE_BATCH = 20


def _default_state_dir() -> Path:
    return Path.home() / ".drivetriage" / "state"


@dataclass(frozen=True)
class TriageConfig:
    """
    Tunables shared by the page cache, resolver, export pipeline and session.

    Attributes:
        page_size: Items per listing page.
        order_by: Stable listing sort key ("name" or "createdTime").
        url_ttl_sec: Lifetime of a cached direct-download link.
        chunk_size: Items per export archive.
        concurrency: Export workers per chunk.
        default_retry_after_sec: Backoff when a 429 carries no usable hint.
        delete_batch_size: Delete operations per batch call (at most 20).
        state_dir: Directory holding one JSON record per folder.
    """

    page_size: int = 25
    order_by: str = "name"
    url_ttl_sec: float = 900.0
    chunk_size: int = 50
    concurrency: int = 4
    default_retry_after_sec: float = 2.0
    delete_batch_size: int = MAX_DELETE_BATCH
    state_dir: Path = field(default_factory=_default_state_dir)

    def __post_init__(self) -> None:
        for name in ("page_size", "chunk_size", "concurrency", "delete_batch_size"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise InvalidArgumentError(
                    f"{name} must be a positive integer",
                    details={name: value},
                )
        if self.delete_batch_size > MAX_DELETE_BATCH:
            raise InvalidArgumentError(
                f"delete_batch_size must be <= {MAX_DELETE_BATCH}",
                details={"delete_batch_size": self.delete_batch_size},
            )
        if self.order_by not in ORDER_BY_KEYS:
            raise InvalidArgumentError(
                "order_by must be 'name' or 'createdTime'",
                details={"order_by": self.order_by},
            )
        if self.url_ttl_sec < 0 or self.default_retry_after_sec < 0:
            raise InvalidArgumentError("durations must be non-negative")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "TriageConfig":
        """
        Build settings from DRIVETRIAGE_* environment variables.

        Example: DRIVETRIAGE_PAGE_SIZE=50, DRIVETRIAGE_STATE_DIR=/tmp/state.
        Unset or blank variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        for f in fields(cls):
            raw = env.get(ENV_PREFIX + f.name.upper(), "").strip()
            if not raw:
                continue
            try:
                if f.name == "state_dir":
                    kwargs[f.name] = Path(raw).expanduser()
                elif f.name == "order_by":
                    kwargs[f.name] = raw
                elif f.name in ("url_ttl_sec", "default_retry_after_sec"):
                    kwargs[f.name] = float(raw)
                else:
                    kwargs[f.name] = int(raw)
            except ValueError as exc:
                raise InvalidArgumentError(
                    f"Invalid value for {ENV_PREFIX}{f.name.upper()}",
                    details={"value": raw},
                    cause=exc,
                ) from exc

        return cls(**kwargs)  # type: ignore[arg-type]

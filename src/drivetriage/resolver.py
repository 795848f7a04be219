"""DownloadUrlResolver: TTL cache in front of ephemeral direct-download links."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional, Protocol

from drivetriage.errors import NotFoundError, ResolutionError
from drivetriage.models import DownloadUrlCacheEntry
from drivetriage.util.time import age_seconds, now_utc

logger = logging.getLogger(__name__)

DEFAULT_URL_TTL_SEC = 900.0


class LinkSource(Protocol):
    async def get_download_link(self, item_id: str) -> tuple[Optional[str], str]: ...


class DownloadUrlResolver:
    """
    Resolve item ids to direct-download links.

    Every component that needs a link goes through here; nothing else caches
    links. An entry older than `ttl_sec` is refetched before use, and
    `force_refresh=True` refetches regardless of age.
    """

    def __init__(
        self,
        source: LinkSource,
        *,
        ttl_sec: float = DEFAULT_URL_TTL_SEC,
        clock: Callable[[], datetime] = now_utc,
    ) -> None:
        self._source = source
        self._ttl = ttl_sec
        self._clock = clock
        self._entries: dict[str, DownloadUrlCacheEntry] = {}

    async def resolve(self, item_id: str, force_refresh: bool = False) -> str:
        """
        Return a usable link for `item_id`.

        Raises:
            ResolutionError: the item is gone or has no direct link right now.
        """
        if not force_refresh:
            entry = self.cached(item_id)
            if entry is not None:
                logger.debug("Link cache hit for %s", item_id)
                return entry.url

        try:
            url, name = await self._source.get_download_link(item_id)
        except NotFoundError as exc:
            self._entries.pop(item_id, None)
            raise ResolutionError(
                "Item no longer exists",
                details={"item_id": item_id},
                cause=exc,
            ) from exc

        if not url:
            self._entries.pop(item_id, None)
            raise ResolutionError(
                "Item has no direct download link",
                details={"item_id": item_id},
            )

        self._entries[item_id] = DownloadUrlCacheEntry(
            item_id=item_id,
            url=url,
            fetched_at=self._clock(),
            name=name or None,
        )
        return url

    def cached(self, item_id: str) -> Optional[DownloadUrlCacheEntry]:
        """The cached entry if present and unexpired."""
        entry = self._entries.get(item_id)
        if entry is None:
            return None
        if age_seconds(entry.fetched_at, self._clock()) >= self._ttl:
            return None
        return entry

    def name_for(self, item_id: str) -> Optional[str]:
        entry = self._entries.get(item_id)
        return entry.name if entry is not None else None

    def invalidate(self, item_id: str) -> None:
        self._entries.pop(item_id, None)

"""PageCache: append-only, page-indexed cache over a cursor-paged listing."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Protocol

from drivetriage.errors import DriveTriageError, InvalidArgumentError, PageOutOfRangeError
from drivetriage.models import Page, RemoteItem, RemotePage
from drivetriage.util.chunks import dedupe

logger = logging.getLogger(__name__)


class PageSource(Protocol):
    async def list_page(
        self,
        folder_id: str,
        *,
        cursor: Optional[str] = None,
        page_size: int = 25,
        order_by: str = "name",
    ) -> RemotePage: ...

    async def get_thumbnail_url(self, item_id: str) -> Optional[str]: ...


@dataclass
class _FolderPages:
    pages: list[Page] = field(default_factory=list)
    remote_total: Optional[int] = None

    @property
    def reached_end(self) -> bool:
        return bool(self.pages) and self.pages[-1].is_terminal


class PageCache:
    """
    Cache of listing pages per folder.

    Page 0 comes from the plain listing query; page n comes from the cursor
    page n-1 returned, so reaching page n first materialises every page
    before it. Stored pages are never invalidated or refetched (a changed
    remote folder is not noticed until `reset`).
    """

    def __init__(self, source: PageSource, *, page_size: int = 25, order_by: str = "name") -> None:
        if page_size <= 0:
            raise InvalidArgumentError("page_size must be positive")
        self._source = source
        self._page_size = page_size
        self._order_by = order_by
        self._folders: dict[str, _FolderPages] = {}

    async def ensure_loaded(
        self,
        folder_id: str,
        page_index: int,
        *,
        thumbnails: bool = True,
    ) -> Page:
        """
        Return page `page_index` of `folder_id`, fetching it (and any missing
        predecessors) if needed.

        Raises:
            PageOutOfRangeError: the folder ends before `page_index`.
        """
        if page_index < 0:
            raise InvalidArgumentError("page_index must be >= 0", details={"page_index": page_index})

        folder = self._folders.setdefault(folder_id, _FolderPages())
        while len(folder.pages) <= page_index:
            if folder.reached_end:
                raise PageOutOfRangeError(
                    "Folder has no such page",
                    details={
                        "folder_id": folder_id,
                        "page_index": page_index,
                        "page_count": len(folder.pages),
                    },
                )
            await self._fetch_next(folder_id, folder)

        page = folder.pages[page_index]
        if thumbnails and not page.thumbnails_loaded:
            await self._attach_thumbnails(page)
        return page

    def cached_pages(self, folder_id: str) -> list[Page]:
        folder = self._folders.get(folder_id)
        return list(folder.pages) if folder is not None else []

    def is_cached(self, folder_id: str, page_index: int) -> bool:
        folder = self._folders.get(folder_id)
        return folder is not None and 0 <= page_index < len(folder.pages)

    def total_count(self, folder_id: str) -> Optional[int]:
        """Remote count if the listing exposes one, else the sum of page sizes once the end is reached."""
        folder = self._folders.get(folder_id)
        if folder is None:
            return None
        if folder.remote_total is not None:
            return folder.remote_total
        if folder.reached_end:
            return sum(len(p.items) for p in folder.pages)
        return None

    async def walk_all(self, folder_id: str) -> list[str]:
        """
        Page forward from whatever is cached to the last page and return
        every item id in listing order, without duplicates.
        """
        folder = self._folders.setdefault(folder_id, _FolderPages())
        while not folder.reached_end:
            await self._fetch_next(folder_id, folder)
        return dedupe([it.id for p in folder.pages for it in p.items])

    def reset(self, folder_id: Optional[str] = None) -> None:
        """Drop cached pages for one folder, or for all folders."""
        if folder_id is None:
            self._folders.clear()
        else:
            self._folders.pop(folder_id, None)

    # ----------------------------
    # Internals
    # ----------------------------
    async def _fetch_next(self, folder_id: str, folder: _FolderPages) -> None:
        index = len(folder.pages)
        cursor = folder.pages[-1].next_cursor if index > 0 else None

        remote = await self._source.list_page(
            folder_id,
            cursor=cursor,
            page_size=self._page_size,
            order_by=self._order_by,
        )

        # Another caller may have stored this page while we were suspended.
        if len(folder.pages) > index:
            return

        folder.pages.append(Page(index=index, items=list(remote.items), next_cursor=remote.next_cursor))
        if remote.total_count is not None:
            folder.remote_total = remote.total_count
        logger.info(
            "Loaded page %d of folder %s (%d items%s)",
            index,
            folder_id,
            len(remote.items),
            ", last page" if remote.next_cursor is None else "",
        )

    async def _attach_thumbnails(self, page: Page) -> None:
        urls = await asyncio.gather(*(self._thumbnail(it) for it in page.items))
        for item, url in zip(page.items, urls):
            item.thumbnail_url = url
        page.thumbnails_loaded = True

    async def _thumbnail(self, item: RemoteItem) -> Optional[str]:
        try:
            return await self._source.get_thumbnail_url(item.id)
        except DriveTriageError as exc:
            logger.debug("No thumbnail for %s: %s", item.id, exc)
            return None

"""TriageSession: one user's triage of one Drive folder at a time."""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from drivetriage.config import TriageConfig
from drivetriage.controller import DriveController
from drivetriage.errors import (
    ConfirmationDeclinedError,
    DriveTriageError,
    InvalidStateError,
    PageOutOfRangeError,
)
from drivetriage.export import BulkExportPipeline
from drivetriage.fetcher import RateLimitedFetcher
from drivetriage.models import (
    ChunkResult,
    DeleteResult,
    ExportResult,
    FilterMode,
    Mark,
    Page,
    RemoteItem,
    TriageState,
)
from drivetriage.paging import PageCache
from drivetriage.resolver import DownloadUrlResolver
from drivetriage.state import TriageStateStore
from drivetriage.util.chunks import chunked
from drivetriage.visibility import visible

logger = logging.getLogger(__name__)


class PreviewTicket:
    """
    Monotonic token for the single-item preview.

    Each new preview takes a fresh ticket; a preview that resumes holding an
    older ticket drops its result (the in-flight call itself is not cancelled).
    """

    def __init__(self) -> None:
        self._current = 0

    def issue(self) -> int:
        self._current += 1
        return self._current

    def is_current(self, ticket: int) -> bool:
        return ticket == self._current


class TriageSession:
    """
    Explicit context for paging, marking, previewing, deleting and exporting.

    Holds the opened folder and current page index; the marks themselves
    live in the TriageStateStore and are reloaded for every action.
    """

    def __init__(
        self,
        credentials: Any,
        *,
        config: Optional[TriageConfig] = None,
        store: Optional[TriageStateStore] = None,
    ) -> None:
        cfg = config or TriageConfig()
        fetcher = RateLimitedFetcher(default_retry_after_sec=cfg.default_retry_after_sec)
        controller = DriveController(credentials, fetcher=fetcher)
        self._setup(controller, cfg, store or TriageStateStore.in_directory(cfg.state_dir))

    @classmethod
    def from_controller(
        cls,
        controller: Any,
        *,
        config: Optional[TriageConfig] = None,
        store: Optional[TriageStateStore] = None,
    ) -> "TriageSession":
        """Create a session with an injected controller (useful for tests)."""
        obj = cls.__new__(cls)
        obj._setup(controller, config or TriageConfig(), store or TriageStateStore.in_memory())
        return obj

    def _setup(self, controller: Any, config: TriageConfig, store: TriageStateStore) -> None:
        self._controller = controller
        self._config = config
        self._store = store
        self._pages = PageCache(controller, page_size=config.page_size, order_by=config.order_by)
        self._resolver = DownloadUrlResolver(controller, ttl_sec=config.url_ttl_sec)
        self._exporter = BulkExportPipeline(self._resolver, controller)
        self._preview_ticket = PreviewTicket()
        self._folder_id: Optional[str] = None
        self._page_index = 0

    # ----------------------------
    # Accessors
    # ----------------------------
    @property
    def folder_id(self) -> str:
        """The opened folder. Requires open_folder() first."""
        if self._folder_id is None:
            raise InvalidStateError("No folder opened. Call open_folder() first.")
        return self._folder_id

    @property
    def page_index(self) -> int:
        return self._page_index

    @property
    def pages(self) -> PageCache:
        return self._pages

    @property
    def resolver(self) -> DownloadUrlResolver:
        return self._resolver

    @property
    def store(self) -> TriageStateStore:
        return self._store

    def state(self) -> TriageState:
        return self._store.load(self.folder_id)

    # ----------------------------
    # Paging
    # ----------------------------
    async def open_folder(self, folder_id: str) -> Page:
        """
        Select a folder and resume on the page stored for it.

        The page chain is re-listed from page 0 up to the stored index; the
        stored cursor is not reused.

        Listing failures propagate. If the folder has shrunk below the
        stored page, paging restarts at page 0.
        """
        self._folder_id = folder_id
        self._page_index = 0
        self._preview_ticket.issue()

        stored = self._store.load(folder_id)
        logger.info("Opening folder %s at page %d", folder_id, stored.page_index)
        try:
            return await self.load_page(stored.page_index)
        except PageOutOfRangeError:
            logger.info("Stored page %d no longer exists in %s, starting over", stored.page_index, folder_id)
            return await self.load_page(0)

    async def load_page(self, page_index: int) -> Page:
        folder_id = self.folder_id
        page = await self._pages.ensure_loaded(folder_id, page_index)
        if self._folder_id == folder_id:
            self._page_index = page_index
            self._store.set_position(folder_id, page_index, page.next_cursor)
        return page

    async def next_page(self) -> Page:
        return await self.load_page(self._page_index + 1)

    async def previous_page(self) -> Page:
        if self._page_index == 0:
            raise PageOutOfRangeError("Already on the first page", details={"page_index": 0})
        return await self.load_page(self._page_index - 1)

    def current_page(self) -> Page:
        folder_id = self.folder_id
        if not self._pages.is_cached(folder_id, self._page_index):
            raise InvalidStateError("Current page is not loaded yet")
        return self._pages.cached_pages(folder_id)[self._page_index]

    def visible_items(self) -> list[RemoteItem]:
        """Items of the current page shown under the folder's current state."""
        return visible(self.current_page(), self.state())

    def total_count(self) -> Optional[int]:
        return self._pages.total_count(self.folder_id)

    # ----------------------------
    # Triage
    # ----------------------------
    def mark(self, item_id: str, mark: Optional[Mark]) -> TriageState:
        return self._store.set_mark(self.folder_id, item_id, mark)

    def soft_touch(self, item_id: str) -> TriageState:
        return self._store.set_soft(self.folder_id, item_id)

    def set_filter(self, mode: FilterMode) -> TriageState:
        return self._store.set_filter(self.folder_id, mode)

    def set_hide_processed(self, hide: bool) -> TriageState:
        return self._store.set_hide_processed(self.folder_id, hide)

    # ----------------------------
    # Preview
    # ----------------------------
    async def preview(self, item_id: str, force_refresh: bool = False) -> Optional[str]:
        """
        Resolve the full-size link for one item.

        Returns None when a newer preview started while this one was
        waiting. Pass force_refresh=True after the link failed to load.
        """
        ticket = self._preview_ticket.issue()
        try:
            url = await self._resolver.resolve(item_id, force_refresh=force_refresh)
        except DriveTriageError:
            if not self._preview_ticket.is_current(ticket):
                return None
            raise
        if not self._preview_ticket.is_current(ticket):
            logger.debug("Dropping stale preview of %s", item_id)
            return None
        return url

    # ----------------------------
    # Destructive
    # ----------------------------
    async def delete_declined(self, confirm: Callable[[int], bool]) -> DeleteResult:
        """
        Move every DECLINE-marked item of the folder to the Drive trash.

        `confirm(count)` is asked before any network call. Batches run one
        after another; a batch's marks are cleared only after Drive confirmed
        those items are gone. A failing batch call propagates, leaving the
        marks of it and of later batches in place.

        Raises:
            ConfirmationDeclinedError: confirm() returned False.
        """
        folder_id = self.folder_id
        ids = self._store.ids_with_mark(folder_id, Mark.DECLINE)
        if not ids:
            return DeleteResult()
        if not confirm(len(ids)):
            raise ConfirmationDeclinedError("Delete cancelled", details={"count": len(ids)})

        result = DeleteResult()
        for batch in chunked(ids, self._config.delete_batch_size):
            outcome = await self._controller.delete_batch(batch)
            self._store.clear_marks(folder_id, outcome.removed)
            for item_id in outcome.removed:
                self._resolver.invalidate(item_id)
            result.extend(outcome)

        logger.info(
            "Trashed %d declined items from %s (%d already gone, %d failed)",
            len(result.deleted),
            folder_id,
            len(result.missing),
            len(result.failed),
        )
        return result

    # ----------------------------
    # Export
    # ----------------------------
    async def export_kept(
        self,
        *,
        on_chunk: Optional[Callable[[ChunkResult], None]] = None,
    ) -> ExportResult:
        """Export KEEP-marked items."""
        ids = self._store.ids_with_mark(self.folder_id, Mark.KEEP)
        return await self._export(ids, on_chunk)

    async def export_unkept(
        self,
        *,
        on_chunk: Optional[Callable[[ChunkResult], None]] = None,
    ) -> ExportResult:
        """Export every item of the folder except the KEEP-marked ones."""
        return await self._export_all_except(Mark.KEEP, on_chunk)

    async def export_undeclined(
        self,
        *,
        on_chunk: Optional[Callable[[ChunkResult], None]] = None,
    ) -> ExportResult:
        """Export every item of the folder except the DECLINE-marked ones."""
        return await self._export_all_except(Mark.DECLINE, on_chunk)

    async def _export_all_except(
        self,
        mark: Mark,
        on_chunk: Optional[Callable[[ChunkResult], None]],
    ) -> ExportResult:
        folder_id = self.folder_id
        universe = await self._pages.walk_all(folder_id)
        excluded = set(self._store.ids_with_mark(folder_id, mark))
        ids = [item_id for item_id in universe if item_id not in excluded]
        return await self._export(ids, on_chunk)

    async def _export(
        self,
        ids: list[str],
        on_chunk: Optional[Callable[[ChunkResult], None]],
    ) -> ExportResult:
        names = {it.id: it.name for p in self._pages.cached_pages(self.folder_id) for it in p.items}
        return await self._exporter.run(
            ids,
            self._config.chunk_size,
            self._config.concurrency,
            names=names,
            on_chunk=on_chunk,
        )

"""BulkExportPipeline: chunked, bounded-concurrency export with fallback tiers."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Mapping, Optional, Protocol, Sequence

from drivetriage.errors import DriveTriageError, InvalidArgumentError, ResolutionError
from drivetriage.models import ChunkResult, ExportFailure, ExportResult, RemoteItem
from drivetriage.resolver import DownloadUrlResolver
from drivetriage.util.chunks import chunked, dedupe

from .archive import ArchiveBuilder, build_zip, unique_name

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 50
DEFAULT_CONCURRENCY = 4


class ContentSource(Protocol):
    async def fetch_url_bytes(self, url: str) -> bytes: ...

    async def get_item(self, item_id: str) -> tuple[RemoteItem, Optional[str]]: ...

    async def download_content(self, item_id: str) -> bytes: ...


@dataclass(slots=True)
class _Fetched:
    data: bytes
    name: Optional[str] = None


class BulkExportPipeline:
    """
    Export item ids as one archive per chunk.

    Chunks run one after another. Inside a chunk at most `concurrency`
    workers pull ids from a shared queue, and each id is fetched through the
    first fallback tier that works:

        1. resolver link (cached if fresh)
        2. resolver link, force-refreshed
        3. link from a full metadata re-fetch
        4. API content endpoint

    An id that fails every tier is recorded on its chunk and skipped; it
    never stops the chunk or the job.
    """

    def __init__(
        self,
        resolver: DownloadUrlResolver,
        source: ContentSource,
        *,
        archive_builder: ArchiveBuilder = build_zip,
    ) -> None:
        self._resolver = resolver
        self._source = source
        self._archive_builder = archive_builder

    async def run(
        self,
        ids: Sequence[str],
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        concurrency: int = DEFAULT_CONCURRENCY,
        *,
        names: Optional[Mapping[str, str]] = None,
        on_chunk: Optional[Callable[[ChunkResult], None]] = None,
    ) -> ExportResult:
        if chunk_size <= 0:
            raise InvalidArgumentError("chunk_size must be positive", details={"chunk_size": chunk_size})
        if concurrency <= 0:
            raise InvalidArgumentError("concurrency must be positive", details={"concurrency": concurrency})

        result = ExportResult()
        for index, chunk_ids in enumerate(chunked(dedupe(ids), chunk_size)):
            chunk = await self._run_chunk(index, chunk_ids, concurrency, names or {})
            result.chunks.append(chunk)
            if on_chunk is not None:
                on_chunk(chunk)

        logger.info("Export finished: %s", result.summary)
        return result

    async def _run_chunk(
        self,
        index: int,
        chunk_ids: list[str],
        concurrency: int,
        names: Mapping[str, str],
    ) -> ChunkResult:
        queue: asyncio.Queue[tuple[int, str]] = asyncio.Queue()
        for pos, item_id in enumerate(chunk_ids):
            queue.put_nowait((pos, item_id))

        fetched: dict[int, _Fetched] = {}
        failed: dict[int, ExportFailure] = {}

        async def worker() -> None:
            while True:
                try:
                    pos, item_id = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                try:
                    fetched[pos] = await self._fetch_one(item_id)
                except DriveTriageError as exc:
                    failed[pos] = ExportFailure(
                        item_id=item_id,
                        error_type=exc.__class__.__name__,
                        message=str(exc),
                    )

        workers = [asyncio.create_task(worker()) for _ in range(min(concurrency, len(chunk_ids)))]
        await asyncio.gather(*workers)

        chunk = ChunkResult(index=index, item_ids=list(chunk_ids))
        used: set[str] = set()
        entries: list[tuple[str, bytes]] = []
        for pos, item_id in enumerate(chunk_ids):
            if pos in fetched:
                got = fetched[pos]
                name = names.get(item_id) or got.name or self._resolver.name_for(item_id) or item_id
                entries.append((unique_name(name, used), got.data))
            elif pos in failed:
                chunk.errors.append(failed[pos])

        if entries:
            chunk.archive = self._archive_builder(entries)
            chunk.entries = [name for name, _ in entries]

        if chunk.errors:
            logger.warning(
                "Export chunk %d: %d of %d items failed: %s",
                index,
                len(chunk.errors),
                len(chunk_ids),
                ", ".join(f"{e.item_id} ({e.error_type})" for e in chunk.errors),
            )
        logger.info("Export chunk %d: %d items archived", index, len(entries))
        return chunk

    async def _fetch_one(self, item_id: str) -> _Fetched:
        tiers: list[tuple[str, Callable[[], Awaitable[_Fetched]]]] = [
            ("cached link", lambda: self._via_resolver(item_id, force_refresh=False)),
            ("refreshed link", lambda: self._via_resolver(item_id, force_refresh=True)),
            ("metadata link", lambda: self._via_metadata(item_id)),
            ("content endpoint", lambda: self._via_content(item_id)),
        ]

        failures: dict[str, str] = {}
        last: Optional[DriveTriageError] = None
        for label, attempt in tiers:
            try:
                return await attempt()
            except DriveTriageError as exc:
                logger.debug("Export %s: %s failed: %s", item_id, label, exc)
                failures[label] = f"{type(exc).__name__}: {exc}"
                last = exc

        raise ResolutionError(
            "No download tier worked (" + "; ".join(f"{k}: {v}" for k, v in failures.items()) + ")",
            details={"item_id": item_id, "tiers": failures},
            cause=last,
        ) from last

    async def _via_resolver(self, item_id: str, *, force_refresh: bool) -> _Fetched:
        url = await self._resolver.resolve(item_id, force_refresh=force_refresh)
        return _Fetched(await self._source.fetch_url_bytes(url))

    async def _via_metadata(self, item_id: str) -> _Fetched:
        item, url = await self._source.get_item(item_id)
        if not url:
            raise ResolutionError("Item metadata has no direct link", details={"item_id": item_id})
        return _Fetched(await self._source.fetch_url_bytes(url), name=item.name or None)

    async def _via_content(self, item_id: str) -> _Fetched:
        return _Fetched(await self._source.download_content(item_id))

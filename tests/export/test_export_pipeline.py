import asyncio
import io
import unittest
import zipfile
from collections import defaultdict
from typing import Optional

from drivetriage.errors import InvalidArgumentError, NotFoundError, PermissionError
from drivetriage.export import BulkExportPipeline
from drivetriage.models import RemoteItem
from drivetriage.resolver import DownloadUrlResolver


class FakeDrive:
    """Link source and content source in one; every call suspends once."""

    def __init__(self, linked: list[str]) -> None:
        self.linked = set(linked)
        self.link_versions: dict[str, int] = defaultdict(int)
        self.bad_urls: set[str] = set()
        self.meta_links: dict[str, Optional[str]] = {}
        self.content: dict[str, bytes] = {}
        self.events: list[tuple[str, str]] = []
        self.active = 0
        self.max_active = 0

    async def get_download_link(self, item_id: str):
        await asyncio.sleep(0)
        if item_id not in self.linked:
            raise NotFoundError("gone", details={"item_id": item_id})
        self.link_versions[item_id] += 1
        return f"https://dl/{item_id}/v{self.link_versions[item_id]}", f"{item_id}.jpg"

    async def fetch_url_bytes(self, url: str) -> bytes:
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        self.events.append(("start", url))
        try:
            await asyncio.sleep(0)
            if url in self.bad_urls:
                raise PermissionError("link expired")
            return f"bytes:{url}".encode("utf-8")
        finally:
            self.active -= 1
            self.events.append(("end", url))

    async def get_item(self, item_id: str):
        await asyncio.sleep(0)
        if item_id not in self.meta_links:
            raise NotFoundError("gone")
        return RemoteItem(id=item_id, name=f"meta-{item_id}.jpg"), self.meta_links[item_id]

    async def download_content(self, item_id: str) -> bytes:
        await asyncio.sleep(0)
        if item_id not in self.content:
            raise NotFoundError("gone")
        return self.content[item_id]


def _names(archive: bytes) -> list[str]:
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        return zf.namelist()


def _read(archive: bytes, name: str) -> bytes:
    with zipfile.ZipFile(io.BytesIO(archive)) as zf:
        return zf.read(name)


class TestBulkExportPipeline(unittest.IsolatedAsyncioTestCase):
    def _pipeline(self, drive: FakeDrive) -> BulkExportPipeline:
        return BulkExportPipeline(DownloadUrlResolver(drive), drive)

    async def test_failed_item_is_skipped_per_chunk(self) -> None:
        drive = FakeDrive(linked=["1", "3"])
        result = await self._pipeline(drive).run(["1", "2", "3"], chunk_size=2, concurrency=2)

        self.assertEqual(len(result.chunks), 2)
        first, second = result.chunks
        self.assertEqual(first.item_ids, ["1", "2"])
        self.assertEqual(_names(first.archive), ["1.jpg"])
        self.assertEqual([e.item_id for e in first.errors], ["2"])
        self.assertEqual(_names(second.archive), ["3.jpg"])
        self.assertEqual(second.errors, [])
        self.assertEqual([f.item_id for f in result.failures], ["2"])

    async def test_exhausted_tiers_report_resolution_error(self) -> None:
        drive = FakeDrive(linked=[])
        result = await self._pipeline(drive).run(["gone"])

        (failure,) = result.failures
        self.assertEqual(failure.error_type, "ResolutionError")
        for label in ("cached link", "refreshed link", "metadata link", "content endpoint"):
            self.assertIn(label, failure.message)
        self.assertIn("NotFoundError", failure.message)

    async def test_n_minus_m_entries(self) -> None:
        ids = [str(i) for i in range(7)]
        drive = FakeDrive(linked=["0", "2", "4", "6"])
        result = await self._pipeline(drive).run(ids, chunk_size=10, concurrency=3)

        self.assertEqual(len(result.archives), 1)
        self.assertEqual(_names(result.archives[0]), ["0.jpg", "2.jpg", "4.jpg", "6.jpg"])
        self.assertEqual(sorted(f.item_id for f in result.failures), ["1", "3", "5"])
        self.assertEqual(result.summary["exported"], 4)

    async def test_chunk_with_no_success_produces_no_archive(self) -> None:
        drive = FakeDrive(linked=["3"])
        result = await self._pipeline(drive).run(["1", "2", "3"], chunk_size=2, concurrency=2)
        self.assertIsNone(result.chunks[0].archive)
        self.assertEqual(len(result.chunks[0].errors), 2)
        self.assertEqual(len(result.archives), 1)

    async def test_forced_refresh_tier(self) -> None:
        drive = FakeDrive(linked=["x"])
        drive.bad_urls = {"https://dl/x/v1"}
        result = await self._pipeline(drive).run(["x"], chunk_size=5, concurrency=1)

        self.assertEqual(result.failures, [])
        self.assertEqual(_read(result.archives[0], "x.jpg"), b"bytes:https://dl/x/v2")

    async def test_metadata_tier(self) -> None:
        drive = FakeDrive(linked=[])
        drive.meta_links["m"] = "https://meta/m"
        result = await self._pipeline(drive).run(["m"], chunk_size=5, concurrency=1)

        self.assertEqual(_names(result.archives[0]), ["meta-m.jpg"])
        self.assertEqual(_read(result.archives[0], "meta-m.jpg"), b"bytes:https://meta/m")

    async def test_content_endpoint_is_last_resort(self) -> None:
        drive = FakeDrive(linked=["c"])
        drive.bad_urls = {"https://dl/c/v1", "https://dl/c/v2", "https://meta/c"}
        drive.meta_links["c"] = "https://meta/c"
        drive.content["c"] = b"raw"
        result = await self._pipeline(drive).run(["c"], names={"c": "holiday.jpg"})

        self.assertEqual(_names(result.archives[0]), ["holiday.jpg"])
        self.assertEqual(_read(result.archives[0], "holiday.jpg"), b"raw")

    async def test_concurrency_bound_and_sequential_chunks(self) -> None:
        ids = [str(i) for i in range(10)]
        drive = FakeDrive(linked=ids)
        seen_chunks: list[int] = []
        result = await self._pipeline(drive).run(
            ids,
            chunk_size=5,
            concurrency=2,
            on_chunk=lambda c: seen_chunks.append(c.index),
        )

        self.assertEqual(drive.max_active, 2)
        self.assertEqual(seen_chunks, [0, 1])
        self.assertEqual(len(result.archives), 2)

        last_end_of_first = max(
            i for i, (kind, url) in enumerate(drive.events)
            if kind == "end" and url.split("/")[3] in ids[:5]
        )
        first_start_of_second = min(
            i for i, (kind, url) in enumerate(drive.events)
            if kind == "start" and url.split("/")[3] in ids[5:]
        )
        self.assertLess(last_end_of_first, first_start_of_second)

    async def test_entries_follow_id_order_and_names_are_unique(self) -> None:
        drive = FakeDrive(linked=["a", "b", "c"])
        names = {"a": "IMG.jpg", "b": "IMG.jpg", "c": "IMG.jpg"}
        result = await self._pipeline(drive).run(["c", "a", "b"], concurrency=3, names=names)
        self.assertEqual(result.chunks[0].entries, ["IMG.jpg", "IMG (1).jpg", "IMG (2).jpg"])
        self.assertEqual(_read(result.archives[0], "IMG.jpg"), b"bytes:https://dl/c/v1")

    async def test_duplicate_ids_exported_once(self) -> None:
        drive = FakeDrive(linked=["a"])
        result = await self._pipeline(drive).run(["a", "a"])
        self.assertEqual(result.chunks[0].entries, ["a.jpg"])

    async def test_empty_selection(self) -> None:
        result = await self._pipeline(FakeDrive(linked=[])).run([])
        self.assertEqual(result.chunks, [])
        self.assertEqual(result.archives, [])

    async def test_invalid_arguments(self) -> None:
        pipeline = self._pipeline(FakeDrive(linked=[]))
        with self.assertRaises(InvalidArgumentError):
            await pipeline.run(["a"], chunk_size=0)
        with self.assertRaises(InvalidArgumentError):
            await pipeline.run(["a"], concurrency=0)

    async def test_custom_archive_builder(self) -> None:
        drive = FakeDrive(linked=["a", "b"])
        pipeline = BulkExportPipeline(
            DownloadUrlResolver(drive),
            drive,
            archive_builder=lambda entries: "|".join(n for n, _ in entries).encode(),
        )
        result = await pipeline.run(["a", "b"])
        self.assertEqual(result.archives, [b"a.jpg|b.jpg"])


if __name__ == "__main__":
    unittest.main()

"""Google Drive API controller (internal use only)."""

from __future__ import annotations

import io
import logging
import re
from typing import Any, Callable, Optional, Sequence, TypeVar

from drivetriage.config import MAX_DELETE_BATCH
from drivetriage.errors import (
    AuthError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
    ResolutionError,
    map_http_error,
)
from drivetriage.fetcher import RateLimitedFetcher, map_exception, response_error_info
from drivetriage.models import DeleteResult, RemoteItem, RemotePage
from drivetriage.util.mime import MEDIA_QUERY, is_video
from drivetriage.util.time import parse_rfc3339

from .fields import FULL_ITEM_FIELDS, LINK_FIELDS, LIST_FIELDS, THUMBNAIL_FIELDS, TRASH_FIELDS

T = TypeVar("T")

logger = logging.getLogger(__name__)

DOWNLOAD_TIMEOUT_SEC = 120

# Drive thumbnail links end in "=s<px>"; asking for a larger edge gives the
# "large" rendition when the server has one.
THUMBNAIL_SIZE_LARGE = 800
_THUMB_SIZE_RE = re.compile(r"=s\d+$")

# Drive sorts ties in no particular order; the second key keeps page
# boundaries the same across re-listings.
_ORDER_BY_WITH_TIEBREAK: dict[str, str] = {
    "name": "name,createdTime",
    "createdTime": "createdTime,name",
}


class DriveController:
    """
    Async Drive API adapter (internal only).

    Notes:
        - The Drive `service` object is NOT exposed.
        - Every remote call goes through the RateLimitedFetcher.
        - When built from credentials, each request runs on its own
          AuthorizedHttp so concurrent export workers never share an
          httplib2 connection.
    """

    def __init__(
        self,
        credentials: Any,
        *,
        fetcher: Optional[RateLimitedFetcher] = None,
        supports_all_drives: bool = True,
    ) -> None:
        try:
            import google_auth_httplib2
            import httplib2
            from google.auth.transport.requests import AuthorizedSession
            from googleapiclient.discovery import build
        except Exception as exc:  # pragma: no cover
            raise AuthError(
                "Google API client libraries are not available",
                details={"hint": "Install google-api-python-client and google-auth"},
                cause=exc,
            ) from exc

        try:
            service = build("drive", "v3", credentials=credentials, cache_discovery=False)
        except Exception as exc:
            raise AuthError("Failed to build Drive service", cause=exc) from exc

        self._service = service
        self._session = AuthorizedSession(credentials)
        self._http_factory: Optional[Callable[[], Any]] = (
            lambda: google_auth_httplib2.AuthorizedHttp(credentials, http=httplib2.Http())
        )
        self._fetcher = fetcher or RateLimitedFetcher()
        self._supports_all_drives = supports_all_drives

    @classmethod
    def from_service(
        cls,
        service: Any,
        *,
        session: Any = None,
        fetcher: Optional[RateLimitedFetcher] = None,
        supports_all_drives: bool = True,
    ) -> "DriveController":
        """Create controller from a pre-built Drive service (useful for tests)."""
        obj = cls.__new__(cls)
        obj._service = service
        obj._session = session
        obj._http_factory = None
        obj._fetcher = fetcher or RateLimitedFetcher()
        obj._supports_all_drives = supports_all_drives
        return obj

    # ----------------------------
    # Listing / metadata
    # ----------------------------
    async def list_page(
        self,
        folder_id: str,
        *,
        cursor: Optional[str] = None,
        page_size: int = 25,
        order_by: str = "name",
    ) -> RemotePage:
        """
        Fetch one listing page of photos/videos in `folder_id`.

        The first page is requested without a page token; later pages must
        pass the cursor returned with the previous page.
        """
        kwargs: dict[str, Any] = {
            "q": _build_media_query(folder_id),
            "orderBy": _ORDER_BY_WITH_TIEBREAK.get(order_by, order_by),
            "pageSize": page_size,
            "fields": LIST_FIELDS,
        }
        if cursor is not None:
            kwargs["pageToken"] = cursor

        req = self._service.files().list(**kwargs, **self._common_list_kwargs())
        data = await self._execute(req)

        items = [_file_dict_to_remote_item(f) for f in data.get("files", []) or []]
        next_cursor = data.get("nextPageToken") or None
        return RemotePage(items=items, next_cursor=next_cursor)

    async def get_thumbnail_url(self, item_id: str) -> Optional[str]:
        """Best available thumbnail link, or None when Drive has none."""
        req = self._service.files().get(
            fileId=item_id,
            fields=THUMBNAIL_FIELDS,
            **self._common_get_kwargs(),
        )
        data = await self._execute(req)
        return pick_thumbnail_url(data)

    async def get_download_link(self, item_id: str) -> tuple[Optional[str], str]:
        """Return (direct link or None, item name)."""
        req = self._service.files().get(
            fileId=item_id,
            fields=LINK_FIELDS,
            **self._common_get_kwargs(),
        )
        data = await self._execute(req)
        return _link_of(data), _name_of(data)

    async def get_item(self, item_id: str) -> tuple[RemoteItem, Optional[str]]:
        """Full metadata for one item, plus its direct link if any."""
        req = self._service.files().get(
            fileId=item_id,
            fields=FULL_ITEM_FIELDS,
            **self._common_get_kwargs(),
        )
        data = await self._execute(req)
        if data.get("trashed"):
            raise NotFoundError("Item is trashed", details={"item_id": item_id})
        item = _file_dict_to_remote_item(data)
        item.thumbnail_url = pick_thumbnail_url(data)
        return item, _link_of(data)

    # ----------------------------
    # Content
    # ----------------------------
    async def fetch_url_bytes(self, url: str) -> bytes:
        """
        Download a direct link with the authorized HTTP session.

        Raises:
            ResolutionError: Drive answered with an HTML page (virus-scan
                interstitial, sign-in redirect) instead of the file.
        """
        if self._session is None:
            raise InvalidStateError("No HTTP session configured for direct downloads")
        session = self._session

        def run() -> bytes:
            resp = session.get(url, timeout=DOWNLOAD_TIMEOUT_SEC)
            if resp.status_code >= 400:
                info = response_error_info(resp.status_code, resp.headers, resp.text)
                raise map_http_error(info)
            content_type = _content_type(resp.headers)
            if content_type == "text/html":
                raise ResolutionError(
                    "Direct link returned an HTML page instead of the file",
                    details={"url": url, "status_code": resp.status_code, "content_type": content_type},
                )
            return resp.content

        return await self._fetcher.call(run)

    async def download_content(self, item_id: str) -> bytes:
        """Download an item through the API content endpoint (alt=media)."""
        try:
            from googleapiclient.http import MediaIoBaseDownload
        except Exception as exc:  # pragma: no cover
            raise AuthError(
                "google-api-python-client is not available",
                cause=exc,
            ) from exc

        req = self._service.files().get_media(
            fileId=item_id,
            **self._common_get_kwargs(),
        )
        if self._http_factory is not None:
            req.http = self._http_factory()

        def run() -> bytes:
            buf = io.BytesIO()
            downloader = MediaIoBaseDownload(buf, req)
            done = False
            while not done:
                _, done = downloader.next_chunk()
            return buf.getvalue()

        return await self._fetcher.call(run)

    # ----------------------------
    # Destructive
    # ----------------------------
    async def delete_batch(self, item_ids: Sequence[str]) -> DeleteResult:
        """
        Move up to 20 items to the Drive trash in one batch call.

        Trashed items stay recoverable from the Drive UI until the trash is
        emptied. Per-item 404s count as `missing`; other per-item errors land in
        `failed`. A failure of the batch call itself raises.
        """
        ids = list(item_ids)
        if len(ids) > MAX_DELETE_BATCH:
            raise InvalidArgumentError(
                f"At most {MAX_DELETE_BATCH} deletes per batch",
                details={"count": len(ids)},
            )
        if not ids:
            return DeleteResult()

        service = self._service
        write_kwargs = self._common_write_kwargs()
        http_factory = self._http_factory

        def run() -> DeleteResult:
            result = DeleteResult()

            def on_response(request_id: str, response: Any, exception: Any) -> None:
                item_id = ids[int(request_id)]
                if exception is None:
                    result.deleted.append(item_id)
                    return
                mapped = map_exception(exception)
                if isinstance(mapped, NotFoundError):
                    result.missing.append(item_id)
                else:
                    result.failed[item_id] = str(mapped)

            batch = service.new_batch_http_request(callback=on_response)
            for idx, item_id in enumerate(ids):
                batch.add(
                    service.files().update(
                        fileId=item_id,
                        body={"trashed": True},
                        fields=TRASH_FIELDS,
                        **write_kwargs,
                    ),
                    request_id=str(idx),
                )
            if http_factory is not None:
                batch.execute(http=http_factory())
            else:
                batch.execute()
            return result

        result = await self._fetcher.call(run)
        logger.info(
            "Trash batch: %d trashed, %d missing, %d failed",
            len(result.deleted),
            len(result.missing),
            len(result.failed),
        )
        return result

    # ----------------------------
    # Internals
    # ----------------------------
    def _common_get_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    def _common_list_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True, "includeItemsFromAllDrives": True}

    def _common_write_kwargs(self) -> dict[str, Any]:
        if not self._supports_all_drives:
            return {}
        return {"supportsAllDrives": True}

    async def _execute(self, req: Any) -> dict[str, Any]:
        http_factory = self._http_factory
        if http_factory is None:
            data = await self._fetcher.call(req.execute)
        else:
            data = await self._fetcher.call(lambda: req.execute(http=http_factory()))
        return data if isinstance(data, dict) else {}


def _build_media_query(folder_id: str) -> str:
    escaped = folder_id.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}' in parents and trashed=false and {MEDIA_QUERY}"


def pick_thumbnail_url(data: dict[str, Any]) -> Optional[str]:
    """Prefer the large rendition of the thumbnail link, else the link as served."""
    link = data.get("thumbnailLink")
    if not isinstance(link, str) or not link:
        return None
    if _THUMB_SIZE_RE.search(link):
        return _THUMB_SIZE_RE.sub(f"=s{THUMBNAIL_SIZE_LARGE}", link)
    return link


def _link_of(data: dict[str, Any]) -> Optional[str]:
    link = data.get("webContentLink")
    return link if isinstance(link, str) and link else None


def _name_of(data: dict[str, Any]) -> str:
    name = data.get("name", "")
    return name if isinstance(name, str) else ""


def _file_dict_to_remote_item(data: dict[str, Any]) -> RemoteItem:
    item_id = data.get("id")
    mime_type = data.get("mimeType", "")
    if not isinstance(mime_type, str):
        mime_type = ""

    created_at = None
    if isinstance(data.get("createdTime"), str):
        try:
            created_at = parse_rfc3339(data["createdTime"])
        except ValueError:
            created_at = None

    return RemoteItem(
        id=item_id if isinstance(item_id, str) else "",
        name=_name_of(data),
        is_video=is_video(mime_type),
        mime_type=mime_type,
        created_at=created_at,
    )


def _content_type(headers: Any) -> str:
    if headers is None or not hasattr(headers, "get"):
        return ""
    value = headers.get("Content-Type") or headers.get("content-type") or ""
    return str(value).split(";", 1)[0].strip().lower()

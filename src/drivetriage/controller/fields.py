"""Field definitions for Google Drive API responses."""

from __future__ import annotations

ITEM_FIELDS: str = (
    "id,"
    "name,"
    "mimeType,"
    "createdTime"
)

LIST_FIELDS: str = f"nextPageToken,files({ITEM_FIELDS})"

THUMBNAIL_FIELDS: str = "id,thumbnailLink"

LINK_FIELDS: str = "id,name,webContentLink"

FULL_ITEM_FIELDS: str = f"{ITEM_FIELDS},trashed,thumbnailLink,webContentLink"

TRASH_FIELDS: str = "id,trashed"

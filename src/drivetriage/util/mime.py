from __future__ import annotations

# Listing clause restricting a folder query to photos and videos.
MEDIA_QUERY: str = "(mimeType contains 'image/' or mimeType contains 'video/')"


def is_video(mime_type: str) -> bool:
    return mime_type.startswith("video/")

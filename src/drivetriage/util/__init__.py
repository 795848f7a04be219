from .chunks import chunked, dedupe
from .mime import MEDIA_QUERY, is_video
from .time import age_seconds, now_utc, parse_rfc3339

__all__ = [
    "chunked",
    "dedupe",
    "MEDIA_QUERY",
    "is_video",
    "now_utc",
    "parse_rfc3339",
    "age_seconds",
]

"""Default archive encoding for exported chunks."""

from __future__ import annotations

import io
import os
import zipfile
from typing import Callable, Sequence

ArchiveBuilder = Callable[[Sequence[tuple[str, bytes]]], bytes]


def build_zip(entries: Sequence[tuple[str, bytes]]) -> bytes:
    """Pack (name, data) pairs into an uncompressed ZIP; photos and videos are already compressed."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_STORED) as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buf.getvalue()


def unique_name(name: str, used: set[str]) -> str:
    """Return `name`, or `stem (n).ext` if it was already taken; records the result in `used`."""
    candidate = name
    stem, ext = os.path.splitext(name)
    n = 1
    while candidate in used:
        candidate = f"{stem} ({n}){ext}"
        n += 1
    used.add(candidate)
    return candidate

from __future__ import annotations

from typing import Sequence, TypeVar

T = TypeVar("T")


def chunked(values: Sequence[T], size: int) -> list[list[T]]:
    """Split `values` into order-preserving slices of at most `size` elements."""
    if size <= 0:
        raise ValueError("chunk size must be positive")
    return [list(values[i : i + size]) for i in range(0, len(values), size)]


def dedupe(values: Sequence[T]) -> list[T]:
    """Drop repeated values, keeping the first occurrence."""
    seen: set[T] = set()
    out: list[T] = []
    for v in values:
        if v in seen:
            continue
        seen.add(v)
        out.append(v)
    return out

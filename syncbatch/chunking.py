from collections.abc import Sequence
from typing import TypeVar


T = TypeVar("T")


def split(batch: Sequence[T], size: int) -> list[list[T]]:
    """Partition ``batch`` into contiguous chunks of ``size`` items, keeping order.

    Every chunk but the last holds exactly ``size`` items; the last holds the
    remainder. An empty batch yields no chunks.
    """
    if isinstance(size, bool) or not isinstance(size, int):
        raise TypeError(f"chunk size must be an int, got {type(size).__name__}")
    if size <= 0:
        raise ValueError(f"chunk size must be positive, got {size}")

    items = list(batch)
    return [items[start : start + size] for start in range(0, len(items), size)]

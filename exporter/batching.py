from collections.abc import Sequence
from typing import TypeVar

T = TypeVar('T')


def chunked(items: Sequence[T], max_size: int) -> list[list[T]]:
    """Split ``items`` into ordered chunks of at most ``max_size`` elements."""
    if max_size < 1:
        raise ValueError(f'max_size must be positive, got {max_size}')
    return [
        list(items[start : start + max_size])
        for start in range(0, len(items), max_size)
    ]

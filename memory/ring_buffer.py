"""Fixed-capacity circular buffer shared by every bounded history."""

from __future__ import annotations

from collections import deque
from collections.abc import Iterable, Iterator
from typing import Generic, TypeVar

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Keeps the newest ``capacity`` items, evicting the oldest on overflow."""

    def __init__(self, capacity: int, items: Iterable[T] | None = None) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._items: deque[T] = deque(items or (), maxlen=capacity)

    def push(self, item: T) -> T | None:
        """Append ``item`` and return the evicted element, if any."""
        evicted = self._items[0] if len(self._items) == self.capacity else None
        self._items.append(item)
        return evicted

    def push_unique(self, item: T) -> bool:
        """Append ``item`` unless already present. Returns True when appended."""
        if item in self._items:
            return False
        self.push(item)
        return True

    def last(self) -> T | None:
        return self._items[-1] if self._items else None

    def items(self) -> list[T]:
        """Oldest-first copy of the contents."""
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items))

    def __contains__(self, item: object) -> bool:
        return item in self._items


def bounded(items: Iterable[T], capacity: int) -> list[T]:
    """Trim a plain list to its newest ``capacity`` elements."""
    return RingBuffer(capacity, items).items()


def append_bounded(items: list[T], item: T, capacity: int, unique: bool = False) -> list[T]:
    """Return ``items`` with ``item`` appended under the ring-buffer rule."""
    buffer = RingBuffer(capacity, items)
    if unique:
        buffer.push_unique(item)
    else:
        buffer.push(item)
    return buffer.items()

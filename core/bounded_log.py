"""
polyedge Core: Bounded Log

Append-only rolling window with a hard capacity and oldest-first eviction.
Backs the activity log and the balance history.

Not synchronized on its own: callers share the engine lock.
"""

from collections import deque
from typing import Deque, Generic, Iterable, Iterator, List, Optional, TypeVar

T = TypeVar("T")


class BoundedLog(Generic[T]):
    """
    Rolling window of the most recent `capacity` entries.

    After N appends the log holds min(N, capacity) entries: exactly the last
    ones appended, in their original relative order.
    """

    def __init__(self, capacity: int, initial: Optional[Iterable[T]] = None):
        if capacity <= 0:
            raise ValueError(f"BoundedLog capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._entries: Deque[T] = deque(maxlen=capacity)
        self._appended = 0
        if initial is not None:
            self.extend(initial)

    def append(self, entry: T) -> T:
        self._entries.append(entry)
        self._appended += 1
        return entry

    def extend(self, entries: Iterable[T]) -> None:
        for entry in entries:
            self.append(entry)

    def snapshot(self) -> List[T]:
        """Copy of the current entries, oldest first."""
        return list(self._entries)

    @property
    def total_appended(self) -> int:
        """Entries ever appended, including evicted ones."""
        return self._appended

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._entries))

    def __getitem__(self, index: int) -> T:
        return self._entries[index]

"""
Fixed-capacity ring buffer of keystroke events

Holds the last ``capacity`` events. Inserts are O(1) and overwrite the oldest
entry once the buffer is full; reading the most recent k events is O(k).
"""

from typing import List, Optional

from .models import KeystrokeEvent


class CircularEventBuffer:
    """Ring buffer backed by a preallocated list"""

    def __init__(self, capacity: int = 1000):
        if not isinstance(capacity, int) or capacity <= 0:
            raise ValueError(f"capacity must be a positive integer, got {capacity!r}")
        self._capacity = capacity
        self._storage: List[Optional[KeystrokeEvent]] = [None] * capacity
        self._head = 0  # next write slot
        self._count = 0

    def push(self, event: KeystrokeEvent) -> None:
        """Insert an event, overwriting the oldest one when full"""
        self._storage[self._head] = event
        self._head = (self._head + 1) % self._capacity
        self._count = min(self._count + 1, self._capacity)

    def get_recent(self, count: int) -> List[KeystrokeEvent]:
        """Return up to ``count`` most recent events, oldest first"""
        actual = min(count, self._count)
        if actual <= 0:
            return []

        start = (self._head - actual) % self._capacity
        end = start + actual
        if end <= self._capacity:
            return self._storage[start:end]
        # Wrapped: tail of the storage followed by its head
        return self._storage[start:] + self._storage[:end - self._capacity]

    def clear(self) -> None:
        """Logical reset; stale slots are overwritten by later pushes"""
        self._head = 0
        self._count = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def length(self) -> int:
        return self._count

    def __len__(self) -> int:
        return self._count

    def __repr__(self) -> str:
        return f"CircularEventBuffer(capacity={self._capacity}, length={self._count})"

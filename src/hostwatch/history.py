"""Bounded in-memory history of snapshots."""

import threading

from hostwatch.models import Snapshot

DEFAULT_CAPACITY = 1000


class HistoryStore:
    """
    Fixed-capacity, insertion-ordered buffer of recent snapshots.

    Backed by a ring of slots so eviction is O(1). One collection thread
    writes, any number of readers copy; the lock is held only while the
    ring is updated or copied.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        """
        Initialize the HistoryStore.

        Args:
            capacity: Maximum number of snapshots retained. 0 retains nothing.

        Raises:
            ValueError: If capacity is negative.
        """
        if capacity < 0:
            raise ValueError(f"capacity must be >= 0, got {capacity}")
        self._capacity = capacity
        self._slots: list[Snapshot | None] = [None] * capacity
        self._start = 0  # Index of the oldest entry
        self._size = 0
        self._lock = threading.Lock()

    @property
    def capacity(self) -> int:
        return self._capacity

    def __len__(self) -> int:
        with self._lock:
            return self._size

    def append(self, snapshot: Snapshot) -> None:
        """Add a snapshot at the end, evicting the oldest when full."""
        if self._capacity == 0:
            return
        with self._lock:
            end = (self._start + self._size) % self._capacity
            self._slots[end] = snapshot
            if self._size < self._capacity:
                self._size += 1
            else:
                # Overwrote the oldest entry
                self._start = (self._start + 1) % self._capacity

    def snapshot_all(self) -> list[Snapshot]:
        """Return all retained snapshots, oldest first, as a new list."""
        with self._lock:
            ordered = [
                self._slots[(self._start + offset) % self._capacity]
                for offset in range(self._size)
            ]
        return ordered  # type: ignore[return-value]

    def latest(self) -> Snapshot | None:
        """Return the most recent snapshot, or None when empty."""
        with self._lock:
            if self._size == 0:
                return None
            return self._slots[(self._start + self._size - 1) % self._capacity]

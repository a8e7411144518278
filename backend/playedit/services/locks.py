"""
Per-owner exclusive sections.

Insert, move, remove and repair for one owner must not interleave their
shift phases. Owners never contend with each other.
"""
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID


class OwnerLocks:
    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self._locks: dict[UUID, threading.RLock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, owner_id: UUID) -> threading.RLock:
        with self._guard:
            lock = self._locks.get(owner_id)
            if lock is None:
                lock = self._locks[owner_id] = threading.RLock()
            return lock

    @contextmanager
    def exclusive(self, owner_id: UUID) -> Iterator[None]:
        """Hold *owner_id*'s section for the duration of the block."""
        if not self.enabled:
            yield
            return
        with self._lock_for(owner_id):
            yield

"""
Per-key locks

One in-flight writer per key: (document_type, source) for pattern analysis,
missing_document_id for reminder counters and status updates. Different keys
never block each other.
"""
import threading
from contextlib import contextmanager
from typing import Dict, Hashable


class KeyedLock:
    """Lazily created threading.Lock per key."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Hashable, threading.Lock] = {}

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, key: Hashable):
        lock = self._lock_for(key)
        with lock:
            yield

    def __len__(self) -> int:
        return len(self._locks)

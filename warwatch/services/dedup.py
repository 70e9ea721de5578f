"""Bounded set of already-ingested external identifiers."""

import threading
from collections import OrderedDict
from typing import Iterable, Optional


class DedupCache:
    """FIFO-bounded seen-set shared by the feed poller and the webhook handler.

    Eviction is by insertion order: re-marking a key that is already present
    does not move it to the back. The cache lives in process memory only; the
    store's idempotent inserts absorb the duplicates a restart lets through.
    """

    def __init__(self, capacity: int = 1000) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._keys: "OrderedDict[str, None]" = OrderedDict()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._keys)

    def seen(self, key: str) -> bool:
        with self._lock:
            return key in self._keys

    def mark_seen(self, key: str) -> None:
        with self._lock:
            self._add(key)

    def discard(self, keys: Iterable[str]) -> None:
        """Forget keys whose write failed, so the next delivery is admitted again."""
        with self._lock:
            for key in keys:
                self._keys.pop(key, None)

    def check_and_mark(self, key: Optional[str]) -> bool:
        """Atomically mark ``key``; True if it was not seen before."""
        if not key:
            return False
        with self._lock:
            if key in self._keys:
                return False
            self._add(key)
            return True

    def _add(self, key: str) -> None:
        if key in self._keys:
            return
        self._keys[key] = None
        while len(self._keys) > self.capacity:
            self._keys.popitem(last=False)

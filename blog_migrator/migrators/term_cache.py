from __future__ import annotations

import threading
from typing import Callable, Dict, Hashable, Optional


class TermCache:
    """
    Process-lifetime map from a taxonomy name to its WordPress term id.

    Entries are never invalidated.  :meth:`get_or_create` holds a lock per key
    while the factory runs, so two workers asking for the same unknown name
    issue a single search/create round-trip; different names do not wait on
    each other.
    """

    def __init__(self) -> None:
        self._ids: Dict[Hashable, int] = {}
        self._key_locks: Dict[Hashable, threading.Lock] = {}
        self._guard = threading.Lock()

    def get(self, key: Hashable) -> Optional[int]:
        with self._guard:
            return self._ids.get(key)

    def set(self, key: Hashable, term_id: int) -> None:
        with self._guard:
            self._ids[key] = term_id

    def __len__(self) -> int:
        with self._guard:
            return len(self._ids)

    def _lock_for(self, key: Hashable) -> threading.Lock:
        with self._guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = threading.Lock()
            return lock

    def get_or_create(self, key: Hashable, factory: Callable[[], int]) -> int:
        cached = self.get(key)
        if cached is not None:
            return cached
        with self._lock_for(key):
            cached = self.get(key)
            if cached is not None:
                return cached
            term_id = factory()
            self.set(key, term_id)
            return term_id

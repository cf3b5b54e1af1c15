from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Hashable, Iterator

from ..core.constants import DEFAULT_LOCK_TIMEOUT_SECONDS
from ..core.exceptions import StorageUnavailable


class _Entry:
    __slots__ = ("lock", "users")

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


class KeyedLock:
    """One mutex per key, created on demand.

    Holders of different keys never block each other. Acquisition is bounded by
    ``timeout`` so a stuck writer surfaces as StorageUnavailable instead of a hang.
    A key's mutex is dropped once nobody holds or waits for it.
    """

    def __init__(self, *, timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS):
        self._timeout = float(timeout)
        self._guard = threading.Lock()
        self._entries: dict[Hashable, _Entry] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)

    def _checkout(self, key: Hashable) -> _Entry:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _Entry()
                self._entries[key] = entry
            entry.users += 1
            return entry

    def _checkin(self, key: Hashable, entry: _Entry) -> None:
        with self._guard:
            entry.users -= 1
            if entry.users == 0:
                del self._entries[key]

    @contextmanager
    def hold(self, key: Hashable) -> Iterator[None]:
        entry = self._checkout(key)
        try:
            if not entry.lock.acquire(timeout=self._timeout):
                raise StorageUnavailable(f"Timed out waiting for lock on {key!r}")
            try:
                yield
            finally:
                entry.lock.release()
        finally:
            self._checkin(key, entry)

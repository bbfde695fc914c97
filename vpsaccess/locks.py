"""共享配置文件的互斥访问。Scoped exclusive access to shared backend artifacts.

Several backends keep every account in one file (the Xray config, htpasswd
files, the dropbear allow-list). Read-modify-write cycles on those files must
not interleave, so each update runs inside :meth:`ResourceLocks.exclusive`.
"""

from __future__ import annotations

import os
import threading
from contextlib import contextmanager
from typing import Dict, Iterator


class ResourceLocks:
    """Hand out one re-entrant lock per normalized artifact path."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.RLock] = {}

    @staticmethod
    def _key(resource: str | os.PathLike[str]) -> str:
        return os.path.normpath(os.fspath(resource))

    def lock_for(self, resource: str | os.PathLike[str]) -> threading.RLock:
        key = self._key(resource)
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def exclusive(self, resource: str | os.PathLike[str]) -> Iterator[None]:
        """Hold the lock for ``resource``; released on every exit path."""

        lock = self.lock_for(resource)
        lock.acquire()
        try:
            yield
        finally:
            lock.release()

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

"""A time value guarded by a lock."""

from __future__ import annotations

import contextlib
import datetime as _dt
import threading
from collections.abc import Iterator


class SyncedTime:
    """Holds a datetime that threads read and update under a lock."""

    def __init__(self, value: _dt.datetime) -> None:
        self.value = value
        self._lock = threading.Lock()

    @contextlib.contextmanager
    def synchronized(self) -> Iterator["SyncedTime"]:
        """Hold the lock for the block; read or assign .value inside it."""
        with self._lock:
            yield self

    def get(self) -> _dt.datetime:
        """Return the current value under the lock."""
        with self._lock:
            return self.value
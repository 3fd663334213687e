from __future__ import annotations

import contextlib
import threading
from typing import Dict, Iterator, Optional

from noderegistry.core.errors import OperationInProgressError
from noderegistry.core.nodes.models import ModuleState


class KeyedLocks:
    """
    One lock per key, created on demand and dropped when nobody holds or waits on it.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}
        self._users: Dict[str, int] = {}

    @contextlib.contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._lock:
            lk = self._locks.setdefault(key, threading.Lock())
            self._users[key] = self._users.get(key, 0) + 1
        try:
            with lk:
                yield
        finally:
            with self._lock:
                n = self._users.get(key, 1) - 1
                if n <= 0:
                    self._users.pop(key, None)
                    self._locks.pop(key, None)
                else:
                    self._users[key] = n

    def size(self) -> int:
        with self._lock:
            return len(self._locks)


class InFlight:
    """
    Fail-fast marker per module key: INSTALLING or UNINSTALLING.

    A second claim for a key that is already marked raises
    OperationInProgressError instead of waiting.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: Dict[str, ModuleState] = {}

    def claim(self, key: str, state: ModuleState) -> None:
        with self._lock:
            cur = self._pending.get(key)
            if cur is not None:
                raise OperationInProgressError(module_id=key, state=cur.value)
            self._pending[key] = state

    def release(self, key: str) -> None:
        with self._lock:
            self._pending.pop(key, None)

    def state_of(self, key: str) -> Optional[ModuleState]:
        with self._lock:
            return self._pending.get(key)

    def snapshot(self) -> Dict[str, ModuleState]:
        with self._lock:
            return dict(self._pending)

    @contextlib.contextmanager
    def operation(self, key: str, state: ModuleState) -> Iterator[None]:
        self.claim(key, state)
        try:
            yield
        finally:
            self.release(key)

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, List

from ...application.ports.lock_service import KeyedLock
from ...exceptions import SchedulingBusyError


class InMemoryKeyedLock(KeyedLock):
    """Per-process lock table. Entries are dropped once nobody holds or waits on them."""

    def __init__(self, timeout: float = 10.0) -> None:
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: Dict[str, List] = {}  # key -> [lock, users]

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1
        try:
            if not entry[0].acquire(timeout=self.timeout):
                raise SchedulingBusyError()
            try:
                yield
            finally:
                entry[0].release()
        finally:
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

from contextlib import contextmanager
from typing import Iterator

import redis

from ...application.ports.lock_service import KeyedLock
from ...exceptions import SchedulingBusyError


class RedisKeyedLock(KeyedLock):
    """Lock shared by every worker pointed at the same Redis."""

    def __init__(self, url: str, prefix: str = "lock:", timeout: float = 10.0, lease_seconds: float = 30.0) -> None:
        self.client = redis.Redis.from_url(url)
        self.prefix = prefix
        self.timeout = timeout
        self.lease_seconds = lease_seconds

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        # The lease bounds how long a crashed worker can keep the key
        lock = self.client.lock(f"{self.prefix}{key}", timeout=self.lease_seconds, blocking_timeout=self.timeout)
        if not lock.acquire(blocking=True):
            raise SchedulingBusyError()
        try:
            yield
        finally:
            lock.release()

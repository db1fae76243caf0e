import threading

import pytest

from app.exceptions import SchedulingBusyError
from app.infrastructure.locks.memory_lock import InMemoryKeyedLock


def test_memory_lock_times_out_while_held():
    locks = InMemoryKeyedLock(timeout=0.05)
    with locks.hold("appointments:d1:2030-01-01"):
        errors = []

        def contender():
            try:
                with locks.hold("appointments:d1:2030-01-01"):
                    pass
            except SchedulingBusyError as e:
                errors.append(e)

        th = threading.Thread(target=contender)
        th.start()
        th.join()
        assert len(errors) == 1
        assert errors[0].status_code == 503


def test_memory_lock_keys_are_independent_and_cleaned_up():
    locks = InMemoryKeyedLock(timeout=0.05)
    with locks.hold("a"):
        with locks.hold("b"):
            pass
    assert locks._locks == {}


def test_memory_lock_released_on_error():
    locks = InMemoryKeyedLock(timeout=0.05)
    with pytest.raises(RuntimeError):
        with locks.hold("k"):
            raise RuntimeError("boom")
    with locks.hold("k"):
        pass


def test_redis_lock_with_fake(monkeypatch):
    pytest.importorskip("redis")

    class FakeLock:
        def __init__(self, client, name, timeout, blocking_timeout):
            self.client = client
            self.name = name
            self.timeout = timeout
            self.blocking_timeout = blocking_timeout
        def acquire(self, blocking=True):
            if self.name in self.client.held:
                return False
            self.client.held.add(self.name)
            return True
        def release(self):
            self.client.held.discard(self.name)

    class FakeRedis:
        def __init__(self):
            self.held = set()
            self.created = []
        @classmethod
        def from_url(cls, url):
            return cls()
        def lock(self, name, timeout=None, blocking_timeout=None):
            lk = FakeLock(self, name, timeout, blocking_timeout)
            self.created.append(lk)
            return lk

    from app.infrastructure.locks import redis_lock as mod
    monkeypatch.setattr(mod.redis, "Redis", FakeRedis)

    locks = mod.RedisKeyedLock(url="redis://fake", timeout=2.0, lease_seconds=15)
    with locks.hold("appointments:d1:2030-01-01"):
        assert "lock:appointments:d1:2030-01-01" in locks.client.held
        with pytest.raises(SchedulingBusyError):
            with locks.hold("appointments:d1:2030-01-01"):
                pass
    assert locks.client.held == set()
    first = locks.client.created[0]
    assert first.timeout == 15
    assert first.blocking_timeout == 2.0

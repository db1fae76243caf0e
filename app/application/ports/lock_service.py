from typing import ContextManager, Protocol


class KeyedLock(Protocol):
    def hold(self, key: str) -> ContextManager[None]:
        """Block until ``key`` is exclusively held. Raises SchedulingBusyError on timeout."""
        ...

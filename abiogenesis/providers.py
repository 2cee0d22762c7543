"""Time-source port shared by the store and the permission gate."""

import time
from abc import ABC, abstractmethod

__all__ = ["TimeProvider", "SystemTimeProvider", "FixedTimeProvider"]


class TimeProvider(ABC):
    """Returns the current time as whole Unix seconds."""

    @abstractmethod
    def now(self) -> int:
        ...


class SystemTimeProvider(TimeProvider):
    def now(self) -> int:
        return int(time.time())


class FixedTimeProvider(TimeProvider):
    """
    Deterministic clock.

    Returns *start* on every call until advanced with tick().
    """

    def __init__(self, start: int = 1_700_000_000) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def tick(self, seconds: int = 1) -> None:
        self._now += seconds

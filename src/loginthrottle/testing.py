"""Test helpers for code that uses the throttle.

``ManualClock`` pins time so suspensions can be stepped through without
sleeping; ``FailingKeyValueStore`` simulates an unreachable backend::

    clock = ManualClock(1_000)
    engine = ThrottleEngine(ThrottleStore(MemoryKeyValueStore()), clock=clock)
    clock.advance(120)
"""

from collections.abc import Mapping
from contextlib import AbstractContextManager, nullcontext

from loginthrottle.errors import StorageUnavailable


class ManualClock:
    """A clock that only moves when told to."""

    __slots__ = ("_now",)

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> None:
        self._now += seconds

    def set(self, now: int) -> None:
        self._now = now


class FailingKeyValueStore:
    """Backend whose reads and/or writes raise ``StorageUnavailable``."""

    __slots__ = ("fail_reads", "fail_writes")

    def __init__(self, *, fail_reads: bool = True, fail_writes: bool = True) -> None:
        self.fail_reads = fail_reads
        self.fail_writes = fail_writes

    def get(self, identity_id: str, prefix: str) -> dict[str, int]:
        if self.fail_reads:
            msg = "backend offline"
            raise StorageUnavailable(msg)
        return {}

    def put(self, identity_id: str, values: Mapping[str, int], prefix: str) -> None:
        if self.fail_writes:
            msg = "backend offline"
            raise StorageUnavailable(msg)

    def atomic(self, identity_id: str) -> AbstractContextManager[None]:
        return nullcontext()

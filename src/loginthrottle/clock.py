"""Clock abstraction.

The engine asks a clock for ``now`` only when the caller did not pass a
timestamp. Times are whole epoch seconds, the resolution persisted in
``ThrottleState.release_at``.
"""

from time import time
from typing import Protocol


class Clock(Protocol):
    """Anything that can tell the current epoch second."""

    def now(self) -> int: ...


class SystemClock:
    """Wall-clock time from ``time.time()``."""

    __slots__ = ()

    def now(self) -> int:
        return int(time())

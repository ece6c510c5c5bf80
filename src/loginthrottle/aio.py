"""Async facade over ``ThrottleEngine``.

Runs each blocking engine call in a worker thread via
``anyio.to_thread``, so store I/O never blocks the event loop of an
async web handler::

    engine = AsyncThrottleEngine(ThrottleEngine(store))

    decision = await engine.check(user_id)
"""

from collections.abc import Callable
from functools import partial
from typing import Any

from anyio import to_thread

from loginthrottle.engine import ThrottleEngine
from loginthrottle.state import Decision, ThrottleState


def _run_sync(func: Callable[..., Any], *args: Any) -> Any:
    """Run blocking call in anyio worker thread."""
    return to_thread.run_sync(func, *args)


class AsyncThrottleEngine:
    """Awaitable ``check`` / ``record_failure`` / ``reset``."""

    __slots__ = ("_engine",)

    def __init__(self, engine: ThrottleEngine) -> None:
        self._engine = engine

    @property
    def engine(self) -> ThrottleEngine:
        return self._engine

    async def check(self, identity_id: str, now: int | None = None) -> Decision:
        return await _run_sync(partial(self._engine.check, identity_id, now))

    async def record_failure(self, identity_id: str, now: int | None = None) -> ThrottleState:
        return await _run_sync(partial(self._engine.record_failure, identity_id, now))

    async def reset(self, identity_id: str) -> None:
        await _run_sync(self._engine.reset, identity_id)

"""Shared fixtures for loginthrottle tests."""

import pytest
from argon2 import PasswordHasher

from loginthrottle.audit import set_event_sink
from loginthrottle.backends import MemoryKeyValueStore
from loginthrottle.config import ThrottleConfig
from loginthrottle.engine import ThrottleEngine
from loginthrottle.store import ThrottleStore
from loginthrottle.testing import ManualClock


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(autouse=True)
def _no_event_sink():
    set_event_sink(None)
    yield
    set_event_sink(None)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(1_000)


@pytest.fixture
def backend() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def engine(backend: MemoryKeyValueStore, clock: ManualClock) -> ThrottleEngine:
    return ThrottleEngine(ThrottleStore(backend), ThrottleConfig(), clock=clock)


@pytest.fixture
def fast_hasher() -> PasswordHasher:
    """Cheap argon2 parameters so tests do not spend seconds hashing."""
    return PasswordHasher(time_cost=1, memory_cost=8, parallelism=1)

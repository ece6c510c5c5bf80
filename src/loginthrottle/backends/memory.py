"""In-memory key-value backend.

Process-local and lost on restart. Suitable for tests, single-process
deployments, and as the reference for the locking contract.
"""

import threading
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, contextmanager


class _IdentityLocks:
    """Lazily created per-identity locks, dropped when unused."""

    __slots__ = ("_guard", "_locks")

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # identity -> (lock, holders)
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    @contextmanager
    def hold(self, identity_id: str) -> Iterator[None]:
        with self._guard:
            lock, holders = self._locks.get(identity_id, (None, 0))
            if lock is None:
                lock = threading.Lock()
            self._locks[identity_id] = (lock, holders + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                _lock, holders = self._locks[identity_id]
                if holders <= 1:
                    del self._locks[identity_id]
                else:
                    self._locks[identity_id] = (lock, holders - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class MemoryKeyValueStore:
    """Dict-backed store with per-identity atomic blocks."""

    __slots__ = ("_data", "_data_lock", "_identity_locks")

    def __init__(self) -> None:
        self._data: dict[str, dict[str, int]] = {}
        self._data_lock = threading.Lock()
        self._identity_locks = _IdentityLocks()

    def get(self, identity_id: str, prefix: str) -> dict[str, int]:
        with self._data_lock:
            meta = self._data.get(identity_id, {})
            return {
                name.removeprefix(prefix): value
                for name, value in meta.items()
                if name.startswith(prefix)
            }

    def put(self, identity_id: str, values: Mapping[str, int], prefix: str) -> None:
        with self._data_lock:
            meta = self._data.setdefault(identity_id, {})
            for name, value in values.items():
                meta[f"{prefix}{name}"] = int(value)

    def atomic(self, identity_id: str) -> AbstractContextManager[None]:
        return self._identity_locks.hold(identity_id)

    def raw(self, identity_id: str) -> dict[str, int]:
        """Every stored key for an identity, prefixes included."""
        with self._data_lock:
            return dict(self._data.get(identity_id, {}))

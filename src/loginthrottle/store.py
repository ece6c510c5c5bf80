"""ThrottleStore — typed throttle state on top of a key-value backend.

Pure storage, no policy. The store owns the mapping between
``ThrottleState`` and the namespaced keys persisted on each identity::

    store = ThrottleStore(MemoryKeyValueStore())

    with store.locked("42"):
        state = store.get("42")
        store.put("42", replace(state, failed_attempts=state.failed_attempts + 1))
"""

from contextlib import AbstractContextManager

from loginthrottle.backends.base import KeyValueStore
from loginthrottle.errors import StorageUnavailable
from loginthrottle.state import ThrottleState


class ThrottleStore:
    """Read and write ``ThrottleState`` per identity."""

    __slots__ = ("_backend", "_prefix")

    def __init__(self, backend: KeyValueStore, *, prefix: str = "loginThrottle.") -> None:
        self._backend = backend
        self._prefix = prefix

    @property
    def backend(self) -> KeyValueStore:
        return self._backend

    @property
    def prefix(self) -> str:
        return self._prefix

    def get(self, identity_id: str) -> ThrottleState:
        """Return the stored state, or the zero state if none exists."""
        values = self._backend.get(identity_id, self._prefix)
        try:
            return ThrottleState.from_mapping(values)
        except (TypeError, ValueError) as exc:
            msg = f"unreadable throttle state for identity {identity_id!r}: {exc}"
            raise StorageUnavailable(msg) from exc

    def put(self, identity_id: str, state: ThrottleState) -> None:
        self._backend.put(identity_id, state.to_mapping(), self._prefix)

    def locked(self, identity_id: str) -> AbstractContextManager[None]:
        """Serialize a get/put pair for one identity."""
        return self._backend.atomic(identity_id)

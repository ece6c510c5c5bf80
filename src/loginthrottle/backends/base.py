"""Key-value backend protocol.

A backend matching this shape can hold throttle state::

    class RedisKeyValueStore:
        def get(self, identity_id, prefix): ...
        def put(self, identity_id, values, prefix): ...
        def atomic(self, identity_id): ...

No base class required. Backends raise ``StorageUnavailable`` when the
underlying storage fails.
"""

from collections.abc import Mapping
from contextlib import AbstractContextManager
from typing import Protocol


class KeyValueStore(Protocol):
    """Per-identity integer metadata, namespaced by prefix."""

    def get(self, identity_id: str, prefix: str) -> dict[str, int]:
        """Return every value under ``prefix`` with the prefix stripped.

        An identity with no stored values returns an empty dict.
        """
        ...

    def put(self, identity_id: str, values: Mapping[str, int], prefix: str) -> None:
        """Upsert ``values`` under ``prefix``; other keys are left untouched."""
        ...

    def atomic(self, identity_id: str) -> AbstractContextManager[None]:
        """Serialize a get/put sequence for one identity.

        Two blocks for the same identity never interleave. Blocks for
        different identities may run concurrently.
        """
        ...

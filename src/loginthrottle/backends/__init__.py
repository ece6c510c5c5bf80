"""Key-value backends for throttle state.

A backend stores small integer values per identity, namespaced by a key
prefix so throttle keys can share an identity's metadata with unrelated
data. ``ThrottleStore`` adapts any backend to ``ThrottleState``.

Two backends ship with the package::

    from loginthrottle.backends import MemoryKeyValueStore, SQLiteKeyValueStore

    memory = MemoryKeyValueStore()
    durable = SQLiteKeyValueStore("throttle.db")
"""

from loginthrottle.backends.base import KeyValueStore
from loginthrottle.backends.memory import MemoryKeyValueStore
from loginthrottle.backends.sqlite import SQLiteKeyValueStore

__all__ = [
    "KeyValueStore",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
]

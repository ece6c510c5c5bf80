"""SQLite key-value backend using stdlib ``sqlite3``.

Values live in a single ``identity_meta`` table keyed by
``(identity_id, name)``, where ``name`` carries the namespace prefix.

Uses Python 3.12+ features:
    - ``autocommit=True``: individual statements commit immediately;
      ``atomic()`` issues ``BEGIN IMMEDIATE`` / ``COMMIT`` explicitly
    - ``check_same_thread=False``: connections are shared by every
      request thread, each serialized by its own lock

``BEGIN IMMEDIATE`` takes SQLite's write lock up front, so atomic blocks
are serialized across processes sharing the database file as well.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from pathlib import Path

from loginthrottle.errors import StorageUnavailable

logger = logging.getLogger("loginthrottle.store")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS identity_meta (
    identity_id TEXT NOT NULL,
    name        TEXT NOT NULL,
    value       INTEGER NOT NULL,
    PRIMARY KEY (identity_id, name)
)
"""


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteKeyValueStore:
    """Durable store backed by a SQLite file.

    Usage::

        store = SQLiteKeyValueStore("throttle.db")
        with store.atomic("42"):
            values = store.get("42", "loginThrottle.")
            store.put("42", {"FailedAttemptsCount": 1}, "loginThrottle.")
        store.close()

    Two connections are kept. Writes and the reads inside an ``atomic()``
    block use the writer connection, owned by one thread at a time; all
    identities share it, so atomic blocks for different identities run
    one after another. Every other read goes through a separate reader
    connection and never waits for an atomic block to finish.
    """

    __slots__ = ("_conn", "_depth", "_lock", "_owner", "_path", "_read_lock", "_reader")

    def __init__(self, path: str | Path, *, timeout: float = 5.0) -> None:
        self._path = str(path)
        self._lock = threading.RLock()
        self._read_lock = threading.Lock()
        self._owner: int | None = None
        self._depth = 0
        try:
            self._conn = sqlite3.connect(
                self._path,
                timeout=timeout,
                autocommit=True,
                check_same_thread=False,
            )
            self._conn.execute(_SCHEMA)
            if self._path == ":memory:":
                # A second connection would open a different, empty database.
                self._reader = self._conn
                self._read_lock = self._lock
            else:
                self._reader = sqlite3.connect(
                    self._path,
                    timeout=timeout,
                    autocommit=True,
                    check_same_thread=False,
                )
        except sqlite3.Error as exc:
            msg = f"cannot open throttle database {self._path!r}: {exc}"
            raise StorageUnavailable(msg) from exc

    @property
    def path(self) -> str:
        return self._path

    def _in_atomic(self) -> bool:
        return self._owner == threading.get_ident()

    def get(self, identity_id: str, prefix: str) -> dict[str, int]:
        sql = "SELECT name, value FROM identity_meta WHERE identity_id = ? AND name LIKE ? ESCAPE '\\'"
        params = (identity_id, f"{_escape_like(prefix)}%")
        if self._in_atomic():
            conn, lock = self._conn, self._lock
        else:
            conn, lock = self._reader, self._read_lock
        with lock:
            try:
                rows = conn.execute(sql, params).fetchall()
            except sqlite3.Error as exc:
                raise StorageUnavailable(str(exc)) from exc
        return {name.removeprefix(prefix): int(value) for name, value in rows}

    def put(self, identity_id: str, values: Mapping[str, int], prefix: str) -> None:
        sql = """
            INSERT INTO identity_meta (identity_id, name, value)
            VALUES (?, ?, ?)
            ON CONFLICT(identity_id, name) DO UPDATE SET value = excluded.value
        """
        params = [(identity_id, f"{prefix}{name}", int(value)) for name, value in values.items()]
        # A standalone put is its own atomic block, so a reader never sees
        # a half-written state.
        with self.atomic(identity_id):
            try:
                self._conn.executemany(sql, params)
            except sqlite3.Error as exc:
                raise StorageUnavailable(str(exc)) from exc

    @contextmanager
    def atomic(self, identity_id: str) -> Iterator[None]:
        with self._lock:
            if self._depth:
                # Nested block on the owning thread joins the outer transaction.
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            try:
                self._conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise StorageUnavailable(str(exc)) from exc
            self._owner = threading.get_ident()
            self._depth = 1
            logger.debug("atomic block opened for identity %s", identity_id)
            try:
                try:
                    yield
                except BaseException:
                    self._rollback()
                    raise
                try:
                    self._conn.execute("COMMIT")
                except sqlite3.Error as exc:
                    # A busy COMMIT leaves the transaction open; end it here.
                    self._rollback()
                    raise StorageUnavailable(str(exc)) from exc
            finally:
                self._depth = 0
                self._owner = None

    def _rollback(self) -> None:
        if not self._conn.in_transaction:
            return
        try:
            self._conn.execute("ROLLBACK")
        except sqlite3.Error:
            logger.exception("ROLLBACK failed on throttle database %s", self._path)

    def close(self) -> None:
        with self._lock, self._read_lock:
            self._conn.close()
            self._reader.close()

    def __enter__(self) -> SQLiteKeyValueStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

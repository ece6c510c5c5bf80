"""Login flow wiring the throttle around credential checks.

``LoginGuard`` is the explicit replacement for sign-in event hooks: it
resolves the handle, consults ``check`` before touching credentials,
and records the outcome afterwards::

    directory = UserDirectory()
    directory.add("42", username="alice", email="alice@example.com", password="s3cret")

    guard = LoginGuard(directory, directory, engine)
    result = guard.attempt("alice@example.com", form_password)
    if not result.ok:
        form.add_error(result.message)

Handles that resolve to no identity never reach the throttle, so the
store holds no state for them and the responses do not reveal whether
an account exists.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from loginthrottle.audit import EventKind, ThrottleEvent, emit_event
from loginthrottle.engine import ThrottleEngine
from loginthrottle.errors import StorageUnavailable
from loginthrottle.messages import ThrottleMessages
from loginthrottle.state import DenyReason, ThrottleState

logger = logging.getLogger("loginthrottle.login")


class IdentityLookup(Protocol):
    """Resolve a submitted login handle to a stable identity ID."""

    def resolve(self, handle: str) -> str | None: ...


class CredentialVerifier(Protocol):
    """Check a password for a resolved identity."""

    def verify(self, identity_id: str, password: str) -> bool: ...


@dataclass(frozen=True, slots=True)
class _Account:
    identity_id: str
    username: str
    email: str
    password_hash: str


class UserDirectory:
    """In-memory accounts with argon2 password hashes.

    Implements both ``IdentityLookup`` and ``CredentialVerifier``.
    Handles are matched by email first (case-insensitive), then by
    username.
    """

    __slots__ = ("_by_email", "_by_id", "_by_username", "_hasher", "_lock")

    def __init__(self, hasher: PasswordHasher | None = None) -> None:
        self._hasher = hasher or PasswordHasher()
        self._lock = threading.Lock()
        self._by_id: dict[str, _Account] = {}
        self._by_email: dict[str, str] = {}
        self._by_username: dict[str, str] = {}

    def add(self, identity_id: str, *, username: str, email: str, password: str) -> None:
        """Register an account, hashing ``password`` with argon2id."""
        if not password:
            msg = "Password must not be empty."
            raise ValueError(msg)
        self.add_hashed(identity_id, username=username, email=email, password_hash=self._hasher.hash(password))

    def add_hashed(self, identity_id: str, *, username: str, email: str, password_hash: str) -> None:
        """Register an account with an existing PHC-format hash."""
        account = _Account(identity_id, username, email, password_hash)
        with self._lock:
            self._by_id[identity_id] = account
            self._by_email[email.casefold()] = identity_id
            self._by_username[username] = identity_id

    def resolve(self, handle: str) -> str | None:
        handle = handle.strip()
        if not handle:
            return None
        with self._lock:
            identity_id = self._by_email.get(handle.casefold())
            if identity_id is None:
                identity_id = self._by_username.get(handle)
        return identity_id

    def verify(self, identity_id: str, password: str) -> bool:
        with self._lock:
            account = self._by_id.get(identity_id)
        if account is None or not password:
            return False
        try:
            return self._hasher.verify(account.password_hash, password)
        except (VerificationError, InvalidHashError):
            return False


class LoginStatus(Enum):
    SUCCESS = "success"
    UNKNOWN_IDENTITY = "unknown_identity"
    LOCKED = "locked"
    INVALID_PASSWORD = "invalid_password"
    SUSPENDED = "suspended"


@dataclass(frozen=True, slots=True)
class LoginResult:
    """Outcome of one login attempt.

    ``state`` is the post-failure throttle state for ``INVALID_PASSWORD``
    and ``SUSPENDED``; it is ``None`` otherwise, and also when the
    failure could not be recorded.
    """

    status: LoginStatus
    identity_id: str | None = None
    message: str = ""
    state: ThrottleState | None = None

    @property
    def ok(self) -> bool:
        return self.status is LoginStatus.SUCCESS


class LoginGuard:
    """Throttle-aware credential check."""

    __slots__ = ("_engine", "_lookup", "_messages", "_verifier")

    def __init__(
        self,
        lookup: IdentityLookup,
        verifier: CredentialVerifier,
        engine: ThrottleEngine,
        messages: ThrottleMessages | None = None,
    ) -> None:
        self._lookup = lookup
        self._verifier = verifier
        self._engine = engine
        self._messages = messages or ThrottleMessages()

    def attempt(self, handle: str, password: str, now: int | None = None) -> LoginResult:
        identity_id = self._lookup.resolve(handle)
        if identity_id is None:
            return LoginResult(LoginStatus.UNKNOWN_IDENTITY)

        decision = self._engine.check(identity_id, now)
        if not decision.allowed:
            if decision.reason is DenyReason.STORAGE_UNAVAILABLE:
                message = self._messages.unavailable()
            else:
                message = self._messages.locked(decision.remaining_seconds)
            return LoginResult(LoginStatus.LOCKED, identity_id, message)

        if self._verifier.verify(identity_id, password):
            try:
                self._engine.reset(identity_id)
            except StorageUnavailable:
                self._report_write_failure("reset", identity_id)
            return LoginResult(LoginStatus.SUCCESS, identity_id)

        try:
            state = self._engine.record_failure(identity_id, now)
        except StorageUnavailable:
            self._report_write_failure("record_failure", identity_id)
            return LoginResult(LoginStatus.INVALID_PASSWORD, identity_id, self._messages.invalid_password())

        if state.failed_attempts == 0:
            minutes = max(state.suspension_minutes, self._engine.config.delay_first_minutes)
            return LoginResult(LoginStatus.SUSPENDED, identity_id, self._messages.suspended(minutes), state)

        remaining = self._engine.remaining_attempts(state)
        return LoginResult(LoginStatus.INVALID_PASSWORD, identity_id, self._messages.attempts_left(remaining), state)

    def _report_write_failure(self, operation: str, identity_id: str) -> None:
        """Log a lost throttle write; the login response is unaffected."""
        logger.exception("Throttle %s failed for identity %s", operation, identity_id)
        emit_event(ThrottleEvent(EventKind.STORAGE_ERROR, identity_id, operation=operation))

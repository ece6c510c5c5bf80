"""loginthrottle — escalating per-account login throttle.

Tracks failed sign-ins per identity and suspends the account for
increasingly long periods after repeated failure bursts.

Basic usage::

    from loginthrottle import MemoryKeyValueStore, ThrottleEngine, ThrottleStore

    engine = ThrottleEngine(ThrottleStore(MemoryKeyValueStore()))

    decision = engine.check(user_id)
    if decision.allowed:
        if password_ok:
            engine.reset(user_id)
        else:
            state = engine.record_failure(user_id)

Full login flow with identity lookup and messages::

    from loginthrottle import LoginGuard, UserDirectory

    guard = LoginGuard(directory, directory, engine)
    result = guard.attempt("alice@example.com", password)
"""

from loginthrottle.backends import KeyValueStore, MemoryKeyValueStore, SQLiteKeyValueStore
from loginthrottle.clock import Clock, SystemClock
from loginthrottle.config import ThrottleConfig
from loginthrottle.engine import ThrottleEngine
from loginthrottle.errors import ConfigurationError, StorageUnavailable, ThrottleError
from loginthrottle.login import (
    CredentialVerifier,
    IdentityLookup,
    LoginGuard,
    LoginResult,
    LoginStatus,
    UserDirectory,
)
from loginthrottle.messages import ThrottleMessages
from loginthrottle.state import Allowed, Decision, Denied, DenyReason, ThrottleState
from loginthrottle.store import ThrottleStore

__version__ = "0.1.0"
__all__ = [
    "Allowed",
    "Clock",
    "ConfigurationError",
    "CredentialVerifier",
    "Decision",
    "Denied",
    "DenyReason",
    "IdentityLookup",
    "KeyValueStore",
    "LoginGuard",
    "LoginResult",
    "LoginStatus",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "StorageUnavailable",
    "SystemClock",
    "ThrottleConfig",
    "ThrottleEngine",
    "ThrottleError",
    "ThrottleMessages",
    "ThrottleState",
    "ThrottleStore",
    "UserDirectory",
]

"""Login throttle exception hierarchy.

Shared by the store, the engine, and the login flow so every module
raises and catches the same types.

An unknown login handle is deliberately *not* an error: identity lookups
return ``None`` and the login flow skips the throttle entirely.
"""


class ThrottleError(Exception):
    """Base for all loginthrottle errors."""


class ConfigurationError(ThrottleError):
    """Raised when throttle configuration is invalid.

    Typically raised while constructing ``ThrottleConfig`` at startup,
    so a bad setting never turns into a zero or negative lockout.
    """


class StorageUnavailable(ThrottleError):  # noqa: N818 — mirrors the storage contract name
    """Raised when the backing key-value store cannot be read or written.

    The engine never recovers from this itself. ``ThrottleEngine.check``
    applies the configured fail-open/fail-closed policy; writes propagate
    to the caller.
    """

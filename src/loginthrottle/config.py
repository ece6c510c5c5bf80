"""Throttle configuration.

ThrottleConfig is a frozen dataclass — immutable after creation and
validated on construction. Override what you need::

    config = ThrottleConfig(attempts_limit=5, max_suspension_minutes=60)

Deployments that keep settings in a flat key/value store (the historical
``loginThrottle.AttemptsLimit`` style) or in environment variables can
use ``ThrottleConfig.from_mapping`` and ``ThrottleConfig.from_env``.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from loginthrottle.errors import ConfigurationError

# Setting name -> field name, for from_mapping().
_MAPPING_KEYS: dict[str, str] = {
    "AttemptsLimit": "attempts_limit",
    "DelayFirst": "delay_first_minutes",
    "DelayConsecutive": "delay_consecutive_minutes",
    "MaxSuspension": "max_suspension_minutes",
    "FailClosed": "fail_closed",
    "KeyPrefix": "key_prefix",
}

_TRUE = frozenset({"1", "true", "yes", "on"})
_FALSE = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True, slots=True)
class ThrottleConfig:
    """Escalation policy tunables. Immutable after creation.

    Attributes:
        attempts_limit: Failures tolerated before the next one suspends
            the identity. The ``attempts_limit + 1``-th failure triggers.
        delay_first_minutes: Suspension length of the first tier.
        delay_consecutive_minutes: Minutes added for every further tier.
        max_suspension_minutes: Optional ceiling on the suspension length.
            ``None`` keeps escalation unbounded.
        fail_closed: Deny logins when the store cannot be read.
        key_prefix: Namespace for the persisted keys on each identity.
    """

    attempts_limit: int = 3
    delay_first_minutes: int = 2
    delay_consecutive_minutes: int = 3
    max_suspension_minutes: int | None = None
    fail_closed: bool = True
    key_prefix: str = "loginThrottle."

    def __post_init__(self) -> None:
        for name in ("attempts_limit", "delay_first_minutes", "delay_consecutive_minutes"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                msg = f"{name} must be a positive integer, got {value!r}"
                raise ConfigurationError(msg)

        cap = self.max_suspension_minutes
        if cap is not None:
            if isinstance(cap, bool) or not isinstance(cap, int):
                msg = f"max_suspension_minutes must be an integer or None, got {cap!r}"
                raise ConfigurationError(msg)
            if cap < self.delay_first_minutes:
                msg = (
                    f"max_suspension_minutes ({cap}) must not be smaller than "
                    f"delay_first_minutes ({self.delay_first_minutes})"
                )
                raise ConfigurationError(msg)

        if not self.key_prefix:
            msg = "key_prefix must not be empty"
            raise ConfigurationError(msg)

    def clamp(self, minutes: int) -> int:
        """Apply ``max_suspension_minutes`` to a suspension length."""
        if self.max_suspension_minutes is None:
            return minutes
        return min(minutes, self.max_suspension_minutes)

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any], *, prefix: str = "loginThrottle.") -> ThrottleConfig:
        """Build a config from flat setting names.

        Accepts both bare (``AttemptsLimit``) and prefixed
        (``loginThrottle.AttemptsLimit``) keys. Missing keys keep their
        defaults; values that cannot be parsed raise ``ConfigurationError``.
        """
        kwargs: dict[str, Any] = {}
        for key, field_name in _MAPPING_KEYS.items():
            if f"{prefix}{key}" in settings:
                raw = settings[f"{prefix}{key}"]
            elif key in settings:
                raw = settings[key]
            else:
                continue
            kwargs[field_name] = _coerce(field_name, raw)
        return cls(**kwargs)

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        *,
        prefix: str = "LOGINTHROTTLE_",
    ) -> ThrottleConfig:
        """Build a config from environment variables.

        Reads ``LOGINTHROTTLE_ATTEMPTS_LIMIT``, ``LOGINTHROTTLE_DELAY_FIRST_MINUTES``
        and so on, one variable per field, upper-cased. Empty values are
        ignored.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, Any] = {}
        for field_name in _MAPPING_KEYS.values():
            raw = env.get(f"{prefix}{field_name.upper()}", "")
            if raw == "":
                continue
            kwargs[field_name] = _coerce(field_name, raw)
        return cls(**kwargs)


def _coerce(field_name: str, raw: Any) -> Any:
    """Convert a raw setting value to the field's type."""
    if field_name == "key_prefix":
        return str(raw)

    if field_name == "fail_closed":
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in _TRUE:
            return True
        if text in _FALSE:
            return False
        msg = f"{field_name} must be a boolean, got {raw!r}"
        raise ConfigurationError(msg)

    if field_name == "max_suspension_minutes" and (raw is None or str(raw).strip() == ""):
        return None

    if isinstance(raw, bool):
        msg = f"{field_name} must be an integer, got {raw!r}"
        raise ConfigurationError(msg)
    try:
        return int(str(raw).strip())
    except ValueError:
        msg = f"{field_name} must be an integer, got {raw!r}"
        raise ConfigurationError(msg) from None

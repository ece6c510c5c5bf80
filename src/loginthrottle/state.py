"""Throttle state and check decisions.

``ThrottleState`` is the only thing persisted per identity: three
integers stored under a namespaced key prefix. ``Allowed`` and
``Denied`` are what ``ThrottleEngine.check`` hands back to the login
handler.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any, TypeAlias

# Persisted key names (appended to ThrottleConfig.key_prefix).
FAILED_ATTEMPTS_KEY = "FailedAttemptsCount"
SUSPENSION_KEY = "SuspensionPeriodMinutes"
RELEASE_KEY = "ReleaseTimestamp"

STATE_KEYS: tuple[str, ...] = (FAILED_ATTEMPTS_KEY, SUSPENSION_KEY, RELEASE_KEY)


@dataclass(frozen=True, slots=True)
class ThrottleState:
    """Per-identity throttle state.

    Attributes:
        failed_attempts: Consecutive failures since the last success or
            since the last suspension fired.
        suspension_minutes: Length of the current escalation tier.
            Zero means no tier has been reached yet.
        release_at: Epoch seconds at which the active suspension ends.
            Zero means the identity has never been suspended.
    """

    failed_attempts: int = 0
    suspension_minutes: int = 0
    release_at: int = 0

    def is_suspended(self, now: int) -> bool:
        return self.release_at > now

    def remaining_seconds(self, now: int) -> int:
        """Seconds until release, or 0 when not suspended."""
        return max(0, self.release_at - now)

    @property
    def is_clear(self) -> bool:
        return self == _ZERO

    def to_mapping(self) -> dict[str, int]:
        return {
            FAILED_ATTEMPTS_KEY: self.failed_attempts,
            SUSPENSION_KEY: self.suspension_minutes,
            RELEASE_KEY: self.release_at,
        }

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> ThrottleState:
        """Build a state from stored values.

        Missing or empty values read as zero, so an identity with no
        stored keys yields the zero state.
        """
        return cls(
            failed_attempts=_as_count(values.get(FAILED_ATTEMPTS_KEY)),
            suspension_minutes=_as_count(values.get(SUSPENSION_KEY)),
            release_at=_as_count(values.get(RELEASE_KEY)),
        )


_ZERO = ThrottleState()


def _as_count(raw: Any) -> int:
    if raw is None or raw == "":
        return 0
    value = int(raw)
    if value < 0:
        msg = f"stored throttle value must be non-negative, got {value}"
        raise ValueError(msg)
    return value


class DenyReason(Enum):
    """Why ``check`` refused a login."""

    SUSPENDED = "suspended"
    STORAGE_UNAVAILABLE = "storage_unavailable"


@dataclass(frozen=True, slots=True)
class Allowed:
    """Credential validation may proceed."""

    allowed: bool = True


@dataclass(frozen=True, slots=True)
class Denied:
    """Credential validation must be skipped.

    ``remaining_seconds`` is the time left on the suspension. It is 0
    when the store could not be read and the engine failed closed.
    """

    remaining_seconds: int
    reason: DenyReason = DenyReason.SUSPENDED
    allowed: bool = False


Decision: TypeAlias = Allowed | Denied

ALLOWED = Allowed()

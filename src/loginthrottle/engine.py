"""ThrottleEngine — the escalation policy.

Stateless between calls: every operation is a read-modify-write of one
identity's ``ThrottleState`` through the injected ``ThrottleStore``.

Wiring in a login handler::

    decision = engine.check(user_id)
    if not decision.allowed:
        return locked_out(decision.remaining_seconds)
    if verify(user_id, password):
        engine.reset(user_id)
    else:
        state = engine.record_failure(user_id)

Escalation: once ``attempts_limit`` failures have been tolerated, the
next failure suspends the identity for ``delay_first_minutes``; each
later burst adds ``delay_consecutive_minutes`` to the previous period.
Only a successful login clears the period.
"""

from __future__ import annotations

import logging
from dataclasses import replace

from loginthrottle.audit import EventKind, ThrottleEvent, emit_event
from loginthrottle.backends.base import KeyValueStore
from loginthrottle.clock import Clock, SystemClock
from loginthrottle.config import ThrottleConfig
from loginthrottle.errors import ConfigurationError, StorageUnavailable
from loginthrottle.state import ALLOWED, Decision, Denied, DenyReason, ThrottleState
from loginthrottle.store import ThrottleStore

logger = logging.getLogger("loginthrottle.engine")


class ThrottleEngine:
    """Per-identity escalating lockout."""

    __slots__ = ("_clock", "_config", "_store")

    def __init__(
        self,
        store: ThrottleStore,
        config: ThrottleConfig | None = None,
        *,
        clock: Clock | None = None,
    ) -> None:
        config = config or ThrottleConfig()
        if store.prefix != config.key_prefix:
            msg = (
                f"store prefix {store.prefix!r} does not match config key_prefix "
                f"{config.key_prefix!r}; use ThrottleEngine.for_backend()"
            )
            raise ConfigurationError(msg)
        self._store = store
        self._config = config
        self._clock = clock or SystemClock()

    @classmethod
    def for_backend(
        cls,
        backend: KeyValueStore,
        config: ThrottleConfig | None = None,
        *,
        clock: Clock | None = None,
    ) -> ThrottleEngine:
        """Build an engine whose store uses ``config.key_prefix``."""
        config = config or ThrottleConfig()
        return cls(ThrottleStore(backend, prefix=config.key_prefix), config, clock=clock)

    @property
    def config(self) -> ThrottleConfig:
        return self._config

    @property
    def store(self) -> ThrottleStore:
        return self._store

    def _now(self, now: int | None) -> int:
        return self._clock.now() if now is None else int(now)

    def check(self, identity_id: str, now: int | None = None) -> Decision:
        """Return whether credential validation may proceed.

        Read-only. A store failure is resolved by ``config.fail_closed``:
        deny with ``DenyReason.STORAGE_UNAVAILABLE``, or allow.
        """
        now = self._now(now)
        try:
            state = self._store.get(identity_id)
        except StorageUnavailable as exc:
            logger.warning(
                "Throttle state unreadable for identity %s (%s); failing %s",
                identity_id,
                exc,
                "closed" if self._config.fail_closed else "open",
            )
            emit_event(ThrottleEvent(EventKind.STORAGE_ERROR, identity_id, operation="check", error=str(exc)))
            if self._config.fail_closed:
                return Denied(remaining_seconds=0, reason=DenyReason.STORAGE_UNAVAILABLE)
            return ALLOWED

        if state.is_suspended(now):
            remaining = state.remaining_seconds(now)
            emit_event(ThrottleEvent(EventKind.DENIED, identity_id, remaining_seconds=remaining))
            return Denied(remaining_seconds=remaining)
        return ALLOWED

    def record_failure(self, identity_id: str, now: int | None = None) -> ThrottleState:
        """Record a wrong-password outcome and return the new state.

        Call only after ``check`` allowed the attempt and the credentials
        were rejected. Never call it for handles that resolve to no
        identity.
        """
        now = self._now(now)
        with self._store.locked(identity_id):
            current = self._store.get(identity_id)
            updated = self.next_state(current, now)
            self._store.put(identity_id, updated)

        if updated.failed_attempts == 0:
            logger.info(
                "Identity %s suspended for %d minutes",
                identity_id,
                updated.suspension_minutes,
            )
            emit_event(ThrottleEvent(EventKind.SUSPENDED, identity_id, state=updated))
        else:
            emit_event(ThrottleEvent(EventKind.FAILURE_RECORDED, identity_id, state=updated))
        return updated

    def next_state(self, state: ThrottleState, now: int) -> ThrottleState:
        """Apply one failure to ``state``. Pure; does not touch the store."""
        cfg = self._config
        failed = state.failed_attempts + 1
        if failed <= cfg.attempts_limit:
            return replace(state, failed_attempts=failed)

        if state.suspension_minutes == 0:
            period = cfg.delay_first_minutes
        else:
            period = state.suspension_minutes + cfg.delay_consecutive_minutes
        period = max(state.suspension_minutes, cfg.clamp(period))

        # A new suspension never shortens one that is still running.
        release_at = max(state.release_at, now + period * 60)
        return ThrottleState(failed_attempts=0, suspension_minutes=period, release_at=release_at)

    def reset(self, identity_id: str) -> None:
        """Clear all throttle state after a successful login."""
        with self._store.locked(identity_id):
            self._store.put(identity_id, ThrottleState())
        emit_event(ThrottleEvent(EventKind.RESET, identity_id, state=ThrottleState()))

    def remaining_attempts(self, state: ThrottleState) -> int:
        """Failures left before the next one suspends the identity."""
        return max(0, self._config.attempts_limit - state.failed_attempts)

"""Throttle audit events.

Every state change and every refused check produces a ``ThrottleEvent``.
Applications opt in by registering a sink::

    from loginthrottle.audit import EventKind, set_event_sink

    def forward(event):
        if event.kind is EventKind.SUSPENDED:
            siem.alert(event.identity_id, event.state.release_at)

    set_event_sink(forward)

Delivery never interferes with a login: a sink that raises is logged
and otherwise ignored.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeAlias
from time import time

from loginthrottle.state import ThrottleState

logger = logging.getLogger("loginthrottle.audit")


class EventKind(Enum):
    FAILURE_RECORDED = "throttle.failure_recorded"
    SUSPENDED = "throttle.suspended"
    RESET = "throttle.reset"
    DENIED = "throttle.denied"
    STORAGE_ERROR = "throttle.storage_error"


@dataclass(frozen=True, slots=True)
class ThrottleEvent:
    """What happened to one identity's throttle state.

    Attributes:
        kind: The event type.
        identity_id: The affected identity.
        state: State written by ``FAILURE_RECORDED`` / ``SUSPENDED`` /
            ``RESET``; ``None`` for the other kinds.
        remaining_seconds: Lockout left, set on ``DENIED``.
        operation: Engine call that hit ``STORAGE_ERROR``.
        error: Storage error text, set on ``STORAGE_ERROR``.
    """

    kind: EventKind
    identity_id: str
    state: ThrottleState | None = None
    remaining_seconds: int | None = None
    operation: str | None = None
    error: str | None = None
    timestamp: float = field(default_factory=time)

    @property
    def name(self) -> str:
        return self.kind.value


ThrottleEventSink: TypeAlias = Callable[[ThrottleEvent], None]


_sink_lock = threading.Lock()
_sink: ThrottleEventSink | None = None


def set_event_sink(sink: ThrottleEventSink | None) -> None:
    """Set a process-wide sink for throttle events.

    Pass ``None`` to disable event delivery.
    """
    global _sink
    with _sink_lock:
        _sink = sink


def emit_event(event: ThrottleEvent) -> None:
    """Deliver ``event`` to the configured sink, if any."""
    with _sink_lock:
        sink = _sink
    if sink is None:
        return
    try:
        sink(event)
    except Exception:
        logger.exception("Throttle event sink failed on %s for identity %s", event.name, event.identity_id)

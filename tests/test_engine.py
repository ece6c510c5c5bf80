"""Tests for the escalation policy in ThrottleEngine."""

import threading

import pytest

from loginthrottle.audit import set_event_sink
from loginthrottle.backends import MemoryKeyValueStore
from loginthrottle.config import ThrottleConfig
from loginthrottle.engine import ThrottleEngine
from loginthrottle.errors import ConfigurationError, StorageUnavailable
from loginthrottle.state import Allowed, Denied, DenyReason, ThrottleState
from loginthrottle.store import ThrottleStore
from loginthrottle.testing import FailingKeyValueStore, ManualClock


def _fail(engine: ThrottleEngine, identity: str, times: int) -> ThrottleState:
    state = ThrottleState()
    for _ in range(times):
        state = engine.record_failure(identity)
    return state


class TestCheck:
    def test_unknown_identity_is_allowed(self, engine: ThrottleEngine) -> None:
        assert isinstance(engine.check("nobody"), Allowed)

    def test_denied_while_suspended(self, engine: ThrottleEngine, backend: MemoryKeyValueStore) -> None:
        engine.store.put("42", ThrottleState(release_at=1_090))
        decision = engine.check("42", now=1_000)
        assert decision == Denied(remaining_seconds=90)

    def test_allowed_at_release_time(self, engine: ThrottleEngine) -> None:
        engine.store.put("42", ThrottleState(suspension_minutes=2, release_at=1_120))
        assert engine.check("42", now=1_119).allowed is False
        assert engine.check("42", now=1_120).allowed is True
        assert engine.check("42", now=5_000).allowed is True

    def test_check_does_not_modify_state(self, engine: ThrottleEngine, backend: MemoryKeyValueStore) -> None:
        _fail(engine, "42", 4)
        before = backend.raw("42")
        for _ in range(5):
            engine.check("42")
        assert backend.raw("42") == before

    def test_uses_clock_when_now_omitted(self, engine: ThrottleEngine, clock: ManualClock) -> None:
        engine.store.put("42", ThrottleState(release_at=clock.now() + 30))
        assert engine.check("42") == Denied(remaining_seconds=30)
        clock.advance(30)
        assert engine.check("42").allowed


class TestRecordFailure:
    def test_failures_up_to_limit_only_count(self, engine: ThrottleEngine) -> None:
        counts = [engine.record_failure("42").failed_attempts for _ in range(3)]
        assert counts == [1, 2, 3]
        state = engine.store.get("42")
        assert state.suspension_minutes == 0
        assert state.release_at == 0
        assert engine.check("42").allowed

    def test_failure_past_limit_suspends(self, engine: ThrottleEngine, clock: ManualClock) -> None:
        _fail(engine, "42", 3)
        state = engine.record_failure("42")
        assert state == ThrottleState(failed_attempts=0, suspension_minutes=2, release_at=1_000 + 120)
        assert engine.store.get("42") == state
        assert engine.check("42") == Denied(remaining_seconds=120)

    def test_documented_scenario(self, engine: ThrottleEngine, clock: ManualClock) -> None:
        _fail(engine, "42", 4)
        clock.set(1_120)
        assert engine.check("42").allowed

        state = engine.record_failure("42")
        assert state.failed_attempts == 1
        assert state.suspension_minutes == 2

        _fail(engine, "42", 2)
        state = engine.record_failure("42")
        assert state.failed_attempts == 0
        assert state.suspension_minutes == 5
        assert state.release_at == 1_120 + 300

    @pytest.mark.parametrize("limit", [1, 3, 5])
    def test_count_never_exceeds_limit(self, backend: MemoryKeyValueStore, clock: ManualClock, limit: int) -> None:
        engine = ThrottleEngine(ThrottleStore(backend), ThrottleConfig(attempts_limit=limit), clock=clock)
        for _ in range(limit * 6):
            state = engine.record_failure("42")
            assert state.failed_attempts <= limit
            clock.advance(10_000)

    def test_nth_lockout_period(self, backend: MemoryKeyValueStore, clock: ManualClock) -> None:
        cfg = ThrottleConfig(attempts_limit=2, delay_first_minutes=4, delay_consecutive_minutes=7)
        engine = ThrottleEngine(ThrottleStore(backend), cfg, clock=clock)
        for n in range(1, 6):
            state = _fail(engine, "42", cfg.attempts_limit + 1)
            assert state.suspension_minutes == cfg.delay_first_minutes + (n - 1) * cfg.delay_consecutive_minutes
            assert state.release_at == clock.now() + state.suspension_minutes * 60
            clock.set(state.release_at)

    def test_cap_limits_escalation(self, backend: MemoryKeyValueStore, clock: ManualClock) -> None:
        cfg = ThrottleConfig(max_suspension_minutes=6)
        engine = ThrottleEngine(ThrottleStore(backend), cfg, clock=clock)
        periods = []
        for _ in range(4):
            state = _fail(engine, "42", 4)
            periods.append(state.suspension_minutes)
            clock.set(state.release_at)
        assert periods == [2, 5, 6, 6]

    def test_new_suspension_never_shortens_existing(self, engine: ThrottleEngine) -> None:
        engine.store.put("42", ThrottleState(failed_attempts=3, suspension_minutes=2, release_at=99_999))
        state = engine.record_failure("42", now=1_000)
        assert state.suspension_minutes == 5
        assert state.release_at == 99_999

    def test_identities_are_independent(self, engine: ThrottleEngine) -> None:
        _fail(engine, "alice", 4)
        assert engine.check("alice").allowed is False
        assert engine.check("bob").allowed is True
        assert engine.store.get("bob") == ThrottleState()

    def test_next_state_is_pure(self, engine: ThrottleEngine, backend: MemoryKeyValueStore) -> None:
        state = engine.next_state(ThrottleState(failed_attempts=3), now=0)
        assert state == ThrottleState(suspension_minutes=2, release_at=120)
        assert backend.raw("42") == {}

    def test_remaining_attempts(self, engine: ThrottleEngine) -> None:
        assert engine.remaining_attempts(ThrottleState()) == 3
        assert engine.remaining_attempts(ThrottleState(failed_attempts=2)) == 1
        assert engine.remaining_attempts(ThrottleState(failed_attempts=3)) == 0


class TestReset:
    def test_reset_clears_everything(self, engine: ThrottleEngine) -> None:
        _fail(engine, "42", 9)
        engine.reset("42")
        assert engine.store.get("42") == ThrottleState()
        assert engine.check("42").allowed

    def test_reset_restarts_escalation(self, engine: ThrottleEngine, clock: ManualClock) -> None:
        state = _fail(engine, "42", 4)
        clock.set(state.release_at)
        engine.reset("42")
        assert _fail(engine, "42", 4).suspension_minutes == 2

    def test_reset_without_state(self, engine: ThrottleEngine) -> None:
        engine.reset("fresh")
        assert engine.store.get("fresh") == ThrottleState()


class TestConcurrency:
    def test_parallel_failures_are_all_counted(self, backend: MemoryKeyValueStore) -> None:
        engine = ThrottleEngine(ThrottleStore(backend), ThrottleConfig(attempts_limit=1_000), clock=ManualClock(0))
        workers = 16
        per_worker = 25
        barrier = threading.Barrier(workers)

        def hammer() -> None:
            barrier.wait()
            for _ in range(per_worker):
                engine.record_failure("42")

        threads = [threading.Thread(target=hammer) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert engine.store.get("42").failed_attempts == workers * per_worker


class TestStorageFailures:
    def test_check_fails_closed_by_default(self) -> None:
        engine = ThrottleEngine(ThrottleStore(FailingKeyValueStore()))
        decision = engine.check("42", now=0)
        assert decision == Denied(remaining_seconds=0, reason=DenyReason.STORAGE_UNAVAILABLE)

    def test_check_can_fail_open(self) -> None:
        engine = ThrottleEngine(ThrottleStore(FailingKeyValueStore()), ThrottleConfig(fail_closed=False))
        assert engine.check("42", now=0).allowed

    def test_check_logs_storage_error(self, caplog) -> None:
        engine = ThrottleEngine(ThrottleStore(FailingKeyValueStore()))
        with caplog.at_level("WARNING", logger="loginthrottle.engine"):
            engine.check("42", now=0)
        assert "failing closed" in caplog.text

    def test_writes_propagate(self) -> None:
        engine = ThrottleEngine(ThrottleStore(FailingKeyValueStore(fail_reads=False)))
        with pytest.raises(StorageUnavailable):
            engine.record_failure("42", now=0)
        with pytest.raises(StorageUnavailable):
            engine.reset("42")


class TestEvents:
    def test_events_for_failures_suspension_and_reset(self, engine: ThrottleEngine) -> None:
        events = []
        set_event_sink(events.append)

        _fail(engine, "42", 4)
        engine.check("42")
        engine.reset("42")

        names = [e.name for e in events]
        assert names == [
            "throttle.failure_recorded",
            "throttle.failure_recorded",
            "throttle.failure_recorded",
            "throttle.suspended",
            "throttle.denied",
            "throttle.reset",
        ]
        suspended = events[3]
        assert suspended.identity_id == "42"
        assert suspended.state == ThrottleState(suspension_minutes=2, release_at=1_120)


def test_for_backend_uses_config_prefix(backend: MemoryKeyValueStore) -> None:
    engine = ThrottleEngine.for_backend(backend, ThrottleConfig(key_prefix="guard."), clock=ManualClock(0))
    engine.record_failure("42")
    assert backend.raw("42") == {
        "guard.FailedAttemptsCount": 1,
        "guard.SuspensionPeriodMinutes": 0,
        "guard.ReleaseTimestamp": 0,
    }


def test_constructor_rejects_prefix_mismatch(backend: MemoryKeyValueStore) -> None:
    config = ThrottleConfig.from_mapping({"KeyPrefix": "guard."})
    with pytest.raises(ConfigurationError, match="guard."):
        ThrottleEngine(ThrottleStore(backend), config)


def test_constructor_accepts_matching_prefix(backend: MemoryKeyValueStore) -> None:
    engine = ThrottleEngine(
        ThrottleStore(backend, prefix="guard."),
        ThrottleConfig(key_prefix="guard."),
        clock=ManualClock(0),
    )
    engine.record_failure("42")
    assert backend.raw("42")["guard.FailedAttemptsCount"] == 1


def test_raising_event_sink_does_not_abort_operations(engine: ThrottleEngine) -> None:
    def broken(event) -> None:
        raise RuntimeError("siem down")

    set_event_sink(broken)

    state = _fail(engine, "42", 4)
    assert state.suspension_minutes == 2
    assert engine.check("42").allowed is False
    engine.reset("42")
    assert engine.store.get("42") == ThrottleState()

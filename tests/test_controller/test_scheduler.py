"""Tests for the single-instance scheduler."""

from datetime import datetime, timedelta
from unittest.mock import Mock, patch

import pytest
import pytz

from hubscale.controller.instance_store import (
    InMemoryInstanceStore,
    InstanceStatus,
    InstanceStoreError,
)
from hubscale.controller.scheduler import SingleInstanceScheduler
from hubscale.controller.worker import CycleError, CycleOutcome, OutcomeKind, ScalingWorker

INSTANCE_ID = "iothubscaleorchestrator-1"
START = datetime(2025, 1, 6, 10, 0, 0, tzinfo=pytz.UTC)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock(START)


@pytest.fixture
def worker():
    """Mock worker that always takes no action."""
    worker = Mock(spec=ScalingWorker)
    worker.dry_run = False
    worker.run_cycle.return_value = CycleOutcome(
        kind=OutcomeKind.NO_ACTION_TAKEN, reason="quiet"
    )
    return worker


@pytest.fixture
def store():
    return InMemoryInstanceStore(holder="test")


@pytest.fixture
def scheduler(store, worker, clock):
    return SingleInstanceScheduler(
        store=store,
        worker=worker,
        instance_id=INSTANCE_ID,
        interval_seconds=3600,
        clock=clock,
    )


class TestOnTick:
    """Tests for tick handling."""

    def test_first_tick_starts_instance(self, scheduler, worker, store, clock):
        """Test a tick with no active instance runs a turn."""
        started = scheduler.on_tick()

        assert started is True
        worker.run_cycle.assert_called_once()

        record = store.get_status(INSTANCE_ID, clock())
        assert record is not None
        assert record.status is InstanceStatus.WAITING
        assert record.turn == 2

    def test_second_tick_while_active_is_noop(self, scheduler, worker):
        """Test a tick while the continuation is armed does nothing."""
        scheduler.on_tick()
        started = scheduler.on_tick()

        assert started is False
        worker.run_cycle.assert_called_once()

    def test_tick_while_other_process_active(self, store, worker, clock):
        """Test two schedulers sharing a store run only one instance."""
        first = SingleInstanceScheduler(store, worker, INSTANCE_ID, 3600, clock=clock)
        second = SingleInstanceScheduler(store, worker, INSTANCE_ID, 3600, clock=clock)

        assert first.on_tick() is True
        assert second.on_tick() is False
        assert worker.run_cycle.call_count == 1
        assert second.owns_instance is False

    def test_lost_start_race_is_noop(self, scheduler, worker, store):
        """Test a rejected start does not run a cycle."""
        store.get_status = Mock(return_value=None)
        store.try_start = Mock(return_value=None)

        assert scheduler.on_tick() is False
        worker.run_cycle.assert_not_called()

    def test_store_error_on_status(self, scheduler, worker, store):
        """Test store failures skip the tick without raising."""
        store.get_status = Mock(side_effect=InstanceStoreError("unreachable"))

        assert scheduler.on_tick() is False
        worker.run_cycle.assert_not_called()

    def test_different_identities_are_independent(self, store, worker, clock):
        """Test the guarantee is per identity."""
        first = SingleInstanceScheduler(store, worker, "hub-a", 3600, clock=clock)
        second = SingleInstanceScheduler(store, worker, "hub-b", 3600, clock=clock)

        assert first.on_tick() is True
        assert second.on_tick() is True


class TestContinuation:
    """Tests for self-rescheduling."""

    def test_next_wake_time_is_interval_after_turn_start(self, scheduler, clock):
        """Test the continuation wakes one interval after the turn started."""
        scheduler.on_tick()

        assert scheduler.next_wake_time == START + timedelta(seconds=3600)

    def test_cycle_duration_does_not_drift(self, scheduler, worker, clock):
        """Test a slow cycle does not push the schedule back."""

        def slow_cycle():
            clock.advance(120)
            return CycleOutcome(kind=OutcomeKind.NO_ACTION_TAKEN, reason="quiet")

        worker.run_cycle.side_effect = slow_cycle

        scheduler.on_tick()
        assert scheduler.next_wake_time == START + timedelta(seconds=3600)

        clock.now = scheduler.next_wake_time
        scheduler.resume_due()
        assert scheduler.next_wake_time == START + timedelta(seconds=7200)

    def test_overrunning_cycle_wakes_immediately(self, scheduler, worker, clock):
        """Test a cycle longer than the interval is followed right away."""

        def very_slow_cycle():
            clock.advance(5000)
            return CycleOutcome(kind=OutcomeKind.NO_ACTION_TAKEN, reason="quiet")

        worker.run_cycle.side_effect = very_slow_cycle

        scheduler.on_tick()

        assert scheduler.next_wake_time == START + timedelta(seconds=5000)

    def test_resume_before_wake_time(self, scheduler, worker, clock):
        """Test nothing runs before the wake time."""
        scheduler.on_tick()
        clock.advance(3599)

        assert scheduler.resume_due() is False
        assert worker.run_cycle.call_count == 1

    def test_resume_at_wake_time(self, scheduler, worker, store, clock):
        """Test the continuation runs the next turn under the same identity."""
        scheduler.on_tick()
        clock.advance(3600)

        assert scheduler.resume_due() is True
        assert worker.run_cycle.call_count == 2

        record = store.get_status(INSTANCE_ID, clock())
        assert record.instance_id == INSTANCE_ID
        assert record.turn == 3
        assert record.status is InstanceStatus.WAITING

    def test_resume_without_continuation(self, scheduler, worker):
        """Test resume does nothing before any instance started."""
        assert scheduler.resume_due() is False
        worker.run_cycle.assert_not_called()

    def test_turns_are_sequential(self, scheduler, worker, clock):
        """Test many turns each record their outcome before the next starts."""
        scheduler.on_tick()
        for _ in range(4):
            clock.advance(3600)
            scheduler.on_tick()
            scheduler.resume_due()

        assert worker.run_cycle.call_count == 5
        turns = [r.turn for r in reversed(scheduler.state.get_history())]
        assert turns == [1, 2, 3, 4, 5]

    def test_failure_still_rearms(self, scheduler, worker, clock):
        """Test a failed cycle does not stop the loop."""
        worker.run_cycle.return_value = CycleOutcome.failed(CycleError.FETCH_ERROR, "503")

        scheduler.on_tick()

        assert scheduler.next_wake_time is not None
        assert scheduler.state.consecutive_failures == 1

    def test_exception_still_rearms(self, scheduler, worker, clock):
        """Test an exception escaping the worker is contained."""
        worker.run_cycle.side_effect = RuntimeError("bug")

        scheduler.on_tick()

        assert scheduler.next_wake_time == START + timedelta(seconds=3600)
        clock.advance(3600)
        worker.run_cycle.side_effect = None
        assert scheduler.resume_due() is True

    def test_lost_continuation(self, scheduler, worker, store, clock):
        """Test a continuation the store forgot is dropped."""
        scheduler.on_tick()
        store.release(INSTANCE_ID)
        clock.advance(3600)

        assert scheduler.resume_due() is False
        assert scheduler.owns_instance is False

        # The next tick starts cleanly
        assert scheduler.on_tick() is True

    def test_unreachable_store_on_resume(self, scheduler, worker, store, clock):
        """Test a resume failing with a non-store error drops the continuation."""
        scheduler.on_tick()
        clock.advance(3600)

        with patch.object(store, "resume", side_effect=ConnectionError("refused")):
            assert scheduler.resume_due() is False

        assert scheduler.next_wake_time is None
        worker.run_cycle.assert_called_once()


class TestRestartAndShutdown:
    """Tests for process restarts and shutdown."""

    def test_restart_starts_cleanly(self, worker, clock):
        """Test a new process with a fresh store starts a new instance."""
        first = SingleInstanceScheduler(
            InMemoryInstanceStore(), worker, INSTANCE_ID, 3600, clock=clock
        )
        first.on_tick()

        # Process restart: in-memory store is gone
        restarted = SingleInstanceScheduler(
            InMemoryInstanceStore(), worker, INSTANCE_ID, 3600, clock=clock
        )

        assert restarted.on_tick() is True

    def test_shutdown_releases_identity(self, scheduler, store, clock):
        """Test shutdown frees the identity."""
        scheduler.on_tick()
        scheduler.shutdown()

        assert store.get_status(INSTANCE_ID, clock()) is None
        assert scheduler.next_wake_time is None

    def test_shutdown_without_instance(self, scheduler, store):
        """Test shutdown before any tick is harmless."""
        store.release = Mock()

        scheduler.shutdown()

        store.release.assert_not_called()

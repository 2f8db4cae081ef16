"""Tests for the in-memory instance store."""

import threading
from datetime import datetime, timedelta

import pytest
import pytz

from hubscale.controller.instance_store import (
    InMemoryInstanceStore,
    InstanceStatus,
    InstanceStoreError,
)

NOW = datetime(2025, 3, 1, 12, 0, 0, tzinfo=pytz.UTC)


@pytest.fixture
def store():
    return InMemoryInstanceStore(holder="host-1")


class TestInMemoryInstanceStore:
    """Tests for InMemoryInstanceStore."""

    def test_empty_store(self, store):
        """Test no instance is active initially."""
        assert store.get_status("loop", NOW) is None

    def test_try_start(self, store):
        """Test starting an instance."""
        record = store.try_start("loop", NOW)

        assert record.instance_id == "loop"
        assert record.status is InstanceStatus.RUNNING
        assert record.turn == 1
        assert record.started_at == NOW
        assert record.holder == "host-1"
        assert store.get_status("loop", NOW) == record

    def test_second_start_rejected(self, store):
        """Test a second start under the same id is rejected."""
        store.try_start("loop", NOW)

        assert store.try_start("loop", NOW) is None

    def test_continue_as_new(self, store):
        """Test the continuation keeps the identity and waits."""
        record = store.try_start("loop", NOW)
        wake = NOW + timedelta(hours=1)

        continuation = store.continue_as_new(record, wake)

        assert continuation.instance_id == "loop"
        assert continuation.status is InstanceStatus.WAITING
        assert continuation.turn == 2
        assert continuation.next_wake_time == wake
        # Still active while waiting
        assert store.try_start("loop", NOW) is None

    def test_resume(self, store):
        """Test resuming a waiting continuation."""
        record = store.try_start("loop", NOW)
        continuation = store.continue_as_new(record, NOW + timedelta(hours=1))

        later = NOW + timedelta(hours=1)
        running = store.resume(continuation, later)

        assert running.status is InstanceStatus.RUNNING
        assert running.started_at == later
        assert running.turn == 2

    def test_continue_after_release(self, store):
        """Test continuing a released instance fails."""
        record = store.try_start("loop", NOW)
        store.release("loop")

        with pytest.raises(InstanceStoreError):
            store.continue_as_new(record, NOW)

    def test_release_unknown(self, store):
        """Test releasing an unknown id is a no-op."""
        store.release("missing")

    def test_concurrent_starts(self, store):
        """Test only one of many concurrent starts succeeds."""
        results = []
        barrier = threading.Barrier(8)

        def start():
            barrier.wait()
            results.append(store.try_start("loop", NOW))

        threads = [threading.Thread(target=start) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len([r for r in results if r is not None]) == 1

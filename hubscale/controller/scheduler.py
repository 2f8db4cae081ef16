"""Single-instance scheduler for the scaling loop."""

import logging
from datetime import datetime
from typing import Callable, Optional

from hubscale.controller.instance_store import (
    InstanceRecord,
    InstanceStore,
    InstanceStoreError,
)
from hubscale.controller.worker import ScalingWorker
from hubscale.utils.state import LoopState
from hubscale.utils.time_utils import (
    compute_next_wake_time,
    format_datetime,
    get_current_datetime,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return get_current_datetime("UTC")


class SingleInstanceScheduler:
    """
    Keeps at most one logical loop instance alive under a fixed identity.

    An external tick starts a new instance only when the store reports none
    active. Each instance runs a single turn, arms a continuation under the
    same identity at ``turn start + interval`` and ends. The continuation is
    resumed by :meth:`resume_due` once its wake time has passed, so a turn
    never loops internally and ticks arriving while a continuation is armed
    coalesce into the existing loop.
    """

    def __init__(
        self,
        store: InstanceStore,
        worker: ScalingWorker,
        instance_id: str,
        interval_seconds: int,
        state: Optional[LoopState] = None,
        clock: Clock = utc_now,
        display_timezone: str = "UTC",
    ):
        """
        Initialize the scheduler.

        Args:
            store: Authoritative store of active instances
            worker: Worker running one cycle per turn
            instance_id: Fixed loop identity
            interval_seconds: Interval between turn starts
            state: Optional LoopState recording turn outcomes
            clock: Returns the current timezone-aware time
            display_timezone: Timezone used when logging wake times
        """
        self.store = store
        self.worker = worker
        self.instance_id = instance_id
        self.interval_seconds = interval_seconds
        self.state = state if state is not None else LoopState()
        self.clock = clock
        self.display_timezone = display_timezone

        # Continuation armed by this process, if any.
        self._continuation: Optional[InstanceRecord] = None

    @property
    def next_wake_time(self) -> Optional[datetime]:
        """Wake time of the continuation owned by this process."""
        if self._continuation is None:
            return None
        return self._continuation.next_wake_time

    @property
    def owns_instance(self) -> bool:
        return self._continuation is not None

    def on_tick(self, now: Optional[datetime] = None) -> bool:
        """
        Handle an external wake-up tick.

        Args:
            now: Tick time (defaults to the clock)

        Returns:
            True if a new instance was started and ran its first turn
        """
        now = now or self.clock()
        logger.info(f"Timer tick at {format_datetime(now, self.display_timezone)}")

        try:
            existing = self.store.get_status(self.instance_id, now)
        except InstanceStoreError as e:
            logger.error(f"Unable to query instance {self.instance_id}: {e}")
            return False

        if existing is not None:
            logger.info(
                f"Instance {self.instance_id} already active ({existing.status.value}), "
                "nothing to do"
            )
            return False

        try:
            record = self.store.try_start(self.instance_id, now)
        except InstanceStoreError as e:
            logger.error(f"Unable to start instance {self.instance_id}: {e}")
            return False

        if record is None:
            logger.info(
                f"Instance {self.instance_id} was started elsewhere, nothing to do"
            )
            return False

        logger.info(f"No instance of {self.instance_id} running, starting new instance")
        self._run_turn(record)
        return True

    def resume_due(self, now: Optional[datetime] = None) -> bool:
        """
        Run the armed continuation if its wake time has passed.

        Returns:
            True if a turn ran
        """
        if self._continuation is None:
            return False

        now = now or self.clock()
        if now < self._continuation.next_wake_time:
            return False

        try:
            record = self.store.resume(self._continuation, now)
        except InstanceStoreError as e:
            # The store no longer knows us; the next tick starts a fresh instance.
            logger.warning(f"Continuation of {self.instance_id} lost: {e}")
            self._continuation = None
            return False
        except Exception as e:
            logger.error(f"Unexpected error resuming {self.instance_id}: {e}", exc_info=True)
            self._continuation = None
            return False

        self._run_turn(record)
        return True

    def shutdown(self) -> None:
        """Release the owned identity so a restarted process starts cleanly."""
        if self._continuation is None:
            return
        try:
            self.store.release(self.instance_id)
            logger.info(f"Released instance {self.instance_id}")
        except InstanceStoreError as e:
            logger.warning(f"Failed to release instance {self.instance_id}: {e}")
        self._continuation = None

    def _run_turn(self, record: InstanceRecord) -> None:
        """Run one cycle, then hand the identity to a continuation."""
        self._continuation = None
        started_at = record.started_at
        logger.info(f"Instance {self.instance_id} turn {record.turn} started")

        try:
            outcome = self.worker.run_cycle()
        except Exception as e:
            logger.error(
                f"Unexpected error in turn {record.turn} of {self.instance_id}: {e}",
                exc_info=True,
            )
            outcome = None

        finished_at = self.clock()
        if outcome is not None:
            self.state.record_outcome(
                instance_id=self.instance_id,
                turn=record.turn,
                started_at=started_at,
                finished_at=finished_at,
                outcome=outcome,
            )

        wake_time = compute_next_wake_time(started_at, self.interval_seconds, finished_at)
        try:
            self._continuation = self.store.continue_as_new(record, wake_time)
        except InstanceStoreError as e:
            logger.error(f"Failed to arm continuation of {self.instance_id}: {e}")
            return

        logger.info(
            f"Instance {self.instance_id} turn {record.turn} done, next turn at "
            f"{format_datetime(wake_time, self.display_timezone)}"
        )


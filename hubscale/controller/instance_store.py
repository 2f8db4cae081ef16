"""Named-instance stores backing the single-instance scheduler."""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)


class InstanceStoreError(Exception):
    """Raised when the instance store cannot be read or written."""

    pass


class InstanceStatus(str, Enum):
    """Lifecycle of a loop instance."""

    RUNNING = "Running"
    WAITING = "Waiting"


@dataclass(frozen=True)
class InstanceRecord:
    """State the store holds for one named loop instance."""

    instance_id: str
    status: InstanceStatus
    started_at: datetime
    turn: int = 1
    next_wake_time: Optional[datetime] = None
    holder: Optional[str] = None


class InstanceStore(ABC):
    """
    Authoritative registry of active loop instances.

    Implementations must guarantee that ``try_start`` succeeds for at most one
    caller while an instance with the same id is active.
    """

    @abstractmethod
    def get_status(self, instance_id: str, now: datetime) -> Optional[InstanceRecord]:
        """Return the active instance with this id, or None."""

    @abstractmethod
    def try_start(self, instance_id: str, now: datetime) -> Optional[InstanceRecord]:
        """Create a RUNNING instance unless one is active. Returns None when rejected."""

    @abstractmethod
    def continue_as_new(
        self, record: InstanceRecord, next_wake_time: datetime
    ) -> InstanceRecord:
        """Replace the finished turn with a WAITING continuation under the same id."""

    @abstractmethod
    def resume(self, record: InstanceRecord, now: datetime) -> InstanceRecord:
        """Mark a continuation as RUNNING its next turn."""

    @abstractmethod
    def release(self, instance_id: str) -> None:
        """Remove the instance so the next tick can start a fresh one."""


class InMemoryInstanceStore(InstanceStore):
    """Process-local store; a restarted process starts with no active instance."""

    def __init__(self, holder: Optional[str] = None):
        self.holder = holder
        self._records: dict[str, InstanceRecord] = {}
        self._lock = threading.Lock()

    def get_status(self, instance_id: str, now: datetime) -> Optional[InstanceRecord]:
        with self._lock:
            return self._records.get(instance_id)

    def try_start(self, instance_id: str, now: datetime) -> Optional[InstanceRecord]:
        with self._lock:
            if instance_id in self._records:
                return None
            record = InstanceRecord(
                instance_id=instance_id,
                status=InstanceStatus.RUNNING,
                started_at=now,
                holder=self.holder,
            )
            self._records[instance_id] = record
            return record

    def continue_as_new(
        self, record: InstanceRecord, next_wake_time: datetime
    ) -> InstanceRecord:
        with self._lock:
            self._require_active(record.instance_id)
            continuation = replace(
                record,
                status=InstanceStatus.WAITING,
                turn=record.turn + 1,
                next_wake_time=next_wake_time,
            )
            self._records[record.instance_id] = continuation
            return continuation

    def resume(self, record: InstanceRecord, now: datetime) -> InstanceRecord:
        with self._lock:
            self._require_active(record.instance_id)
            running = replace(record, status=InstanceStatus.RUNNING, started_at=now)
            self._records[record.instance_id] = running
            return running

    def release(self, instance_id: str) -> None:
        with self._lock:
            if self._records.pop(instance_id, None) is not None:
                logger.debug(f"Released instance {instance_id}")

    def _require_active(self, instance_id: str) -> None:
        if instance_id not in self._records:
            raise InstanceStoreError(f"Instance {instance_id} is not active")

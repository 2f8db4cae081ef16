"""In-memory record of loop turns and their outcomes."""

from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from hubscale.controller.worker import CycleOutcome, OutcomeKind


@dataclass
class CycleRecord:
    """Record of one loop turn."""

    instance_id: str
    turn: int
    started_at: datetime
    finished_at: datetime
    outcome: "CycleOutcome"

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


class LoopState:
    """Tracks recent turns of the control loop."""

    def __init__(self, max_history: int = 100):
        """
        Initialize loop state.

        Args:
            max_history: Number of turns kept in memory
        """
        self.max_history = max_history
        self._history: deque[CycleRecord] = deque(maxlen=max_history)
        self.turn_count = 0
        self.consecutive_failures = 0

    def record_outcome(
        self,
        instance_id: str,
        turn: int,
        started_at: datetime,
        finished_at: datetime,
        outcome: "CycleOutcome",
    ) -> CycleRecord:
        """
        Record the outcome of a turn.

        Args:
            instance_id: Loop identity the turn ran under
            turn: Turn number within the instance
            started_at: When the turn started
            finished_at: When the turn finished
            outcome: CycleOutcome returned by the worker

        Returns:
            The stored CycleRecord
        """
        record = CycleRecord(
            instance_id=instance_id,
            turn=turn,
            started_at=started_at,
            finished_at=finished_at,
            outcome=outcome,
        )
        self._history.append(record)
        self.turn_count += 1

        if outcome.is_failure:
            self.consecutive_failures += 1
        else:
            self.consecutive_failures = 0

        return record

    @property
    def last_record(self) -> Optional[CycleRecord]:
        return self._history[-1] if self._history else None

    @property
    def last_outcome(self) -> Optional["CycleOutcome"]:
        record = self.last_record
        return record.outcome if record else None

    def get_history(
        self,
        kind: Optional["OutcomeKind"] = None,
        limit: Optional[int] = None,
    ) -> list[CycleRecord]:
        """
        Get turn history.

        Args:
            kind: Filter by outcome kind (optional)
            limit: Maximum number of records to return (optional)

        Returns:
            List of records, newest first
        """
        filtered = list(reversed(self._history))

        if kind is not None:
            filtered = [r for r in filtered if r.outcome.kind == kind]

        if limit is not None:
            filtered = filtered[:limit]

        return filtered

    def clear_history(self) -> None:
        """Clear all turn history."""
        self._history.clear()
        self.consecutive_failures = 0

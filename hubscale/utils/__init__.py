"""Utilities for HubScale."""

from hubscale.utils.logger import setup_logging
from hubscale.utils.state import CycleRecord, LoopState
from hubscale.utils.time_utils import (
    compute_next_wake_time,
    format_datetime,
    get_current_datetime,
    seconds_until,
)

__all__ = [
    "setup_logging",
    "CycleRecord",
    "LoopState",
    "compute_next_wake_time",
    "format_datetime",
    "get_current_datetime",
    "seconds_until",
]

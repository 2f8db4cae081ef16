"""Controller components for HubScale.

The daemon lives in :mod:`hubscale.controller.daemon`; it pulls in the Azure and
Kubernetes adapters, which themselves import from this package.
"""

from hubscale.controller.decision import DecisionAction, ScaleDecision, compute_message_limit, decide
from hubscale.controller.escalation import next_tier
from hubscale.controller.instance_store import InMemoryInstanceStore, InstanceRecord, InstanceStore
from hubscale.controller.scheduler import SingleInstanceScheduler
from hubscale.controller.types import QuotaMetric, ResourceDescription, TierTarget, UnknownTierError
from hubscale.controller.worker import CycleError, CycleOutcome, OutcomeKind, ScalingWorker

__all__ = [
    "CycleError",
    "CycleOutcome",
    "DecisionAction",
    "InMemoryInstanceStore",
    "InstanceRecord",
    "InstanceStore",
    "OutcomeKind",
    "QuotaMetric",
    "ResourceDescription",
    "ScaleDecision",
    "ScalingWorker",
    "SingleInstanceScheduler",
    "TierTarget",
    "UnknownTierError",
    "compute_message_limit",
    "decide",
    "next_tier",
]

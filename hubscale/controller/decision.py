"""Threshold evaluation for the scaling loop."""

import math
from dataclasses import dataclass
from enum import Enum

from hubscale.config.models import ThresholdConfig, TierTable
from hubscale.controller.types import ResourceDescription, UnknownTierError


class DecisionAction(str, Enum):
    """What the loop should do this cycle."""

    NO_ACTION = "NoAction"
    ESCALATE = "Escalate"


@dataclass(frozen=True)
class ScaleDecision:
    """Result of comparing current usage against the threshold."""

    action: DecisionAction
    metric_value: float
    message_limit: int
    reason: str

    @property
    def should_escalate(self) -> bool:
        """Check if the resource needs a larger tier or more units."""
        return self.action is DecisionAction.ESCALATE


def compute_message_limit(
    description: ResourceDescription,
    threshold: ThresholdConfig,
    tiers: TierTable,
) -> int:
    """
    Compute the usage level at which the resource should be escalated.

    The limit is ``capacity_units * unit_capacity * percentage / 100``,
    truncated toward zero.

    Args:
        description: Current tier and capacity of the resource
        threshold: Threshold configuration
        tiers: Tier table holding per-unit capacities

    Returns:
        Message limit for the current tier and unit count

    Raises:
        UnknownTierError: If the resource's tier is not configured
    """
    tier = tiers.get(description.tier_name)
    if tier is None:
        raise UnknownTierError(description.tier_name, tiers.names)

    total = description.capacity_units * tier.unit_capacity
    return math.trunc(total * threshold.percentage / 100)


def decide(
    description: ResourceDescription,
    metric_value: float,
    threshold: ThresholdConfig,
    tiers: TierTable,
) -> ScaleDecision:
    """
    Decide whether the resource must be escalated.

    Escalates iff ``metric_value >= limit``. At a threshold of 100% this
    means the resource is escalated only once it is fully saturated.

    Raises:
        UnknownTierError: If the resource's tier is not configured
    """
    limit = compute_message_limit(description, threshold, tiers)

    if metric_value < limit:
        return ScaleDecision(
            action=DecisionAction.NO_ACTION,
            metric_value=metric_value,
            message_limit=limit,
            reason=f"Current value {metric_value:g} is below the threshold of {limit}",
        )

    return ScaleDecision(
        action=DecisionAction.ESCALATE,
        metric_value=metric_value,
        message_limit=limit,
        reason=f"Current value {metric_value:g} reached the threshold of {limit}",
    )

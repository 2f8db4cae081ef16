"""Tier escalation policy."""

from typing import Optional

from hubscale.config.models import TierTable
from hubscale.controller.types import TierTarget, UnknownTierError


def next_tier(
    tier_name: str,
    capacity_units: int,
    tiers: TierTable,
) -> Optional[TierTarget]:
    """
    Find the next step up from the current tier and unit count.

    Within a tier the unit count grows by one up to the tier's maximum.
    At the maximum the next tier is entered at its minimum unit count.

    Args:
        tier_name: Current tier
        capacity_units: Current unit count
        tiers: Ordered tier table, lowest first

    Returns:
        The next TierTarget, or None when already at the highest unit count
        of the highest tier

    Raises:
        UnknownTierError: If tier_name is not configured
    """
    index = tiers.index_of(tier_name)
    if index is None:
        raise UnknownTierError(tier_name, tiers.names)

    tier = tiers.tiers[index]

    # Below the tier minimum can only happen after a manual change.
    if capacity_units < tier.min_units:
        return TierTarget(tier.name, tier.min_units)

    if capacity_units < tier.max_units:
        return TierTarget(tier.name, capacity_units + 1)

    if index + 1 < len(tiers):
        higher = tiers.tiers[index + 1]
        return TierTarget(higher.name, higher.min_units)

    return None

"""Shared types for the scaling loop."""

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from hubscale.config.models import TargetResource


class UnknownTierError(Exception):
    """Raised when a tier name is not in the configured tier table."""

    def __init__(self, tier_name: str, known: Optional[list[str]] = None):
        self.tier_name = tier_name
        self.known = known or []
        message = f"Unknown tier '{tier_name}'"
        if self.known:
            message += f" (configured tiers: {', '.join(self.known)})"
        super().__init__(message)


@dataclass(frozen=True)
class ResourceDescription:
    """Current provisioned shape of the managed resource."""

    tier_name: str
    capacity_units: int
    # Provider payload carried through to the update call untouched.
    raw: Any = field(default=None, compare=False, repr=False)

    def __post_init__(self):
        if self.capacity_units < 1:
            raise ValueError(f"capacity_units must be >= 1, got {self.capacity_units}")

    def __str__(self) -> str:
        return f"{self.tier_name}-{self.capacity_units}"


@dataclass(frozen=True)
class QuotaMetric:
    """A named usage counter reported by the provider."""

    name: str
    current_value: float
    max_value: Optional[float] = None


@dataclass(frozen=True)
class TierTarget:
    """Tier and unit count to escalate to."""

    tier_name: str
    capacity_units: int

    def __str__(self) -> str:
        return f"{self.tier_name}-{self.capacity_units}"


class MetricsProvider(Protocol):
    """Read access to the managed resource."""

    def get_description(self, target: TargetResource) -> ResourceDescription:
        ...

    def get_quota_metrics(self, target: TargetResource) -> list[QuotaMetric]:
        ...


class ProvisioningProvider(Protocol):
    """Write access to the managed resource."""

    def update(
        self, target: TargetResource, description: ResourceDescription
    ) -> ResourceDescription:
        ...


class HubProvider(MetricsProvider, ProvisioningProvider, Protocol):
    """A provider client offering both metrics and provisioning."""


def find_metric(metrics: list[QuotaMetric], name: str) -> Optional[QuotaMetric]:
    """Return the metric called ``name``, or None when it was not reported."""
    for metric in metrics:
        if metric.name == name:
            return metric
    return None

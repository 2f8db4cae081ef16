"""Pydantic models for HubScale configuration."""

import re
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

DEFAULT_QUOTA_METRIC = "TotalMessages"

_INSTANCE_ID_PATTERN = re.compile(r"^[a-z0-9]([-a-z0-9.]*[a-z0-9])?$")


class TierSpec(BaseModel):
    """A capacity tier (SKU) of the managed resource."""

    name: str = Field(description="SKU name, e.g. 'S1'")
    unit_capacity: int = Field(
        gt=0,
        alias="unitCapacity",
        description="Messages per day granted by one capacity unit of this tier",
    )
    min_units: int = Field(default=1, ge=1, alias="minUnits")
    max_units: int = Field(ge=1, alias="maxUnits")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate tier name."""
        if not v or not v.strip():
            raise ValueError("Tier name cannot be empty")
        return v

    @model_validator(mode="after")
    def validate_units(self) -> "TierSpec":
        """Validate that min_units <= max_units."""
        if self.min_units > self.max_units:
            raise ValueError(
                f"Tier '{self.name}': min_units ({self.min_units}) cannot be greater than "
                f"max_units ({self.max_units})"
            )
        return self

    model_config = {"populate_by_name": True, "frozen": True}


# Azure IoT Hub standard SKUs, daily message allowance per unit.
DEFAULT_TIERS = (
    TierSpec(name="S1", unit_capacity=400_000, min_units=1, max_units=200),
    TierSpec(name="S2", unit_capacity=6_000_000, min_units=1, max_units=200),
    TierSpec(name="S3", unit_capacity=300_000_000, min_units=1, max_units=10),
)


class TierTable(BaseModel):
    """Ordered tier list, lowest tier first."""

    tiers: tuple[TierSpec, ...] = Field(default=DEFAULT_TIERS, min_length=1)

    @model_validator(mode="after")
    def validate_unique_names(self) -> "TierTable":
        """Validate that tier names are unique."""
        seen: set[str] = set()
        for tier in self.tiers:
            if tier.name in seen:
                raise ValueError(f"Duplicate tier name: {tier.name}")
            seen.add(tier.name)
        return self

    model_config = {"frozen": True}

    @property
    def names(self) -> list[str]:
        return [tier.name for tier in self.tiers]

    def index_of(self, tier_name: str) -> Optional[int]:
        """Position of a tier in scale order, or None if unknown."""
        for index, tier in enumerate(self.tiers):
            if tier.name == tier_name:
                return index
        return None

    def get(self, tier_name: str) -> Optional[TierSpec]:
        index = self.index_of(tier_name)
        return None if index is None else self.tiers[index]

    def __len__(self) -> int:
        return len(self.tiers)


class ThresholdConfig(BaseModel):
    """Usage threshold that triggers escalation."""

    percentage: float = Field(
        gt=0,
        le=100,
        description="Percentage of the tier's message allowance that triggers a scale-up",
    )
    metric_name: str = Field(
        default=DEFAULT_QUOTA_METRIC,
        alias="metricName",
        description="Name of the quota metric compared against the threshold",
    )

    model_config = {"populate_by_name": True, "frozen": True}


class TargetResource(BaseModel):
    """The IoT Hub managed by this loop."""

    subscription_id: str = Field(alias="subscriptionId")
    resource_group: str = Field(alias="resourceGroup")
    hub_name: str = Field(alias="hubName")

    @field_validator("subscription_id", "resource_group", "hub_name")
    @classmethod
    def validate_not_empty(cls, v: str) -> str:
        """Validate identifiers are not empty."""
        if not v or not v.strip():
            raise ValueError("Target identifiers cannot be empty")
        return v

    model_config = {"populate_by_name": True, "frozen": True}


class LoopConfig(BaseModel):
    """Control loop scheduling settings."""

    instance_id: Optional[str] = Field(
        default=None,
        alias="instanceId",
        description="Fixed identity of the loop instance (defaults to hubscale-<hubName>)",
    )
    interval_seconds: int = Field(
        default=3600,
        ge=1,
        alias="intervalSeconds",
        description="Delay between the start of one turn and the next",
    )
    tick_interval_seconds: int = Field(
        default=3600,
        ge=1,
        alias="tickIntervalSeconds",
        description="Cadence of the external wake-up tick",
    )
    lease_namespace: str = Field(default="default", alias="leaseNamespace")
    lease_grace_seconds: int = Field(
        default=300,
        ge=0,
        alias="leaseGraceSeconds",
        description="Extra time a lease outlives its next wake time",
    )
    timezone: str = Field(
        default="UTC",
        description="Timezone used when logging wake times",
    )

    @field_validator("instance_id")
    @classmethod
    def validate_instance_id(cls, v: Optional[str]) -> Optional[str]:
        """Instance ids double as Lease names, so follow DNS subdomain rules."""
        if v is None:
            return v
        if len(v) > 253 or not _INSTANCE_ID_PATTERN.match(v):
            raise ValueError(
                f"Invalid instance id '{v}': use lowercase alphanumerics, '-' or '.'"
            )
        return v

    model_config = {"populate_by_name": True, "frozen": True}


class Metadata(BaseModel):
    """Metadata for a HubScale configuration."""

    name: str = Field(description="Name of the configuration")
    labels: Optional[dict[str, str]] = Field(default=None)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """Validate configuration name."""
        if not v:
            raise ValueError("Configuration name cannot be empty")
        if len(v) > 253:
            raise ValueError("Configuration name cannot exceed 253 characters")
        return v


class HubScaleSpec(BaseModel):
    """Specification for the scaling loop."""

    target: TargetResource
    threshold: ThresholdConfig
    loop: LoopConfig = Field(default_factory=LoopConfig)
    tiers: TierTable = Field(default_factory=TierTable)

    @field_validator("tiers", mode="before")
    @classmethod
    def wrap_tier_list(cls, v):
        """Accept a bare list of tiers in YAML."""
        if isinstance(v, (list, tuple)):
            return {"tiers": v}
        return v

    model_config = {"frozen": True}

    @property
    def instance_id(self) -> str:
        if self.loop.instance_id:
            return self.loop.instance_id
        slug = re.sub(r"[^a-z0-9-]+", "-", self.target.hub_name.lower()).strip("-")
        return f"hubscale-{slug}"


class HubScaleConfig(BaseModel):
    """Root model for a HubScale configuration document."""

    api_version: str = Field(default="hubscale.io/v1", alias="apiVersion")
    kind: Literal["HubScaleConfig"] = Field(default="HubScaleConfig")
    metadata: Metadata
    spec: HubScaleSpec

    model_config = {"populate_by_name": True}

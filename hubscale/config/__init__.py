"""Configuration management for HubScale."""

from hubscale.config.loader import ConfigLoadError, ConfigLoader
from hubscale.config.models import (
    DEFAULT_QUOTA_METRIC,
    DEFAULT_TIERS,
    HubScaleConfig,
    HubScaleSpec,
    LoopConfig,
    Metadata,
    TargetResource,
    ThresholdConfig,
    TierSpec,
    TierTable,
)
from hubscale.config.validator import ConfigValidator, ValidationResult

__all__ = [
    "DEFAULT_QUOTA_METRIC",
    "DEFAULT_TIERS",
    "ConfigLoadError",
    "ConfigLoader",
    "ConfigValidator",
    "HubScaleConfig",
    "HubScaleSpec",
    "LoopConfig",
    "Metadata",
    "TargetResource",
    "ThresholdConfig",
    "TierSpec",
    "TierTable",
    "ValidationResult",
]

"""Configuration validator for HubScale."""

import logging
from typing import Optional

import pytz
from pydantic import ValidationError

from hubscale.config.models import DEFAULT_QUOTA_METRIC, HubScaleConfig

logger = logging.getLogger(__name__)

LOW_THRESHOLD_PERCENTAGE = 50
MIN_LEASE_GRACE_SECONDS = 60


class ValidationResult:
    """Result of configuration validation."""

    def __init__(self, valid: bool, errors: Optional[list[str]] = None, warnings: Optional[list[str]] = None):
        """
        Initialize validation result.

        Args:
            valid: Whether the configuration is valid
            errors: List of validation errors
            warnings: List of validation warnings
        """
        self.valid = valid
        self.errors = errors or []
        self.warnings = warnings or []

    def __bool__(self) -> bool:
        """Return validation status."""
        return self.valid

    def __str__(self) -> str:
        """Return human-readable validation result."""
        lines = []
        if self.valid:
            lines.append("✓ Configuration is valid")
        else:
            lines.append("✗ Configuration is invalid")

        if self.errors:
            lines.append("\nErrors:")
            for error in self.errors:
                lines.append(f"  - {error}")

        if self.warnings:
            lines.append("\nWarnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines)


class ConfigValidator:
    """Semantic checks on top of the pydantic models."""

    @staticmethod
    def validate(config: HubScaleConfig) -> ValidationResult:
        """
        Validate a HubScaleConfig.

        Args:
            config: The configuration to validate

        Returns:
            ValidationResult with any errors or warnings
        """
        errors: list[str] = []
        warnings: list[str] = []
        spec = config.spec

        try:
            pytz.timezone(spec.loop.timezone)
        except pytz.exceptions.UnknownTimeZoneError:
            errors.append(
                f"Invalid timezone '{spec.loop.timezone}'. "
                "Use IANA timezone names (e.g., 'UTC', 'Europe/Berlin')"
            )

        # A higher tier should never grant less per unit than the one below it,
        # otherwise escalation can lower the effective limit.
        tiers = spec.tiers.tiers
        for lower, higher in zip(tiers, tiers[1:]):
            if higher.unit_capacity <= lower.unit_capacity:
                warnings.append(
                    f"Tier '{higher.name}' unit capacity ({higher.unit_capacity}) is not greater "
                    f"than tier '{lower.name}' ({lower.unit_capacity}). Check the tier order."
                )

        if spec.threshold.percentage < LOW_THRESHOLD_PERCENTAGE:
            warnings.append(
                f"Threshold of {spec.threshold.percentage}% is low; "
                "the hub will be escalated well before it is saturated."
            )

        if spec.threshold.metric_name != DEFAULT_QUOTA_METRIC:
            warnings.append(
                f"Quota metric '{spec.threshold.metric_name}' is not '{DEFAULT_QUOTA_METRIC}'. "
                "Tier unit capacities are expressed in messages per day."
            )

        if spec.loop.tick_interval_seconds > spec.loop.interval_seconds * 24:
            warnings.append(
                f"Tick interval ({spec.loop.tick_interval_seconds}s) is far longer than the loop "
                f"interval ({spec.loop.interval_seconds}s); a stopped loop will be slow to restart."
            )

        if spec.loop.lease_grace_seconds < MIN_LEASE_GRACE_SECONDS:
            warnings.append(
                f"Lease grace of {spec.loop.lease_grace_seconds}s is short; a slow turn may let "
                "a second instance start."
            )

        valid = len(errors) == 0
        return ValidationResult(valid=valid, errors=errors, warnings=warnings)

    @staticmethod
    def validate_from_dict(data: dict) -> ValidationResult:
        """
        Validate configuration from a dictionary.

        Args:
            data: Dictionary containing configuration

        Returns:
            ValidationResult with any errors or warnings
        """
        try:
            config = HubScaleConfig.model_validate(data)
            return ConfigValidator.validate(config)
        except ValidationError as e:
            errors = []
            for error in e.errors():
                loc = " -> ".join(str(x) for x in error["loc"])
                errors.append(f"{loc}: {error['msg']}")
            return ValidationResult(valid=False, errors=errors)

    @staticmethod
    def quick_validate(config: HubScaleConfig) -> bool:
        """Only check for errors, not warnings."""
        return ConfigValidator.validate(config).valid

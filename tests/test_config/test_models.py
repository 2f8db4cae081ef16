"""Tests for configuration models."""

import pytest
from pydantic import ValidationError

from hubscale.config.models import (
    DEFAULT_QUOTA_METRIC,
    HubScaleConfig,
    HubScaleSpec,
    LoopConfig,
    Metadata,
    TargetResource,
    ThresholdConfig,
    TierSpec,
    TierTable,
)


@pytest.fixture
def target():
    return TargetResource(subscription_id="sub", resource_group="rg", hub_name="My_Hub")


class TestTierSpec:
    """Tests for TierSpec."""

    def test_valid_tier(self):
        """Test creating a tier with aliases."""
        tier = TierSpec(name="S1", unitCapacity=400000, minUnits=1, maxUnits=200)

        assert tier.unit_capacity == 400000
        assert tier.min_units == 1
        assert tier.max_units == 200

    def test_min_greater_than_max(self):
        """Test min_units must not exceed max_units."""
        with pytest.raises(ValidationError) as exc_info:
            TierSpec(name="S1", unit_capacity=100, min_units=3, max_units=2)

        assert "cannot be greater than" in str(exc_info.value)

    def test_zero_capacity(self):
        """Test unit capacity must be positive."""
        with pytest.raises(ValidationError):
            TierSpec(name="S1", unit_capacity=0, max_units=1)

    def test_empty_name(self):
        """Test tier name cannot be empty."""
        with pytest.raises(ValidationError):
            TierSpec(name=" ", unit_capacity=1, max_units=1)

    def test_frozen(self):
        """Test tiers are immutable."""
        tier = TierSpec(name="S1", unit_capacity=100, max_units=1)

        with pytest.raises(ValidationError):
            tier.max_units = 5


class TestTierTable:
    """Tests for TierTable."""

    def test_defaults(self):
        """Test the default IoT Hub tiers."""
        table = TierTable()

        assert table.names == ["S1", "S2", "S3"]
        assert table.get("S3").max_units == 10

    def test_lookup(self):
        """Test index and tier lookups."""
        table = TierTable()

        assert table.index_of("S2") == 1
        assert table.index_of("F1") is None
        assert table.get("F1") is None
        assert len(table) == 3

    def test_duplicate_names(self):
        """Test duplicate tier names are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            TierTable(
                tiers=(
                    TierSpec(name="S1", unit_capacity=1, max_units=1),
                    TierSpec(name="S1", unit_capacity=2, max_units=1),
                )
            )

        assert "Duplicate tier name" in str(exc_info.value)

    def test_empty_table(self):
        """Test at least one tier is required."""
        with pytest.raises(ValidationError):
            TierTable(tiers=())


class TestThresholdConfig:
    """Tests for ThresholdConfig."""

    def test_default_metric(self):
        threshold = ThresholdConfig(percentage=80)

        assert threshold.metric_name == DEFAULT_QUOTA_METRIC

    def test_percentage_bounds(self):
        """Test percentage lies in (0, 100]."""
        ThresholdConfig(percentage=100)

        with pytest.raises(ValidationError):
            ThresholdConfig(percentage=0)
        with pytest.raises(ValidationError):
            ThresholdConfig(percentage=100.5)

    def test_alias(self):
        threshold = ThresholdConfig.model_validate({"percentage": 50, "metricName": "X"})

        assert threshold.metric_name == "X"


class TestLoopConfig:
    """Tests for LoopConfig."""

    def test_defaults(self):
        loop = LoopConfig()

        assert loop.instance_id is None
        assert loop.interval_seconds == 3600
        assert loop.tick_interval_seconds == 3600
        assert loop.lease_namespace == "default"
        assert loop.timezone == "UTC"

    def test_invalid_instance_id(self):
        """Test instance ids follow Lease naming rules."""
        with pytest.raises(ValidationError):
            LoopConfig(instance_id="Bad_Name")

    def test_interval_positive(self):
        with pytest.raises(ValidationError):
            LoopConfig(interval_seconds=0)


class TestHubScaleSpec:
    """Tests for HubScaleSpec."""

    def test_default_instance_id(self, target):
        """Test the identity is derived from the hub name."""
        spec = HubScaleSpec(target=target, threshold=ThresholdConfig(percentage=80))

        assert spec.instance_id == "hubscale-my-hub"

    def test_explicit_instance_id(self, target):
        spec = HubScaleSpec(
            target=target,
            threshold=ThresholdConfig(percentage=80),
            loop=LoopConfig(instance_id="iothubscaleorchestrator-1"),
        )

        assert spec.instance_id == "iothubscaleorchestrator-1"

    def test_tier_list_shorthand(self, target):
        """Test a bare list of tiers is accepted."""
        spec = HubScaleSpec.model_validate(
            {
                "target": target.model_dump(by_alias=True),
                "threshold": {"percentage": 80},
                "tiers": [{"name": "S1", "unitCapacity": 100, "maxUnits": 2}],
            }
        )

        assert spec.tiers.names == ["S1"]


class TestHubScaleConfig:
    """Tests for the root model."""

    def test_minimal(self):
        config = HubScaleConfig.model_validate(
            {
                "metadata": {"name": "hub"},
                "spec": {
                    "target": {
                        "subscriptionId": "sub",
                        "resourceGroup": "rg",
                        "hubName": "hub",
                    },
                    "threshold": {"percentage": 80},
                },
            }
        )

        assert config.api_version == "hubscale.io/v1"
        assert config.kind == "HubScaleConfig"
        assert config.spec.tiers.names == ["S1", "S2", "S3"]

    def test_wrong_kind(self, target):
        with pytest.raises(ValidationError):
            HubScaleConfig(
                kind="ScalingRule",
                metadata=Metadata(name="x"),
                spec=HubScaleSpec(target=target, threshold=ThresholdConfig(percentage=80)),
            )

    def test_empty_target_field(self):
        with pytest.raises(ValidationError):
            TargetResource(subscription_id="", resource_group="rg", hub_name="hub")

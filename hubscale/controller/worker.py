"""Scaling worker: one evaluation cycle against the managed resource."""

import logging
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Optional

from hubscale.config.models import TargetResource, ThresholdConfig, TierTable
from hubscale.controller.decision import decide
from hubscale.controller.escalation import next_tier
from hubscale.controller.types import (
    HubProvider,
    ResourceDescription,
    TierTarget,
    UnknownTierError,
    find_metric,
)

logger = logging.getLogger(__name__)


class OutcomeKind(str, Enum):
    """Terminal state of a cycle."""

    NO_ACTION_TAKEN = "NoActionTaken"
    ESCALATED = "Escalated"
    FAILED = "Failed"


class CycleError(str, Enum):
    """Reasons a cycle can fail."""

    CLIENT_UNAVAILABLE = "ClientUnavailable"
    FETCH_ERROR = "FetchError"
    METRIC_UNAVAILABLE = "MetricUnavailable"
    NO_HIGHER_TIER_AVAILABLE = "NoHigherTierAvailable"
    UNKNOWN_TIER = "UnknownTier"
    PROVISIONING_ERROR = "ProvisioningError"

    @property
    def needs_operator(self) -> bool:
        """Errors that recur every cycle until configuration or the tier changes."""
        return self in (CycleError.NO_HIGHER_TIER_AVAILABLE, CycleError.UNKNOWN_TIER)


@dataclass(frozen=True)
class CycleOutcome:
    """Outcome of a single ScalingWorker cycle."""

    kind: OutcomeKind
    reason: str
    error: Optional[CycleError] = None
    previous: Optional[ResourceDescription] = None
    target: Optional[TierTarget] = None
    elapsed_seconds: Optional[float] = None
    metric_value: Optional[float] = None
    message_limit: Optional[int] = None
    dry_run: bool = False

    @classmethod
    def failed(cls, error: CycleError, reason: str, **kwargs) -> "CycleOutcome":
        return cls(kind=OutcomeKind.FAILED, error=error, reason=reason, **kwargs)

    @property
    def is_failure(self) -> bool:
        return self.kind is OutcomeKind.FAILED

    def __str__(self) -> str:
        if self.kind is OutcomeKind.FAILED:
            return f"Failed({self.error.value}): {self.reason}"
        if self.kind is OutcomeKind.ESCALATED:
            return f"Escalated({self.previous} -> {self.target}): {self.reason}"
        return f"NoActionTaken: {self.reason}"


ClientFactory = Callable[[], Optional[HubProvider]]


class ScalingWorker:
    """Runs one fetch -> decide -> escalate -> provision cycle."""

    def __init__(
        self,
        client_factory: ClientFactory,
        target: TargetResource,
        threshold: ThresholdConfig,
        tiers: TierTable,
        dry_run: bool = False,
    ):
        """
        Initialize the scaling worker.

        Args:
            client_factory: Callable returning a provider client for this cycle
            target: The managed resource
            threshold: Threshold configuration
            tiers: Ordered tier table
            dry_run: If True, log the escalation but don't submit it
        """
        self.client_factory = client_factory
        self.target = target
        self.threshold = threshold
        self.tiers = tiers
        self.dry_run = dry_run

    def run_cycle(self) -> CycleOutcome:
        """
        Run one evaluation cycle.

        Every failure aborts the cycle and is returned as a Failed outcome;
        nothing is raised to the caller and nothing is retried.

        Returns:
            CycleOutcome describing what happened
        """
        outcome = self._run_cycle()
        self._log_outcome(outcome)
        return outcome

    def _run_cycle(self) -> CycleOutcome:
        hub = self.target.hub_name

        try:
            client = self.client_factory()
        except Exception as e:
            return CycleOutcome.failed(
                CycleError.CLIENT_UNAVAILABLE, f"Unable to create client for {hub}: {e}"
            )
        if client is None:
            return CycleOutcome.failed(
                CycleError.CLIENT_UNAVAILABLE, f"Unable to create client for {hub}"
            )

        try:
            description = client.get_description(self.target)
        except Exception as e:
            return CycleOutcome.failed(
                CycleError.FETCH_ERROR, f"Failed to read description of {hub}: {e}"
            )

        try:
            metrics = client.get_quota_metrics(self.target)
        except Exception as e:
            return CycleOutcome.failed(
                CycleError.FETCH_ERROR,
                f"Failed to read quota metrics of {hub}: {e}",
                previous=description,
            )

        metric = find_metric(metrics, self.threshold.metric_name)
        if metric is None:
            return CycleOutcome.failed(
                CycleError.METRIC_UNAVAILABLE,
                f"Quota metric '{self.threshold.metric_name}' not reported for {hub}",
                previous=description,
            )

        try:
            decision = decide(description, metric.current_value, self.threshold, self.tiers)
        except UnknownTierError as e:
            return CycleOutcome.failed(
                CycleError.UNKNOWN_TIER, str(e), previous=description,
                metric_value=metric.current_value,
            )

        logger.info(
            f"{hub}: tier {description.tier_name}, {description.capacity_units} unit(s), "
            f"{self.threshold.metric_name}={metric.current_value:g}, "
            f"limit={decision.message_limit}"
        )

        if not decision.should_escalate:
            return CycleOutcome(
                kind=OutcomeKind.NO_ACTION_TAKEN,
                reason=decision.reason,
                previous=description,
                metric_value=decision.metric_value,
                message_limit=decision.message_limit,
            )

        logger.info(f"{hub}: {decision.reason}, need to scale")

        try:
            target = next_tier(description.tier_name, description.capacity_units, self.tiers)
        except UnknownTierError as e:
            return CycleOutcome.failed(
                CycleError.UNKNOWN_TIER, str(e), previous=description,
                metric_value=decision.metric_value, message_limit=decision.message_limit,
            )

        if target is None:
            return CycleOutcome.failed(
                CycleError.NO_HIGHER_TIER_AVAILABLE,
                f"{hub} is already at the highest unit count of the highest tier "
                f"({description})",
                previous=description,
                metric_value=decision.metric_value,
                message_limit=decision.message_limit,
            )

        return self._provision(
            client, description, target, decision.metric_value, decision.message_limit
        )

    def _provision(
        self,
        client: HubProvider,
        description: ResourceDescription,
        target: TierTarget,
        metric_value: float,
        message_limit: int,
    ) -> CycleOutcome:
        """Submit the new tier and unit count. Called at most once per cycle."""
        hub = self.target.hub_name
        details = dict(
            previous=description,
            target=target,
            metric_value=metric_value,
            message_limit=message_limit,
        )

        if self.dry_run:
            return CycleOutcome(
                kind=OutcomeKind.ESCALATED,
                reason=f"[DRY-RUN] Would update {hub} from {description} to {target}",
                elapsed_seconds=0.0,
                dry_run=True,
                **details,
            )

        updated = replace(
            description,
            tier_name=target.tier_name,
            capacity_units=target.capacity_units,
        )

        start_time = time.monotonic()
        try:
            client.update(self.target, updated)
        except Exception as e:
            return CycleOutcome.failed(
                CycleError.PROVISIONING_ERROR,
                f"Failed to update {hub} to {target}: {e}",
                elapsed_seconds=time.monotonic() - start_time,
                **details,
            )
        elapsed = time.monotonic() - start_time

        return CycleOutcome(
            kind=OutcomeKind.ESCALATED,
            reason=f"Updated {hub} from {description} to {target} in {elapsed:.1f} seconds",
            elapsed_seconds=elapsed,
            **details,
        )

    def _log_outcome(self, outcome: CycleOutcome) -> None:
        if outcome.kind is OutcomeKind.NO_ACTION_TAKEN:
            logger.info(f"{outcome.reason}. Nothing to do")
        elif outcome.kind is OutcomeKind.ESCALATED:
            logger.info(outcome.reason)
        elif outcome.error.needs_operator:
            logger.error(
                f"{outcome.error.value}: {outcome.reason}. "
                "This will recur every cycle until the configuration or tier is changed"
            )
        else:
            logger.error(f"{outcome.error.value}: {outcome.reason}")

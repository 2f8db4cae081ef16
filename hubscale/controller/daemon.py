"""Main daemon controller for HubScale."""

import logging
import signal
import threading
from datetime import datetime, timedelta
from typing import Literal, Optional

from hubscale.azure.client import IotHubClientFactory
from hubscale.config.loader import ConfigLoader
from hubscale.config.models import HubScaleConfig
from hubscale.config.validator import ConfigValidator
from hubscale.controller.instance_store import InMemoryInstanceStore, InstanceStore
from hubscale.controller.scheduler import SingleInstanceScheduler, utc_now
from hubscale.controller.worker import ClientFactory, ScalingWorker
from hubscale.k8s.client import K8sClient
from hubscale.k8s.lease_store import LeaseInstanceStore
from hubscale.utils.state import LoopState
from hubscale.utils.time_utils import seconds_until

logger = logging.getLogger(__name__)


class HubScaleDaemon:
    """Emits the external tick and resumes armed continuations."""

    def __init__(
        self,
        scheduler: SingleInstanceScheduler,
        tick_interval: int = 3600,
    ):
        """
        Initialize HubScale daemon.

        Args:
            scheduler: Scheduler owning the loop identity
            tick_interval: Seconds between external ticks
        """
        self.scheduler = scheduler
        self.tick_interval = tick_interval

        self._stop_event = threading.Event()
        self._next_tick: Optional[datetime] = None

    def install_signal_handlers(self) -> None:
        """Stop the daemon on SIGINT/SIGTERM."""
        signal.signal(signal.SIGINT, self._handle_shutdown)
        signal.signal(signal.SIGTERM, self._handle_shutdown)

    def _handle_shutdown(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, initiating graceful shutdown...")
        self.stop()

    def stop(self) -> None:
        """Interrupt the idle wait and leave the main loop."""
        self._stop_event.set()

    @property
    def stopping(self) -> bool:
        return self._stop_event.is_set()

    def run_once(self) -> bool:
        """
        Deliver a single external tick.

        Returns:
            True if the tick started a new instance
        """
        return self.scheduler.on_tick()

    def step(self, now: Optional[datetime] = None) -> None:
        """Deliver the tick and resume the continuation if either is due."""
        now = now or self.scheduler.clock()

        if self._next_tick is None or now >= self._next_tick:
            self._next_tick = now + timedelta(seconds=self.tick_interval)
            self.scheduler.on_tick(now)
            # on_tick may have run a turn
            now = self.scheduler.clock()

        self.scheduler.resume_due(now)

    def seconds_to_next_event(self, now: Optional[datetime] = None) -> float:
        """Time until the next tick or continuation, whichever is earlier."""
        now = now or self.scheduler.clock()
        waits = [
            w for w in (
                seconds_until(self._next_tick, now),
                seconds_until(self.scheduler.next_wake_time, now),
            )
            if w is not None
        ]
        return min(waits) if waits else 0.0

    def run(self) -> None:
        """
        Run the daemon main loop until stop() is called.

        Between events the daemon blocks on an interruptible wait; a turn in
        progress is never interrupted.
        """
        logger.info(
            f"HubScale daemon starting (instance={self.scheduler.instance_id}, "
            f"interval={self.scheduler.interval_seconds}s, tick={self.tick_interval}s, "
            f"dry_run={self.scheduler.worker.dry_run})"
        )

        while not self.stopping:
            try:
                self.step()
            except Exception as e:
                logger.error(f"Error in daemon loop: {e}", exc_info=True)

            self._stop_event.wait(self.seconds_to_next_event())

        logger.info("HubScale daemon shutting down")
        self._cleanup()

    def _cleanup(self) -> None:
        """Cleanup resources before shutdown."""
        logger.info("Performing cleanup...")
        self.scheduler.shutdown()
        logger.info("Cleanup complete")

    def health_check(self) -> dict:
        """
        Get health status of the daemon.

        Returns:
            Dictionary with health information
        """
        state = self.scheduler.state
        last = state.last_outcome
        wake = self.scheduler.next_wake_time
        return {
            "status": "healthy" if not self.stopping else "shutting_down",
            "instance_id": self.scheduler.instance_id,
            "owns_instance": self.scheduler.owns_instance,
            "turns": state.turn_count,
            "next_wake_time": wake.isoformat() if wake else None,
            "last_outcome": last.kind.value if last else None,
            "last_error": last.error.value if last and last.error else None,
            "consecutive_failures": state.consecutive_failures,
            "dry_run": self.scheduler.worker.dry_run,
        }


class DaemonConfig:
    """Configuration for the daemon."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        config: Optional[HubScaleConfig] = None,
        dry_run: bool = False,
        store: Literal["memory", "lease"] = "memory",
        in_cluster: bool = True,
    ):
        """
        Initialize daemon configuration.

        Args:
            config_path: Path to the HubScale YAML configuration
            config: Already loaded configuration (takes precedence over config_path)
            dry_run: If True, don't submit provisioning updates
            store: Instance store backing the single-instance guarantee
            in_cluster: If True, use in-cluster Kubernetes config for the lease store
        """
        self.config_path = config_path
        self.config = config
        self.dry_run = dry_run
        self.store = store
        self.in_cluster = in_cluster


def create_store(config: DaemonConfig, hub_config: HubScaleConfig) -> InstanceStore:
    """Build the instance store selected in the daemon configuration."""
    if config.store == "memory":
        return InMemoryInstanceStore()

    if config.store == "lease":
        loop = hub_config.spec.loop
        logger.info(
            f"Initializing Kubernetes client (in_cluster={config.in_cluster})..."
        )
        k8s_client = K8sClient(in_cluster=config.in_cluster)
        if not k8s_client.test_connection(namespace=loop.lease_namespace):
            logger.error("Failed to connect to Kubernetes API")
            raise RuntimeError("Cannot connect to Kubernetes API")
        return LeaseInstanceStore(
            k8s_client,
            namespace=loop.lease_namespace,
            interval_seconds=loop.interval_seconds,
            grace_seconds=loop.lease_grace_seconds,
        )

    raise ValueError(f"Unknown instance store: {config.store}")


def create_daemon(
    config: DaemonConfig,
    client_factory: Optional[ClientFactory] = None,
    store: Optional[InstanceStore] = None,
) -> HubScaleDaemon:
    """
    Create and configure a HubScale daemon.

    Args:
        config: Daemon configuration
        client_factory: Provider client factory (defaults to Azure IoT Hub)
        store: Instance store (defaults to the one selected in config)

    Returns:
        Configured HubScaleDaemon instance
    """
    hub_config = config.config
    if hub_config is None:
        if not config.config_path:
            raise ValueError("Either config or config_path must be provided")
        logger.info(f"Loading configuration from {config.config_path}")
        hub_config = ConfigLoader.load_from_file(config.config_path)

    validation = ConfigValidator.validate(hub_config)
    if not validation.valid:
        raise ValueError(f"Invalid configuration '{hub_config.metadata.name}': {validation.errors}")
    for warning in validation.warnings:
        logger.warning(f"Configuration '{hub_config.metadata.name}': {warning}")

    spec = hub_config.spec

    if client_factory is None:
        client_factory = IotHubClientFactory(spec.target.subscription_id)

    if store is None:
        store = create_store(config, hub_config)

    worker = ScalingWorker(
        client_factory=client_factory,
        target=spec.target,
        threshold=spec.threshold,
        tiers=spec.tiers,
        dry_run=config.dry_run,
    )

    scheduler = SingleInstanceScheduler(
        store=store,
        worker=worker,
        instance_id=spec.instance_id,
        interval_seconds=spec.loop.interval_seconds,
        state=LoopState(),
        clock=utc_now,
        display_timezone=spec.loop.timezone,
    )

    return HubScaleDaemon(
        scheduler=scheduler,
        tick_interval=spec.loop.tick_interval_seconds,
    )

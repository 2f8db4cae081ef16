"""Main entry point for the HubScale daemon."""

import argparse
import logging
import sys
from pathlib import Path

from pydantic import ValidationError

from hubscale import __version__
from hubscale.config.loader import ConfigLoadError
from hubscale.controller.daemon import DaemonConfig, create_daemon
from hubscale.utils.logger import setup_logging

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="hubscale",
        description="HubScale - scale-up control loop for Azure IoT Hub",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the daemon
  python -m hubscale --config /etc/hubscale/hub.yaml

  # Evaluate without changing the hub
  python -m hubscale --config hub.yaml --dry-run

  # Deliver one tick and exit (for cron or an external timer)
  python -m hubscale --config hub.yaml --once

  # Guard the loop identity with a Kubernetes Lease, using local kubeconfig
  python -m hubscale --config hub.yaml --store lease --kubeconfig
        """,
    )

    parser.add_argument(
        "--config",
        type=str,
        required=True,
        help="HubScaleConfig YAML file",
    )

    parser.add_argument(
        "--once",
        action="store_true",
        help="Deliver a single tick and exit",
    )

    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Enable dry-run mode (evaluate but don't update the hub)",
    )

    parser.add_argument(
        "--store",
        type=str,
        default="memory",
        choices=["memory", "lease"],
        help="Where the single-instance identity is held (default: memory)",
    )

    parser.add_argument(
        "--kubeconfig",
        action="store_true",
        help="Use local kubeconfig instead of in-cluster config for the lease store",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-format",
        type=str,
        default="text",
        choices=["text", "json"],
        help="Log output format (default: text)",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"HubScale {__version__}",
    )

    return parser.parse_args(argv)


def validate_args(args):
    """
    Validate command-line arguments.

    Returns:
        True if valid, False otherwise
    """
    config_path = Path(args.config)
    if not config_path.exists():
        logger.error(f"Configuration file does not exist: {args.config}")
        return False
    if not config_path.is_file():
        logger.error(f"Configuration path is not a file: {args.config}")
        return False

    return True


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(
        level=args.log_level,
        format_json=args.log_format == "json",
    )

    logger.info("=" * 60)
    logger.info("HubScale - Azure IoT Hub Scale-Up Loop")
    logger.info("=" * 60)

    if not validate_args(args):
        sys.exit(1)

    logger.info("Configuration:")
    logger.info(f"  Config file: {args.config}")
    logger.info(f"  Mode: {'single tick' if args.once else 'daemon'}")
    logger.info(f"  Instance store: {args.store}")
    logger.info(f"  Dry-run mode: {args.dry_run}")
    logger.info(f"  Log level: {args.log_level}")

    if args.dry_run:
        logger.warning("DRY-RUN MODE ENABLED - No provisioning updates will be submitted")

    config = DaemonConfig(
        config_path=args.config,
        dry_run=args.dry_run,
        store=args.store,
        in_cluster=not args.kubeconfig,
    )

    try:
        logger.info("Initializing HubScale daemon...")
        daemon = create_daemon(config)

        if args.once:
            daemon.run_once()
            daemon.scheduler.shutdown()
            return

        daemon.install_signal_handlers()
        logger.info("Starting daemon main loop...")
        daemon.run()

    except (ConfigLoadError, ValidationError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        sys.exit(0)

    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()

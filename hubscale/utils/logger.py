"""Logging configuration for HubScale."""

import logging
import sys

NOISY_LOGGERS = (
    "azure",
    "azure.core.pipeline.policies.http_logging_policy",
    "azure.identity",
    "kubernetes",
    "urllib3",
)


def setup_logging(level: str = "INFO", format_json: bool = False) -> None:
    """
    Setup logging configuration.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, use JSON format (for structured logging)
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    if format_json:
        log_format = '{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    # SDK request logging drowns out the loop's own output
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

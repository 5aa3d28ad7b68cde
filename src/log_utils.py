"""
Logging utilities for the cluster reconciler.
"""

import logging
import sys
from typing import Optional

# Loggers of libraries that are chatty at INFO level
NOISY_LOGGERS = ("azure.identity", "azure.core.pipeline.policies", "urllib3")


def setup_logging(
    verbose: bool = False, log_file: Optional[str] = "cluster-reconcile.log"
) -> logging.Logger:
    """
    Set up logging configuration.

    Args:
        verbose: Enable verbose (DEBUG) logging for the reconciler
        log_file: Path to log file, or None to log to stdout only

    Returns:
        Logger instance
    """
    level = logging.DEBUG if verbose else logging.INFO

    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
        handlers=handlers,
        force=True,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger(__name__)

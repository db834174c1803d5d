"""Logging configuration for apartment alerts."""

import logging
import os
import sys
from datetime import datetime
from pathlib import Path


def setup_logging(log_level: str = None, log_dir: str = "./logs") -> None:
    """
    Configure logging for the matching job.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR).
                   Defaults to LOG_LEVEL env var or INFO.
        log_dir: Directory for a dated log file. Only used if it already exists.
    """
    level = log_level or os.getenv("LOG_LEVEL", "INFO")

    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid stacking handlers when called more than once in a process
    for handler in list(root_logger.handlers):
        if getattr(handler, "_apartment_alerts", False):
            root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler._apartment_alerts = True
    root_logger.addHandler(console_handler)

    logs_path = Path(log_dir)
    if logs_path.exists():
        log_file = logs_path / f"apartment_alerts_{datetime.now():%Y%m%d}.log"
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        file_handler._apartment_alerts = True
        root_logger.addHandler(file_handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)

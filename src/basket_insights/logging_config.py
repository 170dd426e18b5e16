"""Per-run timestamped logging configuration for Basket Insights.

Each CLI launch creates a dedicated log file inside the configured log
directory, named with the launch timestamp (e.g. ``run_20260214_153045.log``).
All ``basket_insights.*`` loggers route through the same handlers.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

LOGGER_NAME = "basket_insights"

_DETAILED_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | %(module)s:%(funcName)s:%(lineno)d | "
    "%(message)s"
)

_CONSOLE_FORMAT = "%(asctime)s | %(levelname)-8s | %(message)s"

_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    log_dir: Path,
    level: str = "INFO",
    console_level: str = "WARNING",
) -> Path:
    """Initialise the root ``basket_insights`` logger for the current run.

    Args:
        log_dir: Directory that receives the run log file
        level: Level for the file handler
        console_level: Level for the stderr handler

    Returns:
        Path to the log file created for this run.
    """
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"run_{timestamp}.log"

    root_logger = logging.getLogger(LOGGER_NAME)
    root_logger.setLevel(logging.DEBUG)

    # Repeated calls (tests, nested CLI invocations) keep the first handlers
    if root_logger.handlers:
        return log_file

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(level.upper())
    file_handler.setFormatter(logging.Formatter(_DETAILED_FORMAT, datefmt=_DATE_FORMAT))

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(console_level.upper())
    console_handler.setFormatter(logging.Formatter(_CONSOLE_FORMAT, datefmt=_DATE_FORMAT))

    root_logger.addHandler(file_handler)
    root_logger.addHandler(console_handler)

    root_logger.info("Logging initialised, log file: %s", log_file)

    return log_file

"""Logging setup for meshctl.

Only warnings and errors reach stderr unless --verbose is given, so the
dashboard URLs stay readable. The local proxy logs one line per request on the
access logger; those lines go to the log file and never to the terminal.
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ACCESS_LOGGER = "mesh_dashboard.access"

# Clients used to reach the API server and the control plane
QUIET_LIBRARIES = ("urllib3", "kubernetes", "requests")


def _not_access_log(record: logging.LogRecord) -> bool:
    return not record.name.startswith(ACCESS_LOGGER)


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure logging for one meshctl invocation.

    Args:
        verbose: Show debug messages on stderr
        log_file: Optional file receiving every message, proxy requests included
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.addFilter(_not_access_log)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_file:
        try:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file)
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            logging.warning(f"Cannot write log file {log_file}: {e}")

    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger by name, usually the calling module's __name__."""
    return logging.getLogger(name)

"""Logging setup shared by the scanner, CLI and API."""

import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that log every decoded PNG chunk or upload part at DEBUG.
QUIET_LOGGERS = ("PIL", "multipart", "python_multipart")


def setup_logging(level: str = "INFO") -> None:
    """Attach a single stdout handler to the root logger.

    Calling this again once a handler exists leaves the handler and level
    untouched, so the CLI and the API server can both call it safely. Image
    decoding and upload parsing libraries are capped at WARNING so a DEBUG
    run shows the scan pipeline rather than PNG chunk traces.

    Args:
        level: Logging level name. Unknown names fall back to INFO.
    """
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root = logging.getLogger()
    if root.handlers:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module, usually called with ``__name__``."""
    return logging.getLogger(name)

"""Logging setup for the DentiPal backend.

Library and service loggers all live under the ``dentipal`` namespace, so
one handler on that logger covers both.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
ROOT_LOGGER = "dentipal"

_VALID_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the ``dentipal`` logger with a single stream handler.

    Safe to call more than once; an unknown level falls back to INFO.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    name = (level or "").upper()
    logger.setLevel(getattr(logging, name) if name in _VALID_LEVELS else logging.INFO)

    if not any(getattr(h, "_dentipal_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._dentipal_handler = True
        logger.addHandler(handler)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``dentipal`` namespace."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


_event_logger = get_logger("dentipal.events")


def log_job_event(event: str, job_id: str, actor: str, **details) -> None:
    """Log one marketplace event as ``event | job=<id> | actor=<sub> | k=v ...``."""
    parts = [event, f"job={job_id}", f"actor={actor}"]
    if details:
        parts.append(", ".join(f"{k}={v}" for k, v in details.items()))
    _event_logger.info(" | ".join(parts))

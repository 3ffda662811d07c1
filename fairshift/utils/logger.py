"""Process-wide logging setup for the fairshift backend."""

from __future__ import annotations

import logging
import sys
from typing import Optional

from fairshift.utils.config import get_settings


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"

# The HTTP client logs one INFO line per request.
_NOISY_LOGGERS = ("httpx", "httpcore")

_CONFIGURED = False


def configure_logging(level: Optional[str] = None) -> None:
    """Install the stdout handler once.

    A later call with an explicit ``level`` only changes the root level, so
    the launcher can apply the configured level after modules have imported
    their loggers.
    """

    global _CONFIGURED
    resolved_level = (level or get_settings().log_level).upper()
    if _CONFIGURED:
        if level is not None:
            logging.getLogger().setLevel(resolved_level)
        return

    logging.basicConfig(level=resolved_level, format=LOG_FORMAT, stream=sys.stdout)
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    _CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a module logger, configuring the process on first use."""
    configure_logging()
    return logging.getLogger(name)

"""Process-wide logger shared by the storefront engine."""
from __future__ import annotations

import logging
import os
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str | None = None) -> logging.Logger:
    """Configure the ``edumall`` logger once and return it."""
    log = logging.getLogger("edumall")
    resolved = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    log.setLevel(getattr(logging, resolved, logging.INFO))

    if not log.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        log.addHandler(handler)
    return log


logger = setup_logging()

__all__ = ["LOG_FORMAT", "logger", "setup_logging"]

"""Devbrain logging configuration.

Library modules only call ``logging.getLogger(__name__)``; entrypoints call
``setup_logging`` once to attach a stderr handler to the ``devbrain`` logger.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

LOG_LEVEL_ENV = "DEVBRAIN_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure devbrain logging.

    Args:
        level: Optional override for `DEVBRAIN_LOG_LEVEL`.
    """
    if level:
        os.environ[LOG_LEVEL_ENV] = level

    resolved = os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).upper()
    logger = logging.getLogger("devbrain")
    logger.setLevel(getattr(logging, resolved, logging.INFO))
    if not any(getattr(h, "_devbrain_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._devbrain_handler = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

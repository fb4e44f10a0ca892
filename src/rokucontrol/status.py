from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Literal

logger = logging.getLogger(__name__)

StatusLevel = Literal["info", "success", "warning", "error"]
StatusCallback = Callable[[str, StatusLevel], None]

_LOG_LEVELS = {
    "info": logging.INFO,
    "success": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def notify(callback: StatusCallback | None, message: str, level: StatusLevel = "info") -> None:
    """Log a status message and forward it to the UI callback, if any."""
    logger.log(_LOG_LEVELS[level], message)
    if callback is not None:
        callback(message, level)

"""Loguru sink configuration."""

from __future__ import annotations

import sys
from typing import Optional

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """
    Replace loguru's default sink with a stderr sink at ``level`` and,
    optionally, a rotating file sink.
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT)

    if log_file:
        logger.add(
            log_file,
            level=level.upper(),
            rotation="10 MB",
            retention=5,
            encoding="utf-8",
        )

"""Loguru sink configuration shared by the API server, worker and CLI."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

from config import Settings, get_settings

LOG_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def configure_logging(settings: Settings | None = None, level: str | None = None) -> None:
    """
    Replace loguru's default handler with the configured sinks.

    Args:
        settings: Settings instance (default: cached settings)
        level: Override for settings.log_level
    """
    settings = settings or get_settings()
    level = level or settings.log_level

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)

    if settings.log_file:
        Path(settings.log_file).parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            settings.log_file,
            level=level,
            rotation="10 MB",
            retention=5,
            enqueue=True,
        )

    logger.debug("Logging configured (level={}, file={})", level, settings.log_file)

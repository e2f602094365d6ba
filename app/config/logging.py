"""
Logging configuration.

Configures loguru sinks for workers and operator scripts.
"""

import sys

from loguru import logger

from app.config.settings import settings


def setup_logging(level: str | None = None, log_file: str | None = None) -> None:
    """Configure stderr and a rotated file sink."""
    level = level or settings.log_level
    log_file = log_file or settings.log_file

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[service]}</cyan> | {message}"
        ),
    )
    logger.add(
        log_file,
        rotation="1 day",
        retention="14 days",
        level=level,
        encoding="utf-8",
    )
    logger.configure(extra={"service": "payouts"})

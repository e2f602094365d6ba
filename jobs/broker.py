"""
Dramatiq broker configuration.

Redis-based message broker for the payout task queue.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import (
    AgeLimit,
    Callbacks,
    CurrentMessage,
    Pipelines,
    Retries,
    ShutdownNotifications,
    TimeLimit,
)
from loguru import logger

from app.config.logging import setup_logging
from app.config.settings import settings
from app.utils.exceptions import should_retry
from app.utils.redis_utils import get_redis_url_masked


setup_logging()

# Middleware is listed explicitly so Retries is configured exactly once
# AgeLimit/TimeLimit: drop stale messages, bound actor run time
# ShutdownNotifications: Allows workers to gracefully shutdown
# CurrentMessage: Provides access to current message in actors
# Retries: Exponential backoff, only for period lock contention
redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
    middleware=[
        AgeLimit(),
        TimeLimit(),
        ShutdownNotifications(),
        CurrentMessage(),
        Callbacks(),
        Pipelines(),
        Retries(
            min_backoff=5000,  # 5 seconds
            max_backoff=300000,  # 5 minutes
            retry_when=should_retry,
        ),
    ],
)

# Set as default broker
dramatiq.set_broker(redis_broker)

# Export broker
broker = redis_broker

logger.info(f"Dramatiq broker initialized: {get_redis_url_masked()}")
logger.info(
    "Middleware enabled: AgeLimit, TimeLimit, ShutdownNotifications, "
    "CurrentMessage, Callbacks, Pipelines, Retries (period lock contention)"
)

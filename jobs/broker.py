"""
Dramatiq broker configuration.

Redis-backed queue delivering billing events to the attribution actor.
"""

import dramatiq
from dramatiq.brokers.redis import RedisBroker
from dramatiq.middleware import CurrentMessage, Retries, ShutdownNotifications
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError

from app.config.logging import setup_logging
from app.config.settings import settings


setup_logging(settings)

MAX_RETRIES = 5


def should_retry(retries_so_far: int, exception: Exception) -> bool:
    """Retry transient database failures only."""
    return retries_so_far < MAX_RETRIES and isinstance(exception, SQLAlchemyError)


redis_broker = RedisBroker(
    host=settings.redis_host,
    port=settings.redis_port,
    password=settings.redis_password if settings.redis_password else None,
    db=settings.redis_db,
)

redis_broker.add_middleware(ShutdownNotifications())
redis_broker.add_middleware(CurrentMessage())
redis_broker.add_middleware(
    Retries(
        max_retries=MAX_RETRIES,
        min_backoff=1000,  # 1 second
        max_backoff=300_000,  # 5 minutes
        retry_when=should_retry,
    )
)

dramatiq.set_broker(redis_broker)

broker = redis_broker

logger.info(
    "Dramatiq broker initialized",
    extra={
        "redis": f"redis://{settings.redis_host}:{settings.redis_port}/{settings.redis_db}",
        "max_retries": MAX_RETRIES,
    },
)

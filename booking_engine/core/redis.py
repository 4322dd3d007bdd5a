"""Redis client construction."""

import logging
from typing import Optional

from redis import Redis

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


def create_redis_client(settings: Optional[Settings] = None) -> Redis:
    """
    Build a synchronous Redis client for the reservation lock.

    The client connects lazily; connection failures surface on first use and
    are handled by the lock as failed acquisition attempts.
    """
    settings = settings or get_settings()
    client = Redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=2,
        socket_timeout=2,
    )
    logger.info("redis_client_created")
    return client

import logging
from functools import lru_cache

import redis.asyncio as redis

from stockchef.core.config import get_settings

logger = logging.getLogger(__name__)


@lru_cache
def get_redis_client() -> redis.Redis | None:
    """
    Shared Redis client for rate-limit windows, or None when REDIS_URL is unset.

    The client connects lazily on first command.
    """
    url = get_settings().redis_url
    if not url:
        logger.info("REDIS_URL not configured. Rate-limit windows stay in process memory.")
        return None

    client = redis.from_url(url, encoding="utf-8", decode_responses=True)
    logger.info("Redis client initialized for rate limiting")
    return client

"""
Redis client factory for the cache layer.

The client is created once at process startup (see api.main lifespan) and
passed explicitly to CacheAside; nothing in the request path reaches for a
module-level Redis instance.
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError

from shared.config import get_settings

logger = logging.getLogger(__name__)


def create_redis_client(url: str | None = None) -> "redis.Redis[str]":
    """
    Create a Redis async client with production-ready configuration.

    The client is configured with:
    - Connection pooling (REDIS_MAX_CONNECTIONS)
    - Short socket timeouts so a dead Redis degrades to cache misses quickly
    - Health check pings every 30 seconds

    Creating the client does not open a connection; the first command does.
    A Redis outage therefore never blocks startup.

    Redis Key Patterns:
        - Lots: parking_lot:{id}, parking_lot:city:{city}
        - Spots / availability: parking_spots:lot:{id}, availability:lot:{id}
        - See shared.cache_keys for the full list

    Args:
        url: Override for settings.REDIS_URL

    Returns:
        Redis async client configured with connection pool
    """
    settings = get_settings()
    redis_url = url or settings.REDIS_URL

    client = redis.from_url(
        redis_url,
        max_connections=settings.REDIS_MAX_CONNECTIONS,
        decode_responses=True,
        socket_timeout=settings.REDIS_SOCKET_TIMEOUT,
        socket_connect_timeout=settings.REDIS_SOCKET_TIMEOUT,
        retry_on_timeout=False,
        health_check_interval=30,
    )

    logger.info(
        f"Redis client initialized: {redis_url} "
        f"(max_connections={settings.REDIS_MAX_CONNECTIONS}, "
        f"socket_timeout={settings.REDIS_SOCKET_TIMEOUT}s)"
    )
    return client


async def close_redis_client(client: "redis.Redis[str]") -> None:
    """
    Close Redis connection gracefully.

    Note:
        Should be called during application shutdown.
    """
    try:
        await client.aclose()
        logger.info("Redis client closed")
    except (RedisError, OSError) as e:
        logger.warning(f"Error closing Redis client: {e}")

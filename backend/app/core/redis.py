# backend/app/core/redis.py
"""
Redis client for the cooldown & lock store.

One client per process, created lazily on first use. Jobs and request
handlers receive it through CooldownLockStore rather than importing it
directly, so tests can hand in a double.
"""

import logging
import threading
from typing import Optional

from redis import Redis

from app.core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[Redis] = None
_redis_client_lock = threading.Lock()


def get_redis_client() -> Redis:
    """Get or create the process-wide Redis client."""
    global _redis_client

    if _redis_client is not None:
        return _redis_client
    with _redis_client_lock:
        if _redis_client is None:
            _redis_client = Redis.from_url(
                settings.redis_url or "redis://localhost:6379",
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("[REDIS] client initialized")
    return _redis_client


def close_redis_client() -> None:
    """Close the Redis client gracefully."""
    global _redis_client

    with _redis_client_lock:
        if _redis_client is not None:
            _redis_client.close()
            _redis_client = None
            logger.info("[REDIS] client closed")

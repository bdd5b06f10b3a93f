"""
Redis caching utilities for frequently accessed data
Every operation fails open: a cache outage never breaks a request
"""
import json
import logging
import os
from typing import Any, Iterable, Optional

import redis

from .config import POST_LIST_CACHE_PAGES

logger = logging.getLogger(__name__)

# Redis connection
redis_client: Optional[redis.Redis] = None


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Supports both a REDIS_URL and individual host/port settings
    """
    global redis_client

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection for cache...")

        redis_url = os.getenv("REDIS_URL")

        if redis_url:
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=15,
                socket_timeout=30,
                retry_on_timeout=True,
                health_check_interval=30,
                max_connections=20,
            )
        else:
            client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD", None),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                decode_responses=True,
                socket_connect_timeout=15,
                socket_timeout=30,
            )

        # Test connection before publishing the client
        client.ping()
        redis_client = client
        logger.info("Redis connected successfully")

    return redis_client


class Cache:
    """Redis cache wrapper with automatic serialization"""

    def __init__(self):
        self.redis_client = None

    def _get_client(self):
        """Lazy load Redis client"""
        if self.redis_client is None:
            try:
                self.redis_client = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Redis cache unavailable: {e}")
                return None
        return self.redis_client

    def get(self, key: str) -> Optional[Any]:
        """Get value from cache"""
        client = self._get_client()
        if not client:
            return None

        try:
            value = client.get(key)
            if value:
                logger.debug(f"✅ Cache HIT: {key}")
                return json.loads(value)
            logger.debug(f"❌ Cache MISS: {key}")
            return None
        except Exception as e:
            logger.error(f"❌ Cache get error for {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 3600) -> bool:
        """Set value in cache with TTL (default 1 hour)"""
        client = self._get_client()
        if not client:
            return False

        try:
            serialized = json.dumps(value, default=str)
            client.setex(key, ttl, serialized)
            logger.debug(f"✅ Cache SET: {key} (TTL: {ttl}s)")
            return True
        except Exception as e:
            logger.error(f"❌ Cache set error for {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        """Delete value from cache"""
        client = self._get_client()
        if not client:
            return False

        try:
            client.delete(key)
            logger.debug(f"✅ Cache DELETE: {key}")
            return True
        except Exception as e:
            logger.error(f"❌ Cache delete error for {key}: {e}")
            return False

    def delete_pattern(self, pattern: str) -> int:
        """Delete all keys matching pattern (e.g., 'deals:123:*')"""
        client = self._get_client()
        if not client:
            return 0

        try:
            keys = client.keys(pattern)
            if keys:
                deleted = client.delete(*keys)
                logger.debug(f"✅ Cache DELETE pattern: {pattern} ({deleted} keys)")
                return deleted
            return 0
        except Exception as e:
            logger.error(f"❌ Cache delete pattern error for {pattern}: {e}")
            return 0


# Global cache instance
cache = Cache()


def invalidate_cache(keys: Iterable[str]) -> int:
    """Invalidate a batch of keys; patterns containing '*' are expanded"""
    removed = 0
    for key in keys:
        if "*" in key:
            removed += cache.delete_pattern(key)
        elif cache.delete(key):
            removed += 1
    return removed


# Cache key builders

def user_key(user_id: int) -> str:
    return f"user:{user_id}"


def user_deals_pattern(user_id: int) -> str:
    return f"deals:{user_id}:*"


def build_deal_list_key(user_id: int, role: Optional[str] = None, status: Optional[str] = None) -> str:
    """Build cache key for a party's deal list queries"""
    return f"deals:{user_id}:{role or 'all'}:{status or 'all'}"


def post_list_keys(page_sizes: Iterable[int] = (6, 10)) -> list[str]:
    """Keys of the paginated post feed that go stale after an unlock"""
    return [
        f"posts:{page}:{size}" for page in range(1, POST_LIST_CACHE_PAGES + 1) for size in page_sizes
    ]


def invalidate_party_caches(*user_ids: int) -> int:
    """Drop cached user records and deal lists for the given parties"""
    keys = []
    for user_id in user_ids:
        keys.append(user_key(user_id))
        keys.append(user_deals_pattern(user_id))
    return invalidate_cache(keys)

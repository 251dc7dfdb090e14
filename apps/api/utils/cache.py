"""
Redis Caching Utility for the VirtualDoc API
Caches the verified doctor directory. Every operation degrades to a cache
miss when Redis is disabled or unreachable.
"""

import redis
import json
from typing import Optional, Any, List
import logging

logger = logging.getLogger(__name__)


# Cache TTL settings (in seconds)
class CacheTTL:
    DOCTOR_LIST = 180  # 3 minutes


# Cache key prefixes
class CacheKeys:
    DOCTOR_LIST = "virtualdoc:doctors:list:verified"


class RedisCache:
    """Redis cache manager with error handling"""

    def __init__(self, redis_url: Optional[str], enabled: bool = True, client: Optional[redis.Redis] = None):
        self.enabled = enabled
        self._redis_client: Optional[redis.Redis] = client
        if self._redis_client is None and enabled and redis_url:
            try:
                self._redis_client = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5,
                    retry_on_timeout=True
                )
                self._redis_client.ping()
                logger.info("Redis cache connected successfully")
            except redis.RedisError as e:
                logger.warning(f"Redis connection failed: {e}. Caching disabled.")
                self._redis_client = None

    @property
    def is_available(self) -> bool:
        if not self.enabled or self._redis_client is None:
            return False
        try:
            self._redis_client.ping()
            return True
        except redis.RedisError:
            return False

    def get(self, key: str) -> Optional[Any]:
        if not self.is_available:
            return None
        try:
            value = self._redis_client.get(key)
            if value:
                return json.loads(value)
            return None
        except (redis.RedisError, ValueError) as e:
            logger.error(f"Cache get error for key {key}: {e}")
            return None

    def set(self, key: str, value: Any, ttl: int = 300) -> bool:
        if not self.is_available:
            return False
        try:
            serialized = json.dumps(value, default=str)
            self._redis_client.setex(key, ttl, serialized)
            return True
        except (redis.RedisError, TypeError) as e:
            logger.error(f"Cache set error for key {key}: {e}")
            return False

    def delete(self, key: str) -> bool:
        if not self.is_available:
            return False
        try:
            self._redis_client.delete(key)
            return True
        except redis.RedisError as e:
            logger.error(f"Cache delete error for key {key}: {e}")
            return False

    def close(self) -> None:
        if self._redis_client is not None:
            self._redis_client.close()


class DirectoryCache:
    """Verified-doctor directory entries (the empty-query search result)"""

    def __init__(self, cache: RedisCache):
        self.cache = cache

    def get_verified_list(self) -> Optional[List[dict]]:
        return self.cache.get(CacheKeys.DOCTOR_LIST)

    def set_verified_list(self, doctors_data: List[dict]) -> bool:
        return self.cache.set(CacheKeys.DOCTOR_LIST, doctors_data, CacheTTL.DOCTOR_LIST)

    def invalidate_verified_list(self) -> bool:
        """Drop the cached list; call whenever any doctor record changes"""
        return self.cache.delete(CacheKeys.DOCTOR_LIST)

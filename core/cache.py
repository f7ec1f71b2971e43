"""
Redis client manager for ToolTip Companion
Handles connection pooling, artifact/scrape-result caching and health checks
"""

import json
import time
import redis
from typing import Optional, Any
import logging

from config import settings

logger = logging.getLogger(__name__)

SCRAPE_CACHE_PREFIX = "cache:scrape:"


class RedisClient:
    """
    Redis connection manager with connection pooling and retry logic.

    Two clients share the same server: ``client`` decodes responses to str
    (JSON values), ``binary_client`` returns raw bytes (image artifacts).
    """

    def __init__(self, redis_url: Optional[str] = None):
        redis_url = redis_url or settings.REDIS_URL

        try:
            self.pool = redis.ConnectionPool.from_url(
                redis_url,
                max_connections=20,
                decode_responses=True,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            self.binary_pool = redis.ConnectionPool.from_url(
                redis_url,
                max_connections=10,
                decode_responses=False,
                socket_timeout=5,
                socket_connect_timeout=5,
                retry_on_timeout=True,
            )
            self.client = redis.Redis(connection_pool=self.pool)
            self.binary_client = redis.Redis(connection_pool=self.binary_pool)

            # Test connection
            self.client.ping()
            logger.info(f"✅ Redis connected successfully: {redis_url}")
        except redis.ConnectionError as e:
            logger.error(f"❌ Redis connection failed: {str(e)}")
            raise RuntimeError(f"Failed to connect to Redis: {str(e)}")

    def ping(self) -> bool:
        """Check if Redis is available"""
        try:
            return self.client.ping()
        except redis.ConnectionError:
            return False

    def set(
        self,
        key: str,
        value: Any,
        ttl: Optional[int] = None
    ) -> bool:
        """
        Store a value in Redis with optional TTL (Time To Live).

        Args:
            key: Redis key
            value: Value to store (will be JSON-encoded if not a string)
            ttl: Time to live in seconds (None = no expiration)

        Returns:
            True if successful
        """
        try:
            if not isinstance(value, str):
                value = json.dumps(value)

            if ttl:
                return bool(self.client.setex(key, ttl, value))
            else:
                return bool(self.client.set(key, value))
        except Exception as e:
            logger.error(f"Redis SET failed for key '{key}': {str(e)}")
            return False

    def get(self, key: str, decode_json: bool = True) -> Optional[Any]:
        """
        Retrieve a value from Redis.

        Args:
            key: Redis key
            decode_json: If True, attempt to JSON-decode the value

        Returns:
            Value if found, None otherwise
        """
        try:
            value = self.client.get(key)

            if value is None:
                return None

            if decode_json:
                try:
                    return json.loads(value)
                except (json.JSONDecodeError, TypeError):
                    return value

            return value
        except Exception as e:
            logger.error(f"Redis GET failed for key '{key}': {str(e)}")
            return None

    def set_bytes(self, key: str, data: bytes, ttl: Optional[int] = None) -> bool:
        """Store raw bytes (image artifacts) with optional TTL"""
        try:
            if ttl:
                return bool(self.binary_client.setex(key, ttl, data))
            return bool(self.binary_client.set(key, data))
        except Exception as e:
            logger.error(f"Redis SET (bytes) failed for key '{key}': {str(e)}")
            return False

    def get_bytes(self, key: str) -> Optional[bytes]:
        """Retrieve raw bytes, None if missing"""
        try:
            return self.binary_client.get(key)
        except Exception as e:
            logger.error(f"Redis GET (bytes) failed for key '{key}': {str(e)}")
            return None

    def count_keys(self, pattern: str) -> int:
        """Count keys matching a pattern without blocking the server"""
        try:
            return sum(1 for _ in self.client.scan_iter(match=pattern, count=500))
        except Exception as e:
            logger.error(f"Redis SCAN failed for pattern '{pattern}': {str(e)}")
            return 0

    def cache_scrape_result(self, url: str, result: dict, ttl: int = settings.CACHE_TTL) -> bool:
        """
        Cache a proactive scrape result for a URL.

        Args:
            url: Page URL
            result: ScrapeResult as a JSON-compatible dictionary
            ttl: Time to live in seconds

        Returns:
            True if cached successfully
        """
        return self.set(f"{SCRAPE_CACHE_PREFIX}{url}", result, ttl=ttl)

    def get_cached_scrape_result(self, url: str) -> Optional[dict]:
        """Retrieve the cached scrape result for a URL"""
        return self.get(f"{SCRAPE_CACHE_PREFIX}{url}", decode_json=True)

    def clear_cache(self, pattern: str = "cache:*") -> int:
        """
        Clear cached entries matching a pattern.

        Args:
            pattern: Redis key pattern (default: all cache entries)

        Returns:
            Number of keys deleted
        """
        try:
            keys = list(self.client.scan_iter(match=pattern, count=500))
            if keys:
                return self.client.delete(*keys)
            return 0
        except Exception as e:
            logger.error(f"Redis cache clear failed for pattern '{pattern}': {str(e)}")
            return 0

    def get_stats(self) -> dict:
        """
        Get Redis connection and memory stats.

        Returns:
            Dictionary with Redis statistics
        """
        try:
            info = self.client.info()
            return {
                "connected_clients": info.get("connected_clients", 0),
                "used_memory_human": info.get("used_memory_human", "unknown"),
                "total_commands_processed": info.get("total_commands_processed", 0),
                "keyspace": info.get("keyspace", {}),
            }
        except Exception as e:
            logger.error(f"Failed to get Redis stats: {str(e)}")
            return {"error": str(e)}

    def close(self):
        """Close Redis connection pools"""
        try:
            self.pool.disconnect()
            self.binary_pool.disconnect()
            logger.info("Redis connection closed")
        except Exception as e:
            logger.error(f"Error closing Redis connection: {str(e)}")


# Global Redis client instance
redis_client: Optional[RedisClient] = None

REDIS_RETRY_INTERVAL = 30
_redis_unavailable_until = 0.0


def get_redis_client() -> RedisClient:
    """
    Get or create the global Redis client instance.

    Returns:
        RedisClient instance
    """
    global redis_client

    if redis_client is None:
        redis_client = RedisClient()

    return redis_client


def get_optional_redis_client() -> Optional[RedisClient]:
    """
    Like get_redis_client, but returns None when Redis is unreachable so
    callers can treat the cache as a miss. After a failed connection the
    next attempt waits REDIS_RETRY_INTERVAL seconds.
    """
    global _redis_unavailable_until

    if time.monotonic() < _redis_unavailable_until:
        return None

    try:
        return get_redis_client()
    except RuntimeError as e:
        logger.warning(f"⚠️  Redis unavailable, continuing without cache: {str(e)}")
        _redis_unavailable_until = time.monotonic() + REDIS_RETRY_INTERVAL
        return None


def close_redis_client():
    """Close the global Redis client"""
    global redis_client

    if redis_client is not None:
        redis_client.close()
        redis_client = None

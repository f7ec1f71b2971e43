# Core package - Infrastructure components
from .browser import BrowserPool, BrowserUnavailableError, get_browser_pool, close_browser_pool
from .cache import RedisClient, get_redis_client, get_optional_redis_client, close_redis_client

__all__ = [
    # Browser pool
    "BrowserPool",
    "BrowserUnavailableError",
    "get_browser_pool",
    "close_browser_pool",
    # Redis/Cache
    "RedisClient",
    "get_redis_client",
    "get_optional_redis_client",
    "close_redis_client",
]

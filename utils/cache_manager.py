"""Cache manager using diskcache with FanoutCache (SQLite backend).

Caches catalog responses that are requested repeatedly during one
watch session (anime detail is needed for seasons, episode listing,
history records and presence):
- Anime detail
- Episode detail
"""

import functools

from diskcache import FanoutCache

from models.config import settings
from utils.logging import get_logger

logger = get_logger(__name__)

# Cache global (FanoutCache = 4 shards SQLite for concurrency)
_cache = None


def get_cache() -> FanoutCache:
    """Lazy init of global cache."""
    global _cache
    if _cache is None:
        cache_dir = settings.cache.cache_dir
        _cache = FanoutCache(
            directory=str(cache_dir),
            shards=4,
            timeout=1.0,
        )
    return _cache


def default_ttl() -> int:
    """Default TTL in seconds."""
    return settings.cache.duration_hours * 3600


def cache_catalog_response(prefix: str):
    """Decorator caching a catalog method's raw JSON by its positional arguments.

    The wrapped method must return JSON-compatible data (dict/list) or None;
    None and empty results are never cached.

    Example:
        @cache_catalog_response("anime")
        def _fetch_anime_detail(self, slug): ...   # key "anime:<slug>"
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(self, *args):
            key = ":".join([prefix, *(str(a) for a in args)])
            try:
                cached = get_cache().get(key)
            except Exception as e:
                logger.debug(f"Cache read failed for {key}: {e}")
                cached = None

            if cached is not None:
                return cached

            result = func(self, *args)

            if result:
                try:
                    get_cache().set(key, result, expire=default_ttl())
                except Exception as e:
                    logger.debug(f"Cache write failed for {key}: {e}")
            return result

        return wrapper

    return decorator


def clear_cache_all() -> None:
    """Clear entire cache."""
    get_cache().clear()


def clear_cache_by_prefix(prefix: str) -> None:
    """Clear cache entries by prefix.

    Examples:
        clear_cache_by_prefix("anime:frieren")  # Detail of one anime
        clear_cache_by_prefix("episode:")       # Every episode detail
    """
    cache = get_cache()
    keys_to_delete = [key for key in cache if key.startswith(prefix)]
    for key in keys_to_delete:
        cache.delete(key)


def get_cache_stats() -> dict:
    """Get cache statistics."""
    cache = get_cache()
    return {
        "size": len(cache),
        "directory": str(settings.cache.cache_dir),
    }

"""
Caching for introspection lookups.

Pragma and catalog results change only with DDL, so metadata builders keep
them in named cachetools TTLCaches. Writes that touch a table's schema can
clear that table's entries with `Cache.clear_for_table`.
"""
import functools
import logging
import threading

import cachetools

logger = logging.getLogger(__name__)

__all__ = ['Cache', 'cacheable', 'clear_on_ddl']


class Cache:
    """Cache manager for the rqlitedb package.

    Thread-safe singleton that manages all TTL caches.
    """

    _instance = None
    _caches: dict[str, cachetools.TTLCache] = {}
    _lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get singleton instance."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str, maxsize: int = 100, ttl: int = 300) -> cachetools.TTLCache:
        """Get or create a TTL cache with the given name.

        Args:
            name: Name of the cache
            maxsize: Maximum cache size
            ttl: Time-to-live in seconds
        """
        if name not in self._caches:
            with self._lock:
                if name not in self._caches:
                    self._caches[name] = cachetools.TTLCache(maxsize=maxsize, ttl=ttl)
        return self._caches[name]

    def clear_all(self) -> None:
        """Clear all managed caches."""
        with self._lock:
            for cache in self._caches.values():
                cache.clear()

    def clear_cache(self, name: str) -> None:
        """Clear a specific cache by name."""
        with self._lock:
            if name in self._caches:
                self._caches[name].clear()

    def clear_for_table(self, table_name: str) -> None:
        """Clear all cache entries whose key mentions a table.
        """
        table_lower = table_name.lower()
        with self._lock:
            for cache in self._caches.values():
                keys_to_clear = [key for key in list(cache.keys()) if table_lower in str(key).lower()]
                for key in keys_to_clear:
                    cache.pop(key, None)
                    logger.debug(f'Cleared cache entry {key} for table {table_name}')


def _create_cache_key(scope: str, args: tuple, kwargs: dict) -> str:
    """Create a deterministic cache key from a scope and call arguments."""
    args_str = ':'.join(repr(arg) for arg in args)
    kwargs_str = ':'.join(f'{k}={v!r}' for k, v in sorted(kwargs.items()))
    return f'{scope}:{args_str}:{kwargs_str}'.lower()


def cacheable(cache_name: str, ttl: int = 300, maxsize: int = 100):
    """Decorator caching a method's result per instance scope and arguments.

    The instance supplies `cache_scope` (e.g. the node address) so two
    clusters never share entries. Passing `bypass_cache=True` skips the
    lookup and refreshes the stored value.
    """
    def decorator(method):
        @functools.wraps(method)
        def wrapper(self, *args, bypass_cache=False, **kwargs):
            cache = Cache.get_instance().get_cache(cache_name, maxsize=maxsize, ttl=ttl)
            key = _create_cache_key(f'{self.cache_scope}:{method.__name__}', args, kwargs)

            if not bypass_cache and key in cache:
                logger.debug(f'Cache hit for {method.__name__}{args}')
                return cache[key]

            logger.debug(f'Cache {"bypass" if bypass_cache else "miss"} for {method.__name__}{args}')
            result = method(self, *args, **kwargs)
            cache[key] = result
            return result

        return wrapper
    return decorator


_DDL_PREFIXES = ('CREATE', 'DROP', 'ALTER')


def clear_on_ddl(statements: list[str]) -> None:
    """Drop cached introspection after schema-changing statements."""
    if any(sql.lstrip().upper().startswith(_DDL_PREFIXES) for sql in statements):
        logger.debug('Schema change detected, clearing introspection caches')
        Cache.get_instance().clear_all()

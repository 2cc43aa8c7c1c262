"""
Metadata caches for the mapping engine.

Every cache is append-only: a type, once described, stays cached for the life
of the owning registry. Reads are lock free, writes are serialized.
"""
import logging
import math
import threading
from collections.abc import Callable, Hashable
from typing import Any

import cachetools

logger = logging.getLogger(__name__)


class Cache:
    """Named, unbounded caches shared by one mapping registry.

    A process-wide instance is available through `get_instance`, but
    components accept any instance so tests can work against a fresh one.
    """

    _instance = None
    _instance_lock = threading.Lock()

    def __init__(self) -> None:
        self._caches: dict[str, cachetools.Cache] = {}
        self._lock = threading.RLock()

    @classmethod
    def get_instance(cls) -> 'Cache':
        """Get the process-wide instance."""
        if cls._instance is None:
            with cls._instance_lock:
                if cls._instance is None:
                    cls._instance = cls()
        return cls._instance

    def get_cache(self, name: str) -> cachetools.Cache:
        """Get or create the cache with the given name.

        Args:
            name: Name of the cache

        Returns
            Unbounded cachetools.Cache instance
        """
        cache = self._caches.get(name)
        if cache is None:
            with self._lock:
                cache = self._caches.get(name)
                if cache is None:
                    cache = cachetools.Cache(maxsize=math.inf)
                    self._caches[name] = cache
        return cache

    def get_or_compute(self, name: str, key: Hashable, factory: Callable[[], Any]) -> Any:
        """Return the cached value for `key`, computing and storing it on a miss.

        The factory runs outside the lock. When two threads race on the same
        key, the first stored value is kept and returned to both.

        Args:
            name: Name of the cache
            key: Cache key
            factory: Zero-argument callable producing the value

        Returns
            The cached value
        """
        cache = self.get_cache(name)
        try:
            return cache[key]
        except KeyError:
            pass

        logger.debug(f'Cache miss in {name} for {key!r}')
        value = factory()
        with self._lock:
            if key in cache:
                return cache[key]
            cache[key] = value
        return value

    def put(self, name: str, key: Hashable, value: Any) -> None:
        """Store a value under the write lock."""
        cache = self.get_cache(name)
        with self._lock:
            cache[key] = value

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

    def clear_for_type(self, entity_type: type) -> None:
        """Drop every entry keyed by the given entity type.

        Args:
            entity_type: Class whose metadata should be forgotten
        """
        with self._lock:
            for name, cache in self._caches.items():
                if entity_type in cache:
                    del cache[entity_type]
                    logger.debug(f'Cleared cache entry {entity_type.__name__} in {name}')

    def discard_where(self, name: str, predicate: Callable[[Any], bool]) -> None:
        """Drop the entries of one cache whose key matches the predicate."""
        cache = self.get_cache(name)
        with self._lock:
            for key in [key for key in cache if predicate(key)]:
                del cache[key]

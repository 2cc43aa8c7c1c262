"""
Mapping registry: the owner of every cache the mapping engine keeps.

Create one at startup and hand it to whatever needs entity metadata, or use
the process default from `get_registry()`. Tests build a fresh registry each.

    registry = MappingRegistry(MappingOptions(default_id_property='key'))
    registry.converters.register(str, Money, Money.parse)

    schema = registry.schema(Account)
    accounts = registry.row_mapper(Account).map_cursor(cursor, 'postgresql')
    changes = registry.scanner(Account).scan_for_changes(stored, submitted)
"""
import logging
import threading
from collections.abc import Mapping

from entitymap.cache import Cache
from entitymap.changes import ChangeScanner
from entitymap.conversion import TypeConverterRegistry
from entitymap.merge import EntityMerger
from entitymap.options import MappingOptions
from entitymap.parameters import ParameterBuilder
from entitymap.properties import PropertyMetadata, discover
from entitymap.row import ROW_PLAN_CACHE, RowMapper
from entitymap.schema import SCHEMA_CACHE, ColumnSchema, build_schema

logger = logging.getLogger(__name__)

COMPONENT_CACHE = 'components'

__all__ = [
    'MappingRegistry',
    'get_registry',
]


class MappingRegistry:
    """Metadata, converters and per-class components behind one set of caches.

    Args:
        options: Mapping options (default: MappingOptions())
        cache: Cache to keep metadata in (default: a new private cache)
    """

    def __init__(self, options: MappingOptions | None = None, cache: Cache | None = None) -> None:
        self.options = options or MappingOptions()
        self.cache = cache if cache is not None else Cache()
        self.converters = TypeConverterRegistry(self.options, self.cache)

    def properties(self, cls: type) -> Mapping[str, PropertyMetadata]:
        return discover(cls, self.cache)

    def schema(self, cls: type) -> ColumnSchema:
        """Column schema of a class, built on first use."""
        return self.cache.get_or_compute(SCHEMA_CACHE, cls, lambda: build_schema(cls, self.converters, self.cache))

    def _component(self, kind: str, cls: type, factory):
        return self.cache.get_or_compute(COMPONENT_CACHE, (kind, cls), factory)

    def row_mapper(self, cls: type) -> RowMapper:
        return self._component('row', cls, lambda: RowMapper(cls, self.schema(cls), self.converters, self.cache))

    def parameters(self, cls: type) -> ParameterBuilder:
        return self._component('parameters', cls, lambda: ParameterBuilder(self.schema(cls), self.converters))

    def scanner(self, cls: type) -> ChangeScanner:
        return self._component('scanner', cls, lambda: ChangeScanner(self.schema(cls), self.parameters(cls)))

    def merger(self, cls: type) -> EntityMerger:
        return self._component('merger', cls, lambda: EntityMerger(self.schema(cls)))

    def forget(self, cls: type) -> None:
        """Drop everything cached for a class."""
        self.cache.clear_for_type(cls)
        self.cache.discard_where(COMPONENT_CACHE, lambda key: key[1] is cls)
        self.cache.discard_where(ROW_PLAN_CACHE, lambda key: key[0] is cls)
        logger.debug(f'Forgot cached metadata of {cls.__name__}')


_default_registry: MappingRegistry | None = None
_default_lock = threading.Lock()


def get_registry() -> MappingRegistry:
    """Get the process-wide registry, backed by the process-wide cache."""
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                _default_registry = MappingRegistry(cache=Cache.get_instance())
    return _default_registry

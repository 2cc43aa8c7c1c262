"""
Tests for the mapping registry and the module-level facades.
"""
from tests.fixtures.entities import Account, SampleEntity

import entitymap
from entitymap import ColumnSchema, MappingOptions, MappingRegistry, get_registry
from entitymap.cache import Cache
from entitymap.registry import COMPONENT_CACHE
from entitymap.row import ROW_PLAN_CACHE
from entitymap.schema import SCHEMA_CACHE


def test_components_are_cached(registry):
    assert registry.schema(Account) is registry.schema(Account)
    assert registry.row_mapper(Account) is registry.row_mapper(Account)
    assert registry.parameters(Account) is registry.parameters(Account)
    assert registry.scanner(Account) is registry.scanner(Account)
    assert registry.merger(Account) is registry.merger(Account)

    assert registry.scanner(Account).parameters is registry.parameters(Account)
    assert registry.row_mapper(Account).schema is registry.schema(Account)
    assert registry.properties(Account) is registry.schema(Account).properties


def test_registries_are_isolated():
    first, second = MappingRegistry(), MappingRegistry()
    assert first.schema(Account) is not second.schema(Account)
    assert first.cache is not second.cache


def test_options_reach_components():
    registry = MappingRegistry(MappingOptions(default_id_property='s'))
    assert registry.converters.options is registry.options
    assert registry.schema(SampleEntity).id_column == 's'


def test_forget(registry):
    schema = registry.schema(Account)
    registry.row_mapper(Account).map_row(['id'], (1,))
    registry.schema(SampleEntity)

    registry.forget(Account)

    assert Account not in registry.cache.get_cache(SCHEMA_CACHE)
    assert SampleEntity in registry.cache.get_cache(SCHEMA_CACHE)
    assert not any(key[1] is Account for key in registry.cache.get_cache(COMPONENT_CACHE))
    assert not any(key[0] is Account for key in registry.cache.get_cache(ROW_PLAN_CACHE))
    assert registry.schema(Account) is not schema


def test_default_registry():
    registry = get_registry()
    assert registry is get_registry()
    assert registry.cache is Cache.get_instance()


def test_get_schema_facade():
    schema = entitymap.get_schema(Account)
    assert isinstance(schema, ColumnSchema)
    assert schema is get_registry().schema(Account)
    assert schema.table_name == 'accounts'


if __name__ == '__main__':
    __import__('pytest').main([__file__])

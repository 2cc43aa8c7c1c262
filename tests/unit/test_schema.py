"""
Tests for column schema derivation.
"""
import logging
from decimal import Decimal
from typing import Annotated

import pytest
from tests.fixtures.entities import Account, SampleEntity, SampleEnum, Status

from entitymap import Column, ConfigurationError, CopyBehavior, Id, MappingOptions
from entitymap import TypeConverterRegistry, build_schema, camel_to_snake, snake_to_camel
from entitymap.conversion import ENUM_CACHE
from entitymap.schema import describe


def test_conventional_columns():
    """Unmarked properties map to their snake_case names"""
    schema = build_schema(SampleEntity)

    assert schema.column_for('s') == 's'
    assert schema.column_for('most_recent_non_null') == 'most_recent_non_null'
    assert schema.column_for('not_my_column_name') == 'renamed'
    assert schema.column_for('obeys_updatable') == 'not_updatable'
    assert schema.property_for('renamed').name == 'not_my_column_name'
    assert schema.property_for('nope') is None
    assert len(schema.columns) == 13


def test_insertable_and_updatable_columns_are_sorted():
    schema = build_schema(SampleEntity)

    assert list(schema.insertable_columns) == sorted(schema.columns)
    assert 'not_updatable' in schema.insertable_columns
    assert 'not_updatable' not in schema.updatable_columns
    assert list(schema.updatable_columns) == sorted(set(schema.columns) - {'not_updatable'})


def test_missing_id_falls_back_to_default(caplog):
    with caplog.at_level(logging.WARNING):
        schema = build_schema(SampleEntity)

    assert schema.id_property == 'id'
    assert schema.id_column == 'id'
    assert 'No Id marker' in caplog.text


def test_default_id_property_from_options():
    converters = TypeConverterRegistry(MappingOptions(default_id_property='s'))
    schema = build_schema(SampleEntity, converters)
    assert schema.id_property == 's'
    assert schema.id_column == 's'


def test_marked_entity():
    schema = build_schema(Account)

    assert schema.table_name == 'accounts'
    assert schema.id_property == 'account_id'
    assert schema.id_column == 'id'
    assert schema.column_for('displayName') == 'display_name'
    assert schema.column_for('scratch') is None
    assert 'registry_name' not in schema.columns_by_property

    assert schema.insertable_columns == ('balance', 'color', 'created', 'display_name', 'id', 'opened', 'status')
    assert schema.updatable_columns == ('balance', 'color', 'display_name', 'id', 'opened', 'status')


def test_table_name_from_class_name():
    assert build_schema(SampleEntity).table_name == 'sample_entity'


def test_copy_behavior_defaults():
    schema = build_schema(Account)
    assert schema.copy_behavior('created') is CopyBehavior.TAKE_ORIGINAL
    assert schema.copy_behavior('balance') is CopyBehavior.MOST_RECENT_NON_NULL

    converters = TypeConverterRegistry(MappingOptions(default_copy_behavior=CopyBehavior.TAKE_UPDATED))
    schema = build_schema(Account, converters)
    assert schema.copy_behavior('balance') is CopyBehavior.TAKE_UPDATED
    assert schema.copy_behavior('created') is CopyBehavior.TAKE_ORIGINAL


def test_enum_properties_are_registered():
    converters = TypeConverterRegistry()
    build_schema(Account, converters)
    build_schema(SampleEntity, converters)

    registered = converters.cache.get_cache(ENUM_CACHE)
    assert Status in registered
    assert SampleEnum in registered
    assert converters.convert(10, Status) is Status.ACTIVE


def test_column_marker_without_name(caplog):
    class Item:
        itemCode: Annotated[str | None, Column(updatable=False)] = None
        hidden: Annotated[str | None, Column(insertable=False)] = None

    with caplog.at_level(logging.INFO):
        schema = build_schema(Item)

    assert schema.column_for('itemCode') == 'item_code'
    assert 'item_code' in schema.insertable_columns
    assert 'item_code' not in schema.updatable_columns
    assert 'hidden' not in schema.insertable_columns
    assert 'hidden' not in schema.updatable_columns
    assert 'has no name' in caplog.text


def test_duplicate_columns_rejected():
    class Clash:
        a: Annotated[str | None, Column(name='b')] = None
        b: str | None = None

    with pytest.raises(ConfigurationError) as exc_info:
        build_schema(Clash)

    assert '"b"' in str(exc_info.value)


def test_storage_types():
    class Priced:
        id: Annotated[int | None, Id()] = None
        amount: Annotated[Decimal | None, Column(storage_type=str)] = None

    schema = build_schema(Priced)
    assert dict(schema.storage_types) == {'amount': str}


def test_storage_type_needs_converters_both_ways():
    class Broken:
        id: Annotated[int | None, Id()] = None
        payload: Annotated[int | None, Column(storage_type=bytes)] = None

    with pytest.raises(ConfigurationError):
        build_schema(Broken)


def test_multiple_ids_use_first(caplog):
    class TwoIds:
        first: Annotated[int | None, Id()] = None
        second: Annotated[int | None, Id()] = None

    with caplog.at_level(logging.WARNING):
        schema = build_schema(TwoIds)

    assert schema.id_property == 'first'
    assert 'Multiple Id markers' in caplog.text


def test_describe():
    info = describe(build_schema(Account))
    assert info['entity'] == 'Account'
    assert info['table'] == 'accounts'
    assert info['id'] == 'id'
    assert info['columns']['displayName'] == 'display_name'
    assert 'created' not in info['updatable']


@pytest.mark.parametrize(('name', 'expected'), [
    ('displayName', 'display_name'),
    ('notMyColumnName', 'not_my_column_name'),
    ('SampleEntity', 'sample_entity'),
    ('HTTPResponse', 'http_response'),
    ('value2Name', 'value2_name'),
    ('plain', 'plain'),
])
def test_camel_to_snake(name, expected):
    assert camel_to_snake(name) == expected


@pytest.mark.parametrize(('name', 'expected'), [
    ('display_name', 'displayName'),
    ('not_my_column_name', 'notMyColumnName'),
    ('EXTRA_VALUE', 'extraValue'),
    ('plain', 'plain'),
])
def test_snake_to_camel(name, expected):
    assert snake_to_camel(name) == expected


if __name__ == '__main__':
    __import__('pytest').main([__file__])

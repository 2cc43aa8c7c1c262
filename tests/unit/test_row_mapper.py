"""
Tests for materializing entities from result rows.
"""
import datetime
import logging
import sqlite3
from collections import namedtuple
from decimal import Decimal
from typing import Any

import pandas as pd
import pytest
from tests.fixtures.entities import Account, Color, Extensible, NeedsArgs
from tests.fixtures.entities import SampleEntity, Status

import entitymap
from entitymap import ColumnInfo, RowMappingError
from entitymap.row import ROW_PLAN_CACHE


def test_map_cursor(registry, sqlite_accounts):
    """Undeclared SQLite columns are converted from their runtime types"""
    cursor = sqlite_accounts.execute('select * from accounts order by id')
    ann, bob = registry.row_mapper(Account).map_cursor(cursor, 'sqlite')

    assert ann.account_id == 1
    assert ann.displayName == 'Ann'
    assert ann.balance == Decimal('12.50')
    assert ann.opened == datetime.date(2023, 5, 15)
    assert ann.status is Status.ACTIVE
    assert ann.color is Color.GREEN
    assert ann.created == datetime.datetime(2023, 5, 15, 14, 30, tzinfo=datetime.timezone.utc)
    assert ann.scratch is None

    assert bob.balance is None
    assert bob.opened == datetime.date(2023, 5, 16)
    assert bob.status is Status.RETIRED
    assert bob.color is Color.RED
    assert bob.created is None


def test_map_cursor_without_results(registry, sqlite_accounts):
    cursor = sqlite_accounts.execute("update accounts set extra = 'z'")
    assert registry.row_mapper(Account).map_cursor(cursor, 'sqlite') == []


def test_map_sqlite_rows(registry, sqlite_accounts):
    sqlite_accounts.row_factory = sqlite3.Row
    rows = sqlite_accounts.execute('select display_name, id from accounts order by id').fetchall()

    accounts = registry.row_mapper(Account).map_rows(['display_name', 'id'], rows)
    assert [(a.account_id, a.displayName) for a in accounts] == [(1, 'Ann'), (2, 'Bob')]


def test_map_dict_and_namedtuple_rows(registry):
    mapper = registry.row_mapper(Account)

    account = mapper.map_row(['id', 'display_name'], {'display_name': 'Cy', 'id': 3})
    assert (account.account_id, account.displayName) == (3, 'Cy')

    Row = namedtuple('Row', ['id', 'color'])
    account = mapper(['id', 'color'], Row(4, 'red'))
    assert (account.account_id, account.color) == (4, Color.RED)


def test_declared_column_types(registry):
    columns = [ColumnInfo('id', python_type=int), ColumnInfo('balance', python_type=str)]
    account = registry.row_mapper(Account).map_row(columns, (5, '99.95'))
    assert account.balance == Decimal('99.95')


def test_null_values_keep_defaults(registry):
    entity = registry.row_mapper(SampleEntity).map_row(['i', 's', 'l'], (None, 'x', float('nan')))
    assert entity.i == 0
    assert entity.s == 'x'
    assert entity.l is None


def test_unmapped_columns_are_discarded_once(registry, caplog):
    mapper = registry.row_mapper(Account)

    with caplog.at_level(logging.WARNING):
        mapper.map_rows(['id', 'extra'], [(1, 'x'), (2, 'y'), (3, 'z')])

    warnings = [r for r in caplog.records if 'Column extra has no property' in r.getMessage()]
    assert len(warnings) == 1


def test_unmapped_columns_go_to_container(registry):
    entity = registry.row_mapper(Extensible).map_row(['id', 'name', 'nickname'], (1, 'Alfred', 'Al'))

    assert entity.id == 1
    assert entity.name == 'Alfred'
    assert entity.get('nickname') == 'Al'
    assert entity.as_dict() == {'nickname': 'Al'}


def test_unmapped_columns_are_stored_by_property_name(registry):
    entity = registry.row_mapper(Extensible).map_row(['id', 'extra_value'], (1, 'x'))

    assert entity.get('extraValue') == 'x'
    assert entity.as_dict() == {'extraValue': 'x'}


def test_conversion_failure(registry, caplog):
    mapper = registry.row_mapper(Account)

    with caplog.at_level(logging.ERROR), pytest.raises(RowMappingError) as exc_info:
        mapper.map_row(['id', 'balance'], (1, 'abc'))

    error = exc_info.value
    assert error.entity_type is Account
    assert error.column == 'balance'
    assert error.value == 'abc'
    assert 'balance' in caplog.text


def test_unknown_enum_identifier_fails(registry):
    with pytest.raises(RowMappingError) as exc_info:
        registry.row_mapper(Account).map_row(['status'], (99,))
    assert exc_info.value.column == 'status'


def test_construction_failure(registry):
    with pytest.raises(RowMappingError) as exc_info:
        registry.row_mapper(NeedsArgs).map_row(['id'], (1,))
    assert exc_info.value.column is None


def test_missing_converter_sets_raw_value(registry, caplog):
    """Without a converter the value is set as is, with a warning"""
    class Holder:
        payload: Decimal | None = None
        anything: Any = None

    with caplog.at_level(logging.WARNING):
        holder = registry.row_mapper(Holder).map_row(['payload', 'anything'], (b'raw', b'raw'))

    assert holder.payload == b'raw'
    assert holder.anything == b'raw'
    assert 'No converter found for column payload' in caplog.text
    assert 'column anything' not in caplog.text


def test_plans_are_cached_per_shape(registry):
    mapper = registry.row_mapper(Account)
    plans = registry.cache.get_cache(ROW_PLAN_CACHE)

    mapper.map_rows(['id', 'display_name'], [(1, 'a'), (2, 'b')])
    assert len(plans) == 1

    mapper.map_row(['id', 'display_name'], (3, 'c'))
    assert len(plans) == 1

    mapper.map_row([('id', int), ('display_name', str)], (4, 'd'))
    assert len(plans) == 2


def test_column_types_resolved_per_runtime_type(registry):
    """A column of unknown type may deliver different types per row"""
    mapper = registry.row_mapper(Account)
    first, second = mapper.map_rows(['balance'], [('1.25',), (2,)])
    assert first.balance == Decimal('1.25')
    assert second.balance == Decimal(2)


def test_map_frame(registry):
    df = pd.DataFrame({
        'id': [1, 2],
        'display_name': ['Ann', None],
        'balance': [1.5, float('nan')],
        'created': pd.to_datetime(['2023-05-15 14:30:00', None]),
    })

    ann, bob = registry.row_mapper(Account).map_frame(df)

    assert ann.account_id == 1
    assert ann.balance == Decimal('1.5')
    assert ann.created == datetime.datetime(2023, 5, 15, 14, 30)
    assert bob.displayName is None
    assert bob.balance is None
    assert bob.created is None


def test_map_frame_nullable_integers(registry):
    """Integer columns holding nulls reach the mapper as floats"""
    df = pd.DataFrame({'id': [1, None], 'status': [10, None]})

    first, second = registry.row_mapper(Account).map_frame(df)

    assert first.account_id == 1
    assert type(first.account_id) is int
    assert first.status is Status.ACTIVE
    assert second.account_id is None
    assert second.status is None


def test_map_frame_rejects_fractional_identifiers(registry):
    df = pd.DataFrame({'id': [1.5]})
    with pytest.raises(RowMappingError) as exc_info:
        registry.row_mapper(Account).map_frame(df)
    assert exc_info.value.column == 'id'


def test_facade_uses_default_registry(sqlite_accounts):
    cursor = sqlite_accounts.execute('select id, display_name from accounts order by id')
    accounts = entitymap.map_cursor(Account, cursor, 'sqlite')
    assert [a.displayName for a in accounts] == ['Ann', 'Bob']

    account = entitymap.map_row(Account, ['id'], (9,))
    assert account.account_id == 9


@pytest.mark.parametrize('value', [None, float('nan'), pd.NaT])
def test_null_values_are_skipped(registry, value):
    entity = registry.row_mapper(SampleEntity).map_row(['i'], (value,))
    assert entity.i == 0


def test_list_values_are_not_null(registry):
    class Tagged:
        id: int | None = None
        tag_ids: list[int] | None = None

    mapper = registry.row_mapper(Tagged)
    assert mapper.map_row(['id', 'tag_ids'], (1, [4, 5])).tag_ids == [4, 5]
    assert mapper.map_row(['id', 'tag_ids'], (2, '4, 5')).tag_ids == [4, 5]


if __name__ == '__main__':
    __import__('pytest').main([__file__])

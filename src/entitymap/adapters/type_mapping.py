"""
Type resolution for result columns.

Maps the type code a driver reports in `cursor.description` to the Python
type its values arrive as. This module only identifies types; conversion into
entity property types belongs to the converter registry.

A code that cannot be resolved gives None, and row mapping then resolves the
column from the runtime type of its values.
"""
import datetime
import logging
from decimal import Decimal
from typing import Any

from psycopg.postgres import types

logger = logging.getLogger(__name__)

__all__ = [
    'postgres_types',
    'sqlite_types',
    'register_type',
    'resolve_type',
]

oid = lambda x: types.get(x).oid
aoid = lambda x: types.get(x).array_oid

postgres_types: dict[Any, type] = {}
for v in [
    oid('"char"'),
    oid('bpchar'),
    oid('varchar'),
    oid('json'),
    oid('name'),
    oid('text'),
]:
    postgres_types[v] = str
for v in [
    oid('int2'),
    oid('int4'),
    oid('int8'),
    oid('oid'),
]:
    postgres_types[v] = int
for v in [oid('float4'), oid('float8')]:
    postgres_types[v] = float
postgres_types[oid('numeric')] = Decimal
postgres_types[oid('date')] = datetime.date
for v in [oid('time'), oid('timetz')]:
    postgres_types[v] = datetime.time
for v in [oid('timestamp'), oid('timestamptz')]:
    postgres_types[v] = datetime.datetime
postgres_types[oid('interval')] = datetime.timedelta
postgres_types[oid('bool')] = bool
postgres_types[oid('bytea')] = bytes
for k in tuple(postgres_types):
    postgres_types[aoid(k)] = list


sqlite_types: dict[Any, type] = {
    'INTEGER': int,
    'INT': int,
    'BIGINT': int,
    'REAL': float,
    'DOUBLE': float,
    'FLOAT': float,
    'TEXT': str,
    'VARCHAR': str,
    'BLOB': bytes,
    'NUMERIC': Decimal,
    'DECIMAL': Decimal,
    'BOOLEAN': bool,
    'DATE': datetime.date,
    'DATETIME': datetime.datetime,
    'TIMESTAMP': datetime.datetime,
    'TIME': datetime.time,
    }

_type_maps: dict[str, dict[Any, type]] = {
    'postgresql': postgres_types,
    'sqlite': sqlite_types,
    }


def register_type(connection_type: str, type_code: Any, python_type: type) -> None:
    """Teach the resolver a driver type code, e.g. a custom Postgres domain's OID.

    Args:
        connection_type: Database type ('postgresql', 'sqlite')
        type_code: Type code as reported in cursor.description
        python_type: Python type the driver returns for it
    """
    _type_maps.setdefault(connection_type, {})[type_code] = python_type
    logger.debug(f'Registered {connection_type} type code {type_code!r} as {python_type.__name__}')


def resolve_type(connection_type: str, type_code: Any) -> type | None:
    """Resolve a driver type code to a Python type.

    SQLite reports declared type names, which are matched on their base name
    (`VARCHAR(20)` resolves as `VARCHAR`).

    Args:
        connection_type: Database type ('postgresql', 'sqlite')
        type_code: Database-specific type code, or a Python type

    Returns
        Python type, or None when the code is unknown

    >>> resolve_type('sqlite', 'varchar(20)')
    <class 'str'>
    >>> resolve_type('postgresql', 1700)
    <class 'decimal.Decimal'>
    >>> resolve_type('sqlite', None) is None
    True
    """
    if isinstance(type_code, type):
        return type_code
    if type_code is None:
        return None

    type_map = _type_maps.get(connection_type)
    if type_map is None:
        logger.warning(f'Unknown database type: {connection_type}')
        return None

    if isinstance(type_code, str):
        type_code = type_code.split('(')[0].strip().upper()

    try:
        return type_map.get(type_code)
    except TypeError:
        return None

"""
Entity/column mapping for relational persistence.

Plain classes describe tables; this package derives their column schema,
turns result rows into instances, and turns pairs of instances into the
column changes and parameters of an UPDATE.

All operations can be called either as:
- Module functions on the process-wide registry: entitymap.map_row(Account, cols, row)
- MappingRegistry methods: registry.row_mapper(Account).map_row(cols, row)

The module functions are facades over `get_registry()`.
"""
__version__ = '0.1.0'

from typing import Any

from entitymap.adapters import ColumnInfo, columns_from_cursor_description
from entitymap.cache import Cache
from entitymap.changes import ChangeKind, ChangeScanner, ColumnChange
from entitymap.conversion import IdentifiedEnumMapper, TypeConverterRegistry
from entitymap.exceptions import AccessError, ConfigurationError, ConversionError
from entitymap.exceptions import EntityCopyError, InvalidArgumentError, MappingError
from entitymap.exceptions import QueryConstructionError, RowMappingError
from entitymap.markers import Column, CopyBehavior, Id, Identified, Transient
from entitymap.merge import EntityMerger, are_equivalent, clean_up_empty_strings
from entitymap.merge import to_trimmed_or_null
from entitymap.options import MappingOptions
from entitymap.parameters import ParameterBuilder
from entitymap.properties import MapBackedPropertyContainer, ObjectBackedPropertyContainer
from entitymap.properties import PropertyContainer, PropertyMetadata, discover
from entitymap.registry import MappingRegistry, get_registry
from entitymap.row import RowMapper
from entitymap.schema import ColumnSchema, build_schema, camel_to_snake
from entitymap.schema import snake_to_camel


def get_schema(cls: type) -> ColumnSchema:
    """Get the column schema of an entity class.
    """
    return get_registry().schema(cls)


def map_row(cls: type, columns: list[Any], row: Any) -> Any:
    """Create an entity from one result row.
    """
    return get_registry().row_mapper(cls).map_row(columns, row)


def map_cursor(cls: type, cursor: Any, connection_type: str) -> list[Any]:
    """Fetch and map every remaining row of an executed cursor.
    """
    return get_registry().row_mapper(cls).map_cursor(cursor, connection_type)


def scan_for_changes(existing: Any, updated: Any, delete_override: bool = False) -> dict[str, ColumnChange]:
    """Column changes turning `existing` into `updated`.

    The entity class is taken from whichever argument is not None.
    """
    cls = type(existing if existing is not None else updated)
    return get_registry().scanner(cls).scan_for_changes(existing, updated, delete_override)


def merge_entities(existing: Any, updated: Any) -> Any:
    """Merge two versions of an entity into a new instance.
    """
    cls = type(existing if existing is not None else updated)
    return get_registry().merger(cls).merge(existing, updated)


def insert_parameters(entity: Any) -> dict[str, Any]:
    """Bound parameters for inserting an entity.
    """
    return get_registry().parameters(type(entity)).insert_parameters(entity)


def update_parameters(entity: Any) -> dict[str, Any]:
    """Bound parameters for updating every updatable column of an entity.
    """
    return get_registry().parameters(type(entity)).update_parameters(entity)


__all__ = [
    'get_schema',
    'map_row',
    'map_cursor',
    'scan_for_changes',
    'merge_entities',
    'insert_parameters',
    'update_parameters',
    'get_registry',
    'MappingRegistry',
    'MappingOptions',
    'Cache',
    'Column',
    'Id',
    'Transient',
    'CopyBehavior',
    'Identified',
    'PropertyMetadata',
    'PropertyContainer',
    'MapBackedPropertyContainer',
    'ObjectBackedPropertyContainer',
    'discover',
    'TypeConverterRegistry',
    'IdentifiedEnumMapper',
    'ColumnSchema',
    'build_schema',
    'camel_to_snake',
    'snake_to_camel',
    'ColumnInfo',
    'columns_from_cursor_description',
    'RowMapper',
    'ChangeKind',
    'ChangeScanner',
    'ColumnChange',
    'EntityMerger',
    'ParameterBuilder',
    'are_equivalent',
    'clean_up_empty_strings',
    'to_trimmed_or_null',
    'MappingError',
    'ConfigurationError',
    'ConversionError',
    'InvalidArgumentError',
    'AccessError',
    'RowMappingError',
    'QueryConstructionError',
    'EntityCopyError',
]

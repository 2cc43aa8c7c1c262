"""
Column schema derivation for entity classes.

Properties map to columns by convention (snake_case of the property name)
unless a `Column` marker says otherwise:

    class Account:
        __tablename__ = 'accounts'

        account_id: Annotated[int | None, Id(), Column(name='id')] = None
        displayName: str | None = None            # -> display_name
        created: Annotated[datetime | None, Column(updatable=False)] = None
        scratch: Annotated[str | None, Transient()] = None

    schema = build_schema(Account)
    schema.updatable_columns        # ('display_name', 'id')
"""
import dataclasses
import enum
import logging
import re
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any

from entitymap.cache import Cache
from entitymap.conversion import TypeConverterRegistry
from entitymap.exceptions import ConfigurationError
from entitymap.markers import Column, CopyBehavior, Id, Transient
from entitymap.properties import PropertyMetadata, discover

logger = logging.getLogger(__name__)

SCHEMA_CACHE = 'schemas'

__all__ = [
    'ColumnSchema',
    'build_schema',
    'camel_to_snake',
    'describe',
    'snake_to_camel',
]

_WORD_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])')


def camel_to_snake(name: str) -> str:
    """Convert a camelCase name to its snake_case column name.

    >>> camel_to_snake('notMyColumnName')
    'not_my_column_name'
    >>> camel_to_snake('HTTPResponse')
    'http_response'
    >>> camel_to_snake('already_snake')
    'already_snake'
    """
    return _WORD_BOUNDARY.sub('_', name).lower()


def snake_to_camel(name: str) -> str:
    """Convert a snake_case column name to its camelCase property name.

    >>> snake_to_camel('extra_value')
    'extraValue'
    >>> snake_to_camel('NICK_NAME')
    'nickName'
    """
    words = [word for word in name.lower().split('_') if word]
    if not words:
        return name
    return words[0] + ''.join(word.capitalize() for word in words[1:])


@dataclasses.dataclass(frozen=True, eq=False)
class ColumnSchema:
    """Column layout of one entity class.

    `insertable_columns` and `updatable_columns` are sorted by column name;
    `storage_types` only holds columns with an explicit storage type.
    """
    entity_type: type
    table_name: str
    id_property: str
    id_column: str
    columns_by_property: Mapping[str, str]
    properties_by_column: Mapping[str, str]
    insertable_columns: tuple[str, ...]
    updatable_columns: tuple[str, ...]
    storage_types: Mapping[str, type]
    properties: Mapping[str, PropertyMetadata]
    default_copy_behavior: CopyBehavior = CopyBehavior.MOST_RECENT_NON_NULL

    @property
    def columns(self) -> tuple[str, ...]:
        return tuple(self.columns_by_property.values())

    def column_for(self, property_name: str) -> str | None:
        return self.columns_by_property.get(property_name)

    def property_for(self, column_name: str) -> PropertyMetadata | None:
        """Property mapped to a column, or None for unmapped columns."""
        name = self.properties_by_column.get(column_name)
        return None if name is None else self.properties[name]

    def copy_behavior(self, property_name: str) -> CopyBehavior:
        """The property's CopyBehavior marker, else the default policy."""
        return self.properties[property_name].get_annotation(CopyBehavior, self.default_copy_behavior)

    def __repr__(self) -> str:
        return (f'ColumnSchema({self.entity_type.__name__}, table={self.table_name!r}, '
                f'id={self.id_column!r}, columns={list(self.columns)})')


def _verify_storage_type(cls: type, prop: PropertyMetadata, storage_type: type,
                         converters: TypeConverterRegistry) -> None:
    for source, target in ((prop.value_type, storage_type), (storage_type, prop.value_type)):
        if converters.get_converter(source, target) is None:
            raise ConfigurationError(f'{cls.__name__}.{prop.name} declares storage type '
                                     f'{storage_type.__name__} but no converter exists for '
                                     f'{source.__name__} --> {target.__name__}')


def _resolve_id(cls: type, properties: Mapping[str, PropertyMetadata], default: str) -> str:
    ids = [name for name, prop in properties.items() if prop.has_annotation(Id)]
    if not ids:
        logger.warning(f'No Id marker found on any property of {cls.__name__}; assuming "{default}"')
        return default
    if len(ids) > 1:
        logger.warning(f'Multiple Id markers found on {cls.__name__} {ids}; using "{ids[0]}"')
    return ids[0]


def build_schema(cls: type, converters: TypeConverterRegistry | None = None,
                 cache: Cache | None = None) -> ColumnSchema:
    """Derive the column schema of an entity class.

    Args:
        cls: Entity class
        converters: Registry used to verify declared storage types and to
                    register the identifiers of enum-typed properties
        cache: Cache holding discovered properties

    Returns
        ColumnSchema for the class

    Raises
        ConfigurationError: if two properties share a column, or a declared
                            storage type cannot be converted both ways
    """
    converters = converters or TypeConverterRegistry()
    options = converters.options
    properties = discover(cls, cache)

    columns: dict[str, str] = {}
    insertable: set[str] = set()
    updatable: set[str] = set()
    storage_types: dict[str, type] = {}

    for name, prop in properties.items():
        if name == 'class' or prop.has_annotation(Transient) or prop.has_annotation(Column):
            continue
        column = camel_to_snake(name)
        columns[name] = column
        insertable.add(column)
        updatable.add(column)

    for name, prop in properties.items():
        marker = prop.get_annotation(Column)
        if marker is None or name == 'class':
            continue
        column = marker.name
        if not column:
            column = camel_to_snake(name)
            logger.info(f'Column marker on {cls.__name__}.{name} has no name; using "{column}"')
        columns[name] = column
        if marker.insertable:
            insertable.add(column)
            if marker.updatable:
                updatable.add(column)
        if marker.storage_type is not None:
            _verify_storage_type(cls, prop, marker.storage_type, converters)
            storage_types[column] = marker.storage_type

    by_column: dict[str, str] = {}
    for name, column in columns.items():
        if column in by_column:
            raise ConfigurationError(f'{cls.__name__} maps both {by_column[column]} and {name} '
                                     f'to column "{column}"')
        by_column[column] = name

    for name in columns:
        value_type = properties[name].value_type
        if isinstance(value_type, type) and issubclass(value_type, enum.Enum):
            converters.register_identified_enum(value_type)

    id_property = _resolve_id(cls, properties, options.default_id_property)
    id_column = columns.get(id_property) or camel_to_snake(id_property)
    table_name = getattr(cls, '__tablename__', None) or camel_to_snake(cls.__name__)

    schema = ColumnSchema(
        entity_type=cls,
        table_name=table_name,
        id_property=id_property,
        id_column=id_column,
        columns_by_property=MappingProxyType(columns),
        properties_by_column=MappingProxyType(by_column),
        insertable_columns=tuple(sorted(insertable)),
        updatable_columns=tuple(sorted(updatable)),
        storage_types=MappingProxyType(storage_types),
        properties=properties,
        default_copy_behavior=options.default_copy_behavior,
    )
    logger.debug(f'Built {schema!r}')
    return schema


def describe(schema: ColumnSchema) -> dict[str, Any]:
    """Plain-data view of a schema for logging and diagnostics."""
    return {
        'entity': schema.entity_type.__name__,
        'table': schema.table_name,
        'id': schema.id_column,
        'columns': dict(schema.columns_by_property),
        'insertable': list(schema.insertable_columns),
        'updatable': list(schema.updatable_columns),
    }

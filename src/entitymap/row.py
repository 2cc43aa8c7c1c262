"""
Materializing entities from result rows.

A RowMapper turns rows into instances of one entity class. The converters
needed for a query are resolved once per query shape (the column names and
reported types) and reused for every row of that shape:

    mapper = RowMapper(Account, schema, converters)
    cursor.execute('select * from accounts')
    accounts = mapper.map_cursor(cursor, 'sqlite')
"""
import logging
from collections.abc import Iterable, Sequence
from typing import Any

import pandas as pd

from entitymap.adapters import ColumnInfo, RowAdapter
from entitymap.adapters import columns_from_cursor_description
from entitymap.cache import Cache
from entitymap.conversion import Converter, TypeConverterRegistry, identity
from entitymap.exceptions import MappingError, RowMappingError
from entitymap.properties import PropertyContainer, PropertyMetadata
from entitymap.schema import ColumnSchema, snake_to_camel

from libb import is_null

logger = logging.getLogger(__name__)

ROW_PLAN_CACHE = 'row_plans'

__all__ = ['RowMapper']


class _ColumnPlan:
    """How values of one result column reach the entity.

    Columns whose driver type is unknown resolve a converter per runtime type
    of their values, on first sight.
    """

    __slots__ = ('index', 'name', 'driver_type', 'prop', 'converters')

    def __init__(self, index: int, name: str, driver_type: type | None,
                 prop: PropertyMetadata | None) -> None:
        self.index = index
        self.name = name
        self.driver_type = driver_type
        self.prop = prop
        self.converters: dict[type, Converter] = {}

    def __repr__(self) -> str:
        target = self.prop.name if self.prop is not None else None
        return f'_ColumnPlan({self.name!r} -> {target!r})'


class RowMapper:
    """Map result rows to instances of an entity class.

    Args:
        entity_type: Class to instantiate; needs a no-argument constructor
        schema: Column schema of the class
        converters: Registry supplying driver --> property converters
        cache: Cache holding per-shape plans (default: a private cache)
    """

    def __init__(self, entity_type: type, schema: ColumnSchema,
                 converters: TypeConverterRegistry | None = None,
                 cache: Cache | None = None) -> None:
        self.entity_type = entity_type
        self.schema = schema
        self.converters = converters or TypeConverterRegistry()
        self.cache = cache if cache is not None else Cache()
        self.accepts_unmapped = issubclass(entity_type, PropertyContainer)
        self._discarded: set[str] = set()

    def _plan(self, columns: Sequence[ColumnInfo]) -> list[_ColumnPlan]:
        shape = (self.entity_type,) + tuple((col.name, col.python_type) for col in columns)
        return self.cache.get_or_compute(ROW_PLAN_CACHE, shape, lambda: self._build_plan(columns))

    def _build_plan(self, columns: Sequence[ColumnInfo]) -> list[_ColumnPlan]:
        plan = []
        for index, col in enumerate(columns):
            column = _ColumnPlan(index, col.name, col.python_type, self.schema.property_for(col.name))
            if column.prop is not None and column.driver_type is not None:
                self._resolve(column, column.driver_type)
            plan.append(column)
        logger.debug(f'Planned {len(plan)} columns for {self.entity_type.__name__}: {plan}')
        return plan

    def _resolve(self, column: _ColumnPlan, source: type) -> Converter:
        converter = column.converters.get(source)
        if converter is not None:
            return converter

        target = column.prop.value_type
        if target is object:
            converter = identity
        else:
            converter = self.converters.get_converter(source, target)
            if converter is None:
                if not issubclass(source, target):
                    logger.warning(f'No converter found for column {column.name}: {source.__name__} --> '
                                   f'{target.__name__} in {self.entity_type.__name__}; '
                                   'values will be set unconverted')
                converter = identity

        column.converters[source] = converter
        return converter

    def _discard(self, column: _ColumnPlan) -> None:
        if column.name not in self._discarded:
            self._discarded.add(column.name)
            logger.warning(f'Column {column.name} has no property in {self.entity_type.__name__}; '
                           'its values are discarded')

    def _fail(self, message: str, column: str | None, value: Any) -> RowMappingError:
        logger.error(message)
        return RowMappingError(message, self.entity_type, column, value)

    def map_row(self, columns: Sequence[ColumnInfo | str], row: Any) -> Any:
        """Create one entity from one result row.

        Null values are skipped, leaving the instance's default in place.

        Args:
            columns: Column descriptors, bare names or (name, type) pairs
            row: Result row (mapping, sqlite3.Row, namedtuple or sequence)

        Returns
            New entity instance

        Raises
            RowMappingError: if construction, conversion or a property write fails
        """
        columns = ColumnInfo.coerce(columns)
        plan = self._plan(columns)

        try:
            instance = self.entity_type()
        except Exception as e:
            raise self._fail(f'Error creating {self.entity_type.__name__} (no default constructor?): {e}',
                             None, None) from e

        adapter = RowAdapter.create(row)
        for column in plan:
            value = adapter.get_value(column.name, column.index)
            # array and list values are never null
            if pd.api.types.is_scalar(value) and is_null(value):
                continue

            if column.prop is None:
                if self.accepts_unmapped:
                    instance.set(snake_to_camel(column.name), value)
                else:
                    self._discard(column)
                continue

            try:
                converter = self._resolve(column, column.driver_type or type(value))
                converted = converter(value)
            except Exception as e:
                raise self._fail(f'Error converting column {column.name} of {self.entity_type.__name__} '
                                 f'from value {value!r} ({type(value).__name__}): {e}',
                                 column.name, value) from e

            try:
                column.prop.set_value(instance, converted)
            except MappingError as e:
                raise self._fail(f'Error setting {self.entity_type.__name__}.{column.prop.name} from '
                                 f'column {column.name} value {value!r} ({type(value).__name__}): {e}',
                                 column.name, value) from e

        return instance

    __call__ = map_row

    def map_rows(self, columns: Sequence[ColumnInfo | str], rows: Iterable[Any]) -> list[Any]:
        columns = ColumnInfo.coerce(columns)
        return [self.map_row(columns, row) for row in rows]

    def map_cursor(self, cursor: Any, connection_type: str) -> list[Any]:
        """Fetch every remaining row of an executed cursor and map it.

        Args:
            cursor: DB-API cursor after execute()
            connection_type: Database type ('postgresql', 'sqlite')

        Returns
            List of entities
        """
        columns = columns_from_cursor_description(cursor, connection_type)
        if not columns:
            return []
        return self.map_rows(columns, cursor.fetchall())

    def map_frame(self, df: pd.DataFrame) -> list[Any]:
        """Map every row of a DataFrame, columns matched by name."""
        columns = [ColumnInfo.from_name(str(name)) for name in df.columns]
        return self.map_rows(columns, df.itertuples(index=False, name=None))

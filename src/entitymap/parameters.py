"""
Statement parameters built from entities.

Produces `column -> value` maps ready to bind into prepared INSERT and UPDATE
statements. Values are made driver friendly on the way out:

- None, NaN, pandas.NA and NaT bind as NULL, as do empty strings and the
  configured null strings
- NumPy scalars become Python scalars, pandas Timestamps become datetimes
- enums bind their identifier when Identified, else their member name
- iterables other than text, bytes and mappings bind as lists of converted
  elements
- a column declaring a storage type is converted to it first
"""
import enum
import logging
import math
from collections.abc import Collection, Iterable, Mapping
from typing import Any

import numpy as np
import pandas as pd

from entitymap.conversion import TypeConverterRegistry, identifier_of
from entitymap.exceptions import MappingError, QueryConstructionError
from entitymap.markers import Identified
from entitymap.schema import ColumnSchema

from libb import isiterable

logger = logging.getLogger(__name__)

__all__ = [
    'ParameterBuilder',
    'normalize_value',
]


def _convert_numpy_value(val: np.generic) -> Any:
    """Convert a NumPy scalar to the matching Python value, NaN and NaT to None."""
    if isinstance(val, np.floating) and np.isnan(val):
        return None

    if isinstance(val, np.datetime64):
        if np.isnat(val):
            return None
        logger.debug(f'Converting np.datetime64 to Python datetime: {val}')
        return pd.Timestamp(val).to_pydatetime()

    return val.item()


def normalize_value(value: Any, null_strings: Collection[str] = frozenset()) -> Any:
    """Convert a single value to a database-compatible format

    Args:
        value: Any Python value to convert
        null_strings: Lower-case strings that bind as NULL

    Returns
        Converted value suitable for database parameters

    >>> normalize_value(np.int64(5))
    5
    >>> normalize_value(float('nan')) is None
    True
    >>> normalize_value(('a', '', np.float32(1.5)))
    ['a', None, 1.5]
    """
    if value is None:
        return None

    if isinstance(value, str):
        if value == '' or value.lower() in null_strings:
            return None
        return value

    if isinstance(value, enum.Enum):
        if isinstance(value, Identified):
            return normalize_value(identifier_of(value), null_strings)
        return value.name

    if isinstance(value, float) and math.isnan(value):
        return None

    if isinstance(value, np.generic):
        return _convert_numpy_value(value)

    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()

    if pd.api.types.is_scalar(value) and pd.isna(value):
        return None

    if isinstance(value, np.ndarray):
        value = value.tolist()

    if isiterable(value) and not isinstance(value, bytes | Mapping):
        return [normalize_value(v, null_strings) for v in value]

    return value


class ParameterBuilder:
    """Build bound parameter maps for one entity class.

    Args:
        schema: Column schema of the entity class
        converters: Registry used for columns declaring a storage type
    """

    def __init__(self, schema: ColumnSchema, converters: TypeConverterRegistry | None = None) -> None:
        self.schema = schema
        self.converters = converters or TypeConverterRegistry()
        self.null_strings = self.converters.options.null_strings

    def convert_column(self, column: str, value: Any, entity: Any = None) -> Any:
        """Outbound conversion of one column value.

        Raises
            QueryConstructionError: if the value cannot be converted
        """
        try:
            storage_type = self.schema.storage_types.get(column)
            if storage_type is not None and value is not None:
                value = self.converters.convert(value, storage_type)
            return normalize_value(value, self.null_strings)
        except (MappingError, TypeError, ValueError) as e:
            raise QueryConstructionError(f'Error converting parameter {column} of '
                                         f'{self.schema.entity_type.__name__} from {value!r}: {e}',
                                         entity, None) from e

    def convert_parameters(self, params: dict[str, Any]) -> dict[str, Any]:
        """Outbound conversion of an existing `column -> value` map."""
        return {column: self.convert_column(column, value) for column, value in params.items()}

    def build(self, entity: Any, columns: Iterable[str] | None = None) -> dict[str, Any]:
        """Read and convert the values of `columns` (default: every mapped column).

        Returns
            Parameters keyed by column name, in column order

        Raises
            QueryConstructionError: if a column is unknown, a property cannot
                                    be read, or a value cannot be converted
        """
        entity_name = self.schema.entity_type.__name__
        columns = self.schema.columns if columns is None else columns

        params = {}
        for column in columns:
            prop = self.schema.property_for(column)
            if prop is None:
                raise QueryConstructionError(f'{column} is not a mapped column of {entity_name}', entity, None)
            try:
                value = prop.get_value(entity)
            except MappingError as e:
                raise QueryConstructionError(f'Error reading {entity_name}.{prop.name} for parameter {column}',
                                             entity, None) from e
            params[column] = self.convert_column(column, value, entity)

        logger.debug(f'Built {len(params)} parameters for {entity_name}: {list(params)}')
        return params

    def insert_parameters(self, entity: Any) -> dict[str, Any]:
        """Parameters for an INSERT of every insertable column."""
        return self.build(entity, self.schema.insertable_columns)

    def update_parameters(self, entity: Any) -> dict[str, Any]:
        """Parameters for a full UPDATE: every updatable column plus the id."""
        columns = list(self.schema.updatable_columns)
        if self.schema.id_column not in columns and self.schema.property_for(self.schema.id_column):
            columns.append(self.schema.id_column)
        return self.build(entity, columns)

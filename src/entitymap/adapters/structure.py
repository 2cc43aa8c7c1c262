"""
Row structure adapters.

These adapters handle ONLY the structure of result rows (access by column
name or position). They do NOT perform any type conversion, which belongs to
the converter registry.
"""
from collections.abc import Mapping, Sequence
from typing import Any

__all__ = ['RowAdapter']


class RowAdapter:
    """Base adapter for result rows providing a consistent interface"""

    @staticmethod
    def create(row: Any) -> 'RowAdapter':
        """Factory method to create the appropriate adapter for the row shape"""
        if isinstance(row, Mapping):
            return MappingRowAdapter(row)
        if hasattr(row, 'keys') and callable(row.keys):
            return SQLiteRowAdapter(row)
        if hasattr(row, '_fields'):
            return NamedTupleRowAdapter(row)
        if isinstance(row, Sequence) and not isinstance(row, str | bytes):
            return SequenceRowAdapter(row)
        return ObjectRowAdapter(row)

    def __init__(self, row: Any):
        self.row = row

    def get_value(self, name: str, index: int | None = None) -> Any:
        """Get a single value from the row by column name, else by position.

        Missing columns read as None.
        """
        raise NotImplementedError('Subclasses must implement get_value method')

    def to_dict(self, names: Sequence[str]) -> dict[str, Any]:
        """Convert row to a dictionary of the named columns"""
        return {name: self.get_value(name, i) for i, name in enumerate(names)}


class MappingRowAdapter(RowAdapter):
    """Adapter for dict rows, e.g. psycopg's dict_row factory"""

    def get_value(self, name: str, index: int | None = None) -> Any:
        return self.row.get(name)


class SQLiteRowAdapter(RowAdapter):
    """Adapter for sqlite3.Row objects

    Rows are accessible by name or index; iterating over them yields values,
    not keys.
    """

    def get_value(self, name: str, index: int | None = None) -> Any:
        if name in self.row.keys():
            return self.row[name]
        if index is not None and index < len(self.row):
            return self.row[index]
        return None


class NamedTupleRowAdapter(RowAdapter):
    """Adapter for namedtuple rows, e.g. psycopg's namedtuple_row factory"""

    def get_value(self, name: str, index: int | None = None) -> Any:
        if name in self.row._fields:
            return getattr(self.row, name)
        if index is not None and index < len(self.row):
            return self.row[index]
        return None


class SequenceRowAdapter(RowAdapter):
    """Adapter for plain tuple and list rows; only positions are meaningful"""

    def get_value(self, name: str, index: int | None = None) -> Any:
        if index is None or index >= len(self.row):
            return None
        return self.row[index]


class ObjectRowAdapter(RowAdapter):
    """Adapter for unknown row types, reading attributes by column name"""

    def get_value(self, name: str, index: int | None = None) -> Any:
        return getattr(self.row, name, None)

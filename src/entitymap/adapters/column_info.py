"""
Column descriptors for result rows.
"""
import logging
from typing import Any, Self

from entitymap.adapters.type_mapping import resolve_type

logger = logging.getLogger(__name__)

__all__ = [
    'ColumnInfo',
    'columns_from_cursor_description',
]


class ColumnInfo:
    """Name and reported type of one result column

    `python_type` is the Python type the driver delivers values as, or None
    when the driver does not say (SQLite without declared types, data frames
    of object dtype). Row mapping resolves such columns from their values.
    """

    def __init__(self,
                 name: str,
                 type_code: Any = None,
                 python_type: type | None = None,
                 precision: int | None = None,
                 scale: int | None = None,
                 nullable: bool | None = None):
        """
        Args:
            name: Display name of the column
            type_code: Database-specific type code
            python_type: Python type values arrive as
            precision: Numeric precision (for numeric types)
            scale: Numeric scale (for numeric types)
            nullable: Whether the column allows NULL values
        """
        self.name = name
        self.type_code = type_code
        self.python_type = python_type
        self.precision = precision
        self.scale = scale
        self.nullable = nullable

    @classmethod
    def from_cursor_description(cls, description_item: Any, connection_type: str) -> Self:
        """Create a ColumnInfo from a cursor description item.

        Args:
            description_item: One item from cursor.description
            connection_type: Database type ('postgresql', 'sqlite')

        Returns
            ColumnInfo instance
        """
        if connection_type == 'postgresql':
            column_info = {
                'name': getattr(description_item, 'name', None),
                'type_code': getattr(description_item, 'type_code', None),
                'precision': getattr(description_item, 'precision', None),
                'scale': getattr(description_item, 'scale', None),
                }
        else:
            column_info = {
                'name': description_item[0] if len(description_item) > 0 else None,
                'type_code': description_item[1] if len(description_item) > 1 else None,
                'precision': description_item[4] if len(description_item) > 4 else None,
                'scale': description_item[5] if len(description_item) > 5 else None,
                }
            if len(description_item) > 6 and description_item[6] is not None:
                column_info['nullable'] = bool(description_item[6])

        column_info['python_type'] = resolve_type(connection_type, column_info['type_code'])
        return cls(**column_info)

    @classmethod
    def from_name(cls, name: str, python_type: type | None = None) -> Self:
        return cls(name=name, python_type=python_type)

    def __repr__(self) -> str:
        return (f'ColumnInfo(name={self.name!r}, type_code={self.type_code!r}, '
                f'python_type={self.python_type.__name__ if self.python_type else None})')

    def to_dict(self) -> dict[str, Any]:
        return {
            'name': self.name,
            'type_code': self.type_code,
            'python_type': self.python_type.__name__ if self.python_type else None,
            'precision': self.precision,
            'scale': self.scale,
            'nullable': self.nullable,
            }

    @staticmethod
    def get_names(columns: list[Self]) -> list[str]:
        """Get column names from a list of ColumnInfo objects.
        """
        return [col.name for col in columns]

    @staticmethod
    def coerce(columns: list[Any]) -> list['ColumnInfo']:
        """Accept ColumnInfo objects, bare names or (name, python_type) pairs.

        >>> ColumnInfo.coerce(['id', ('name', str)])
        [ColumnInfo(name='id', type_code=None, python_type=None), ColumnInfo(name='name', type_code=None, python_type=str)]
        """
        result = []
        for col in columns:
            if isinstance(col, ColumnInfo):
                result.append(col)
            elif isinstance(col, str):
                result.append(ColumnInfo.from_name(col))
            else:
                name, python_type = col
                result.append(ColumnInfo.from_name(name, python_type))
        return result


def columns_from_cursor_description(cursor: Any, connection_type: str) -> list[ColumnInfo]:
    """Create ColumnInfo objects directly from a cursor description.

    Args:
        cursor: Database cursor with a description attribute
        connection_type: Database type ('postgresql', 'sqlite')

    Returns
        List of ColumnInfo objects, empty when the cursor returned no rows
    """
    if cursor.description is None:
        return []

    return [ColumnInfo.from_cursor_description(desc_item, connection_type)
            for desc_item in cursor.description]

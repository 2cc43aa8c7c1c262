"""
Column-level differences between two versions of an entity.

The scanner walks the updatable columns of an entity in column-name order
and lets each property's CopyBehavior decide whether its column changes:

=====================  ==================================================
Policy                 Emits
=====================  ==================================================
IGNORE                 nothing
TAKE_ORIGINAL          nothing
TAKE_UPDATED           ADD / DELETE / UPDATE whenever the values differ
MOST_RECENT_NON_NULL   ADD / UPDATE for a differing non-null update;
                       DELETE only with delete_override
ALWAYS_NULL            DELETE whenever the existing value is not null
=====================  ==================================================

Each change carries an assignment fragment ready for an UPDATE statement:

    changes = scanner.scan_for_changes(existing, updated)
    sql = f'update {schema.table_name} set ' + ', '.join(c.assignment for c in changes.values())
    params = scanner.parameters_for(changes, existing.id)
"""
import dataclasses
import enum
import logging
from typing import Any

from entitymap.exceptions import AccessError, QueryConstructionError
from entitymap.markers import CopyBehavior
from entitymap.merge import deep_equal, to_trimmed_or_null
from entitymap.parameters import ParameterBuilder
from entitymap.schema import ColumnSchema

logger = logging.getLogger(__name__)

__all__ = [
    'ChangeKind',
    'ChangeScanner',
    'ColumnChange',
]


class ChangeKind(enum.Enum):
    ADD = 'A'
    DELETE = 'D'
    UPDATE = 'U'


@dataclasses.dataclass(frozen=True)
class ColumnChange:
    """One column's required mutation.

    The bound parameter name is always the column name.
    """
    kind: ChangeKind
    column_name: str
    parameter_name: str
    old_value: Any
    new_value: Any
    assignment: str

    @classmethod
    def add(cls, column_name: str, new_value: Any) -> 'ColumnChange':
        change = cls(ChangeKind.ADD, column_name, column_name, None, new_value,
                     f'{column_name} = :{column_name}')
        logger.debug(f'Add: {change.assignment} ({new_value!r})')
        return change

    @classmethod
    def delete(cls, column_name: str, old_value: Any) -> 'ColumnChange':
        change = cls(ChangeKind.DELETE, column_name, column_name, old_value, None,
                     f'{column_name} = NULL')
        logger.debug(f'Delete: {change.assignment} (was {old_value!r})')
        return change

    @classmethod
    def update(cls, column_name: str, old_value: Any, new_value: Any) -> 'ColumnChange':
        change = cls(ChangeKind.UPDATE, column_name, column_name, old_value, new_value,
                     f'{column_name} = :{column_name}')
        logger.debug(f'Update: {change.assignment} ({old_value!r} --> {new_value!r})')
        return change


def _difference(column: str, old: Any, new: Any) -> ColumnChange:
    if old is None:
        return ColumnChange.add(column, new)
    if new is None:
        return ColumnChange.delete(column, old)
    return ColumnChange.update(column, old, new)


class ChangeScanner:
    """Compute column changes between entity versions of one class.

    Args:
        schema: Column schema of the entity class
        parameters: Builds bound values for `parameters_for`; values pass
                    through unconverted without one
    """

    def __init__(self, schema: ColumnSchema, parameters: ParameterBuilder | None = None) -> None:
        self.schema = schema
        self.parameters = parameters

    @staticmethod
    def decide(behavior: CopyBehavior, column: str, old: Any, new: Any,
               delete_override: bool = False) -> ColumnChange | None:
        """The change one column needs under a policy, or None."""
        if behavior is CopyBehavior.IGNORE or behavior is CopyBehavior.TAKE_ORIGINAL:
            return None

        if behavior is CopyBehavior.TAKE_UPDATED:
            if deep_equal(old, new):
                return None
            return _difference(column, old, new)

        if behavior is CopyBehavior.MOST_RECENT_NON_NULL:
            if new is None:
                if delete_override and old is not None:
                    return ColumnChange.delete(column, old)
                return None
            if deep_equal(old, new):
                return None
            return _difference(column, old, new)

        if behavior is CopyBehavior.ALWAYS_NULL:
            if old is None:
                return None
            return ColumnChange.delete(column, old)

        raise ValueError(f'No change rule for copy behavior {behavior}')

    def scan_for_changes(self, existing: Any, updated: Any,
                         delete_override: bool = False) -> dict[str, ColumnChange]:
        """Find the columns that must change to turn `existing` into `updated`.

        Strings read from `updated` are trimmed, and blank ones count as None.
        Either entity may be None, which reads as None for every property.

        Args:
            existing: Entity as currently stored
            updated: Entity carrying the new values
            delete_override: Let MOST_RECENT_NON_NULL properties be cleared
                             when the updated value is None

        Returns
            Changes keyed by property name, ordered by column name

        Raises
            QueryConstructionError: if a property cannot be read
        """
        changes: dict[str, ColumnChange] = {}

        for column in self.schema.updatable_columns:
            prop = self.schema.property_for(column)
            try:
                old = prop.get_value(existing) if existing is not None else None
                new = prop.get_value(updated) if updated is not None else None
            except AccessError as e:
                raise QueryConstructionError(f'Error reading {prop.owner.__name__}.{prop.name} while '
                                             f'scanning {existing!r} and {updated!r}',
                                             existing, updated) from e

            change = self.decide(self.schema.copy_behavior(prop.name), column,
                                 old, to_trimmed_or_null(new), delete_override)
            if change is not None:
                changes[prop.name] = change

        return changes

    def parameters_for(self, changes: dict[str, ColumnChange], id_value: Any) -> dict[str, Any]:
        """Bound values for a partial UPDATE built from `changes`.

        Deleted columns are assigned NULL literally and need no parameter; the
        id is bound under the id column's name.
        """
        params = {change.parameter_name: change.new_value
                  for change in changes.values() if change.kind is not ChangeKind.DELETE}
        params[self.schema.id_column] = id_value
        if self.parameters is None:
            return params
        return self.parameters.convert_parameters(params)

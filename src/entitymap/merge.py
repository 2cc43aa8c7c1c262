"""
Merging an existing and an updated version of an entity.

The merged entity is a new instance; each updatable property takes the value
its CopyBehavior chooses. Neither input is modified.
"""
import logging
from typing import Any

import numpy as np

from entitymap.cache import Cache
from entitymap.exceptions import AccessError, EntityCopyError
from entitymap.markers import CopyBehavior
from entitymap.properties import ObjectBackedPropertyContainer, discover_instance
from entitymap.schema import ColumnSchema

logger = logging.getLogger(__name__)

__all__ = [
    'EntityMerger',
    'are_equivalent',
    'clean_up_empty_strings',
    'deep_equal',
    'to_trimmed_or_null',
]


def to_trimmed_or_null(value: Any) -> Any:
    """Trim strings, turning blank ones into None. Other values pass through.

    >>> to_trimmed_or_null('  a b  ')
    'a b'
    >>> to_trimmed_or_null('   ') is None
    True
    >>> to_trimmed_or_null(12)
    12
    """
    if not isinstance(value, str):
        return value
    value = value.strip()
    return value or None


def deep_equal(a: Any, b: Any) -> bool:
    """Value equality that compares arrays element-wise.

    >>> deep_equal(np.array([1, 2]), np.array([1, 2]))
    True
    >>> deep_equal(None, 0)
    False
    """
    if a is b:
        return True
    if a is None or b is None:
        return False
    if isinstance(a, np.ndarray) or isinstance(b, np.ndarray):
        return bool(np.array_equal(np.asarray(a), np.asarray(b)))
    try:
        return bool(a == b)
    except (TypeError, ValueError):
        return False


def clean_up_empty_strings(entity: Any, *other_null_values: str, cache: Cache | None = None) -> Any:
    """Trim every string property of an entity in place.

    Blank strings, and strings equal to one of `other_null_values` once
    trimmed, become None.

    Returns
        The same entity, for chaining
    """
    if entity is None:
        return None

    null_values = set(other_null_values)
    try:
        for prop in discover_instance(entity, cache).values():
            if prop.value_type is not str or prop.read_only:
                continue
            value = to_trimmed_or_null(prop.get_value(entity))
            if value in null_values:
                value = None
            prop.set_value(entity, value)
    except AccessError as e:
        raise EntityCopyError(f'Error while cleaning up strings of {entity!r}') from e
    return entity


def are_equivalent(a: Any, b: Any, cache: Cache | None = None) -> bool:
    """Whether two entities of the same class hold equal values in every property.

    Unlike `==`, this ignores any identity or custom equality the class
    defines.
    """
    if type(a) is not type(b):
        return False

    container = ObjectBackedPropertyContainer(a, cache)
    other = ObjectBackedPropertyContainer(b, cache)
    for name in container:
        try:
            if not deep_equal(container.get(name), other.get(name)):
                return False
        except AccessError:
            logger.error(f'Error comparing property {name} of objects:\n\t{a!r}\n\t{b!r}')
            raise
    return True


class EntityMerger:
    """Merge entity pairs of one class by their CopyBehavior policies.

    =====================  ===============================================
    Policy                 Merged value
    =====================  ===============================================
    IGNORE                 the new instance's default
    TAKE_UPDATED           updated
    TAKE_ORIGINAL          existing
    MOST_RECENT_NON_NULL   updated when not None, else existing
    ALWAYS_NULL            None
    =====================  ===============================================
    """

    def __init__(self, schema: ColumnSchema) -> None:
        self.schema = schema

    @staticmethod
    def choose(behavior: CopyBehavior, existing: Any, updated: Any) -> Any:
        if behavior is CopyBehavior.TAKE_UPDATED:
            return updated
        if behavior is CopyBehavior.TAKE_ORIGINAL:
            return existing
        if behavior is CopyBehavior.MOST_RECENT_NON_NULL:
            return updated if updated is not None else existing
        if behavior is CopyBehavior.ALWAYS_NULL:
            return None
        raise ValueError(f'No merge rule for copy behavior {behavior}')

    def merge(self, existing: Any, updated: Any) -> Any:
        """Create a new entity from an existing and an updated version.

        Either input may be None, which reads as None for every property.

        Raises
            EntityCopyError: if the new instance cannot be created, or a
                             property cannot be read or written
        """
        entity_type = self.schema.entity_type
        try:
            merged = entity_type()
        except Exception as e:
            raise EntityCopyError(f'Error creating {entity_type.__name__} to merge into '
                                  '(no default constructor?)') from e

        for column in self.schema.updatable_columns:
            prop = self.schema.property_for(column)
            behavior = self.schema.copy_behavior(prop.name)
            if behavior is CopyBehavior.IGNORE:
                continue

            try:
                existing_value = prop.get_value(existing) if existing is not None else None
                updated_value = prop.get_value(updated) if updated is not None else None
                prop.set_value(merged, self.choose(behavior, existing_value, to_trimmed_or_null(updated_value)))
            except AccessError as e:
                raise EntityCopyError(f'Error merging {entity_type.__name__}.{prop.name} of '
                                      f'{existing!r} and {updated!r}') from e

        return merged

"""
Markers attached to entity properties.

Markers ride along in `typing.Annotated` metadata, on a field annotation, a
getter's return annotation or a setter's value parameter:

    class Person:
        person_id: Annotated[int | None, Id(), Column(name='id')] = None
        created: Annotated[datetime | None, CopyBehavior.TAKE_ORIGINAL] = None
        scratch: Annotated[str | None, Transient()] = None
"""
import enum
from dataclasses import dataclass
from typing import Any

__all__ = [
    'Column',
    'CopyBehavior',
    'Id',
    'Identified',
    'Marker',
    'Transient',
    'marker_kind',
]


class Marker:
    """Base class for property markers."""


@dataclass(frozen=True)
class Column(Marker):
    """Explicit column mapping for a property.

    A property carrying this marker is never mapped by convention; the marker
    decides its column name and statement membership.

    Args:
        name: Column name, or None for the conventional snake_case name
        insertable: Whether the column is part of INSERT parameters
        updatable: Whether the column may change on UPDATE
        storage_type: Storage type the value is converted to when bound,
                      and from when read
    """
    name: str | None = None
    insertable: bool = True
    updatable: bool = True
    storage_type: type | None = None


@dataclass(frozen=True)
class Id(Marker):
    """Marks the identifier property."""


@dataclass(frozen=True)
class Transient(Marker):
    """Excludes a property from persistence."""


class CopyBehavior(enum.Enum):
    """How a property resolves when an existing and an updated entity meet.
    """

    #: Skip the property. The merged entity keeps its default value and the
    #: column never changes.
    IGNORE = 'ignore'
    #: Always use the updated value, even when it is null. Use for nullable
    #: columns where clearing a value is an expected action.
    TAKE_UPDATED = 'take_updated'
    #: Always keep the existing value, e.g. creation stamps.
    TAKE_ORIGINAL = 'take_original'
    #: Always null, e.g. values assigned by the database.
    ALWAYS_NULL = 'always_null'
    #: The updated value when it is not null, else the existing one. Allows
    #: filling in a null value but never clearing a populated one.
    MOST_RECENT_NON_NULL = 'most_recent_non_null'


class Identified:
    """Mixin for enums whose members are stored by a stable identifier.

    The identifier defaults to the member value; override `identifier` when
    the value carries something else.

    >>> class Status(Identified, enum.Enum):
    ...     ACTIVE = 1
    ...     RETIRED = 2
    >>> Status.RETIRED.identifier
    2
    """

    @property
    def identifier(self) -> Any:
        return self.value


def marker_kind(marker: Any) -> type | None:
    """Return the annotation kind for a metadata item, or None if it is not a marker.

    >>> marker_kind(Column(name='x')) is Column
    True
    >>> marker_kind(CopyBehavior.IGNORE) is CopyBehavior
    True
    >>> marker_kind('docs') is None
    True
    """
    if isinstance(marker, CopyBehavior):
        return CopyBehavior
    if isinstance(marker, Marker):
        return type(marker)
    return None

"""
Mapping-specific exception classes.
"""
from typing import Any


class MappingError(Exception):
    """Base class for all entity mapping errors.
    """


class ConfigurationError(MappingError):
    """Entity schema cannot be derived from its class.
    """


class ConversionError(MappingError):
    """Error converting a value between storage and domain types.
    """


class InvalidArgumentError(ConversionError, ValueError):
    """A value cannot be interpreted as the requested type.

    Raised for enum, date and number lookups that must succeed. Never retried,
    since it indicates a data or schema mismatch.
    """


class AccessError(MappingError):
    """Error reading or writing a property of an entity.
    """

    def __init__(self, message: str, property_name: str | None = None,
                 owner: type | None = None) -> None:
        super().__init__(message)
        self.property_name = property_name
        self.owner = owner


class RowMappingError(ConversionError):
    """Error materializing an entity from a result row.
    """

    def __init__(self, message: str, entity_type: type | None = None,
                 column: str | None = None, value: Any = None) -> None:
        super().__init__(message)
        self.entity_type = entity_type
        self.column = column
        self.value = value


class QueryConstructionError(MappingError):
    """Error scanning for changes or building statement parameters.
    """

    def __init__(self, message: str, existing: Any = None, updated: Any = None) -> None:
        super().__init__(message)
        self.existing = existing
        self.updated = updated


class EntityCopyError(MappingError):
    """Error merging an existing and an updated entity into a new instance.
    """

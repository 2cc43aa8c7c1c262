"""
Property discovery for entity classes.

A property is a named attribute of an entity that generic code can read and
write without knowing the class. It may be backed by:

- an annotated class field (`name: str | None = None`),
- a `property` object,
- `get_<name>` / `set_<name>` accessor methods,

or a combination. A private field `_name` combined with a `name` property (or
`get_name`/`set_name` methods) forms a single property called `name`.

Discovery runs once per class and is cached for the life of the cache it was
stored in.
"""
import dataclasses
import inspect
import logging
import types
import typing
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection, Iterator, Mapping
from types import MappingProxyType
from typing import Annotated, Any, ClassVar, Final, Union

from entitymap.cache import Cache
from entitymap.exceptions import AccessError, ConfigurationError
from entitymap.markers import Marker, marker_kind

logger = logging.getLogger(__name__)

PROPERTY_CACHE = 'properties'

__all__ = [
    'PropertyMetadata',
    'discover',
    'discover_instance',
    'unwrap_type',
    'PropertyContainer',
    'MapBackedPropertyContainer',
    'ObjectBackedPropertyContainer',
]


@dataclasses.dataclass(frozen=True, eq=False)
class PropertyMetadata:
    """Accessor triple and markers for one property of an entity class.

    Never mutated after discovery.
    """
    name: str
    value_type: type
    owner: type
    field: str | None = None
    getter: Callable[[Any], Any] | None = None
    setter: Callable[[Any, Any], None] | None = None
    annotations: Mapping[type, Any] = dataclasses.field(default_factory=lambda: MappingProxyType({}))

    @property
    def read_only(self) -> bool:
        return self.setter is None and self.field is None

    def get_annotation(self, kind: type, default: Any = None) -> Any:
        """Return the marker of the given kind attached to this property."""
        return self.annotations.get(kind, default)

    def has_annotation(self, kind: type) -> bool:
        return kind in self.annotations

    def get_value(self, instance: Any) -> Any:
        """Read the property from an instance.

        Raises
            AccessError: if no getter or field exists, or the getter fails
        """
        if self.getter is not None:
            try:
                return self.getter(instance)
            except Exception as e:
                raise AccessError(f'Error reading {self.owner.__name__}.{self.name}: {e}',
                                  self.name, self.owner) from e

        if self.field is not None:
            return getattr(instance, self.field, None)

        raise AccessError(f"Can't get value of {self.owner.__name__}.{self.name} "
                          '-- no field or getter available', self.name, self.owner)

    def set_value(self, instance: Any, value: Any) -> None:
        """Write the property on an instance.

        A property with only a getter is read-only; the write is logged and
        ignored.

        Raises
            AccessError: if the setter or the field assignment fails
        """
        if self.setter is not None:
            try:
                self.setter(instance, value)
            except Exception as e:
                raise AccessError(f'Error setting {self.owner.__name__}.{self.name} = {value!r}: {e}',
                                  self.name, self.owner) from e
            return

        if self.field is not None:
            try:
                setattr(instance, self.field, value)
            except (AttributeError, TypeError) as e:
                raise AccessError(f'Error setting {self.owner.__name__}.{self.name} = {value!r}: {e}',
                                  self.name, self.owner) from e
            return

        logger.warning(f'Attempting to set read-only property {self.owner.__name__}.{self.name}. '
                       'Only a getter exists')

    def __repr__(self) -> str:
        return (f'PropertyMetadata(name={self.name!r}, value_type={self.value_type.__name__}, '
                f'field={self.field!r}, getter={self.getter is not None}, '
                f'setter={self.setter is not None})')


def unwrap_type(hint: Any) -> tuple[type, tuple[Any, ...]]:
    """Strip `Annotated` and `Optional` from a type hint.

    Returns
        The bare type and the collected `Annotated` metadata. Hints that do
        not name a single class resolve to `object`.

    >>> unwrap_type(Annotated[int | None, 'meta'])
    (<class 'int'>, ('meta',))
    >>> unwrap_type(list[str])
    (<class 'list'>, ())
    >>> unwrap_type(int | str)
    (<class 'object'>, ())
    """
    metadata: list[Any] = []
    while True:
        origin = typing.get_origin(hint)
        if origin is Annotated:
            metadata.extend(hint.__metadata__)
            hint = typing.get_args(hint)[0]
            continue
        if origin is Union or origin is types.UnionType:
            args = [a for a in typing.get_args(hint) if a is not type(None)]
            if len(args) != 1:
                return object, tuple(metadata)
            hint = args[0]
            continue
        break

    if origin is not None and isinstance(origin, type):
        hint = origin
    if hint is Any or not isinstance(hint, type):
        hint = object
    return hint, tuple(metadata)


def _is_static_or_final(hint: Any) -> bool:
    if isinstance(hint, str):
        head = hint.split('[', 1)[0].rsplit('.', 1)[-1]
        return head in {'ClassVar', 'Final'}
    if hint is ClassVar or hint is Final:
        return True
    return typing.get_origin(hint) in {ClassVar, Final}


def _class_hints(klass: type) -> dict[str, Any]:
    """Own annotations of a class, resolved where possible."""
    own = inspect.get_annotations(klass)
    if not own:
        return {}
    try:
        resolved = typing.get_type_hints(klass, include_extras=True)
    except (NameError, TypeError) as e:
        logger.debug(f'Unable to resolve annotations of {klass.__name__}: {e}')
        resolved = {}
    return {name: resolved.get(name, hint) for name, hint in own.items()}


def _function_hints(func: Callable[..., Any]) -> dict[str, Any]:
    try:
        return typing.get_type_hints(func, include_extras=True)
    except (NameError, TypeError):
        return dict(inspect.get_annotations(func))


def _accessor_method(cls: type, name: str, arity: int) -> Callable[..., Any] | None:
    attr = inspect.getattr_static(cls, name, None)
    if not inspect.isfunction(attr):
        return None
    try:
        params = inspect.signature(attr).parameters
    except (TypeError, ValueError):
        return None
    if len(params) != arity:
        return None
    return attr


def _find_accessors(cls: type, name: str) -> tuple[Callable[..., Any] | None, Callable[..., Any] | None, bool]:
    """Locate the getter and setter for a public property name.

    Returns
        getter, setter, and whether they come from a `property` object
    """
    attr = inspect.getattr_static(cls, name, None)
    if isinstance(attr, property):
        return attr.fget, attr.fset, True
    getter = _accessor_method(cls, f'get_{name}', 1)
    setter = _accessor_method(cls, f'set_{name}', 2)
    return getter, setter, False


def _accessor_name(name: str, attr: Any) -> str | None:
    """Property name implied by a class attribute, if it is an accessor."""
    if name.startswith('_'):
        return None
    if isinstance(attr, property):
        return name
    if inspect.isfunction(attr) and name.startswith(('get_', 'set_')):
        public = name[4:]
        if public and not public.startswith('_'):
            return public
    return None


def _markers(*hints: Any) -> dict[type, Any]:
    """Collect markers from hints in precedence order; the first of each kind wins."""
    found: dict[type, Any] = {}
    for hint in hints:
        if hint is None:
            continue
        for item in unwrap_type(hint)[1]:
            if isinstance(item, type) and issubclass(item, Marker):
                item = item()
            kind = marker_kind(item)
            if kind is not None:
                found.setdefault(kind, item)
    return found


def _build(cls: type, name: str, field: str | None, field_hint: Any,
           getter: Callable[..., Any] | None, setter: Callable[..., Any] | None) -> PropertyMetadata:
    getter_hint = _function_hints(getter).get('return') if getter is not None else None
    setter_hint = None
    if setter is not None:
        setter_params = list(inspect.signature(setter).parameters)
        setter_hint = _function_hints(setter).get(setter_params[-1])

    value_type = object
    for hint in (field_hint, getter_hint, setter_hint):
        if hint is not None:
            value_type = unwrap_type(hint)[0]
            break

    return PropertyMetadata(
        name=name,
        value_type=value_type,
        owner=cls,
        field=field,
        getter=getter,
        setter=setter,
        annotations=MappingProxyType(_markers(field_hint, setter_hint, getter_hint)),
    )


def _discover(cls: type) -> Mapping[str, PropertyMetadata]:
    # base classes first, so a subclass replaces the entry but keeps its position
    lineage = [klass for klass in reversed(cls.__mro__) if klass is not object]

    fields: dict[str, tuple[str, Any]] = {}
    for klass in lineage:
        for field_name, hint in _class_hints(klass).items():
            if _is_static_or_final(hint):
                continue
            public = field_name.lstrip('_')
            if not public:
                continue
            if field_name.startswith('_') and public in fields and not fields[public][0].startswith('_'):
                continue
            fields[public] = (field_name, hint)

    properties: dict[str, PropertyMetadata] = {}

    for public, (field_name, hint) in fields.items():
        getter, setter, is_property = _find_accessors(cls, public)
        if getter is None and setter is None:
            if field_name.startswith('_'):
                continue
            properties[public] = _build(cls, public, field_name, hint, None, None)
            continue
        # a property named like its field shadows the field on the class
        field = None if is_property and field_name == public else field_name
        properties[public] = _build(cls, public, field, hint, getter, setter)

    for klass in lineage:
        for attr_name, attr in vars(klass).items():
            public = _accessor_name(attr_name, attr)
            if public is None or public in properties:
                continue
            getter, setter, is_property = _find_accessors(cls, public)
            if getter is None and setter is None:
                continue
            field_name, hint = fields.get(public, (None, None))
            if is_property and field_name == public:
                field_name = None
            properties[public] = _build(cls, public, field_name, hint, getter, setter)

    logger.debug(f'Discovered {len(properties)} properties in {cls.__name__}: {list(properties)}')
    return MappingProxyType(properties)


def discover(cls: type, cache: Cache | None = None) -> Mapping[str, PropertyMetadata]:
    """Get the properties of a class, in declaration order.

    Results are cached by class, so call as often as you want.

    Args:
        cls: The class to examine
        cache: Cache to store the result in (default: process-wide cache)

    Returns
        Read-only mapping of property name to PropertyMetadata
    """
    if not isinstance(cls, type):
        raise TypeError(f'Expected a class, got {cls!r}')
    cache = cache if cache is not None else Cache.get_instance()
    return cache.get_or_compute(PROPERTY_CACHE, cls, lambda: _discover(cls))


def discover_instance(instance: Any, cache: Cache | None = None) -> Mapping[str, PropertyMetadata]:
    """Get the properties of an instance's class."""
    return discover(type(instance), cache)


class PropertyContainer(ABC):
    """An object with named properties which can be read and written."""

    @abstractmethod
    def get(self, property_name: str) -> Any:
        ...

    @abstractmethod
    def set(self, property_name: str, value: Any) -> None:
        ...

    @abstractmethod
    def property_names(self) -> Collection[str]:
        ...

    @abstractmethod
    def property_type(self, property_name: str) -> type:
        ...

    def __iter__(self) -> Iterator[str]:
        return iter(list(self.property_names()))


class MapBackedPropertyContainer(PropertyContainer):
    """A property container storing its values in a dict.

    Entities extending this class receive result columns that have no mapped
    property.
    """

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values = dict(values or {})

    def _store(self) -> dict[str, Any]:
        # subclasses with generated __init__ methods never call ours
        return self.__dict__.setdefault('_values', {})

    def as_dict(self) -> dict[str, Any]:
        return dict(self._store())

    def get(self, property_name: str) -> Any:
        return self._store().get(property_name)

    def set(self, property_name: str, value: Any) -> None:
        self._store()[property_name] = value

    def property_names(self) -> Collection[str]:
        return self._store().keys()

    def property_type(self, property_name: str) -> type:
        return type(self._store().get(property_name))


class ObjectBackedPropertyContainer(PropertyContainer):
    """A property container reading and writing an entity through its metadata."""

    def __init__(self, instance: Any, cache: Cache | None = None) -> None:
        self.instance = instance
        self.type = type(instance)
        self.properties = discover(self.type, cache)

    @classmethod
    def from_class(cls, entity_type: type, cache: Cache | None = None) -> 'ObjectBackedPropertyContainer':
        """Create a container around a new default-constructed instance."""
        try:
            instance = entity_type()
        except Exception as e:
            raise ConfigurationError(f'Error creating container from class {entity_type.__name__} '
                                     '(no default constructor?)') from e
        return cls(instance, cache)

    def _property(self, property_name: str) -> PropertyMetadata:
        try:
            return self.properties[property_name]
        except KeyError:
            raise AccessError(f'No property found named {property_name} in {self.type.__name__}',
                              property_name, self.type) from None

    def get(self, property_name: str) -> Any:
        return self._property(property_name).get_value(self.instance)

    def set(self, property_name: str, value: Any) -> None:
        self._property(property_name).set_value(self.instance, value)

    def property_names(self) -> Collection[str]:
        return self.properties.keys()

    def property_type(self, property_name: str) -> type:
        return self._property(property_name).value_type

    def __repr__(self) -> str:
        return f'ObjectBackedPropertyContainer({self.instance!r})'

"""
Type conversion between storage types and domain types.

Converters are one-argument callables registered under the exact
(source, target) type pair they handle. Lookups that miss the exact pair fall
back to the most specific registered pair the types are compatible with, and
the hit is remembered for the exact pair.

Conversions into enum types never go through the table: they dispatch on the
source type instead (member name for text, identifier for integers and
integral floats).

Usage:
    registry = TypeConverterRegistry()
    to_date = registry.get_converter(str, datetime.date)
    to_date('05/15/2023')
"""
import datetime
import decimal
import enum
import logging
import threading
from collections.abc import Callable, Mapping
from decimal import Decimal
from typing import Any

import dateutil.parser
import numpy as np
import pandas as pd

from entitymap.cache import Cache
from entitymap.exceptions import ConfigurationError, ConversionError
from entitymap.exceptions import InvalidArgumentError
from entitymap.markers import Identified
from entitymap.options import MappingOptions

logger = logging.getLogger(__name__)

Converter = Callable[[Any], Any]

CONVERTER_CACHE = 'converters'
ENUM_CACHE = 'enum_identifiers'

INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1

TRUE_STRINGS = frozenset({'true', 't', 'yes', 'y', '1'})
FALSE_STRINGS = frozenset({'false', 'f', 'no', 'n', '0'})

__all__ = [
    'Converter',
    'DateFormats',
    'IdentifiedEnumMapper',
    'IdentifierToEnum',
    'ObjectToEnum',
    'StringToEnum',
    'TypeConverterRegistry',
    'identifier_of',
    'identity',
    'render_text',
]


def identity(value: Any) -> Any:
    """Return the value unchanged."""
    return value


def render_text(value: Any) -> str:
    """Last resort converter for text targets.

    >>> render_text(12.5)
    '12.5'
    """
    return str(value)


def _blank(value: str) -> bool:
    return not value or not value.strip()


def str_to_int(value: str) -> int | None:
    """Parse an integer; blank text means no value.

    >>> str_to_int(' 42 ')
    42
    >>> str_to_int('  ') is None
    True
    """
    if _blank(value):
        return None
    try:
        return int(value.strip())
    except ValueError as e:
        raise InvalidArgumentError(f'Cannot convert <{value}> to an integer') from e


def str_to_float(value: str) -> float | None:
    if _blank(value):
        return None
    try:
        return float(value.strip())
    except ValueError as e:
        raise InvalidArgumentError(f'Cannot convert <{value}> to a float') from e


def str_to_decimal(value: str) -> Decimal | None:
    """Parse a decimal; blank text means no value.

    >>> str_to_decimal('1234.50')
    Decimal('1234.50')
    """
    if _blank(value):
        return None
    try:
        return Decimal(value.strip())
    except decimal.InvalidOperation as e:
        raise InvalidArgumentError(f'Cannot convert <{value}> to a decimal') from e


def str_to_bool(value: str) -> bool | None:
    """Parse a boolean from the usual spellings.

    >>> str_to_bool('Yes'), str_to_bool('f')
    (True, False)
    """
    if _blank(value):
        return None
    text = value.strip().lower()
    if text in TRUE_STRINGS:
        return True
    if text in FALSE_STRINGS:
        return False
    raise InvalidArgumentError(f'Cannot convert <{value}> to a boolean')


def bool_to_str(value: bool) -> str:
    return 'true' if value else 'false'


def float_to_str(value: float) -> str:
    """Shortest text that reads back as the same float.

    >>> float_to_str(np.float64(1.5))
    '1.5'
    """
    return repr(float(value))


def float_to_int(value: float) -> int:
    """Narrow an integral float, as pandas delivers nullable integer columns.

    >>> float_to_int(np.float64(10.0))
    10
    """
    value = float(value)
    if not value.is_integer():
        raise InvalidArgumentError(f'Cannot convert <{value}> to an integer without losing precision')
    return int(value)


def comma_separated_ints(value: str) -> list[int] | None:
    """Parse a comma separated list of integers; blank text means no value.

    >>> comma_separated_ints('1, 2,3')
    [1, 2, 3]
    """
    if _blank(value):
        return None
    try:
        return [int(item.strip()) for item in value.split(',')]
    except ValueError as e:
        raise InvalidArgumentError(f'Cannot convert <{value}> to a list of integers') from e


def float_to_decimal(value: float) -> Decimal:
    """Convert through the shortest text form so no binary noise is kept.

    >>> float_to_decimal(0.1)
    Decimal('0.1')
    """
    return Decimal(repr(float(value)))


def numpy_to_python(value: np.generic) -> Any:
    """Convert a NumPy scalar to the matching Python scalar.

    >>> numpy_to_python(np.int32(42))
    42
    """
    return value.item()


def int_to_int32(value: int) -> np.int32:
    """Narrow to a 32-bit integer, refusing values that do not fit.

    >>> int(int_to_int32(7))
    7
    """
    value = int(value)
    if not INT32_MIN <= value <= INT32_MAX:
        raise InvalidArgumentError(f'{value} does not fit in a 32-bit integer')
    return np.int32(value)


def int_to_int64(value: int) -> np.int64:
    try:
        return np.int64(int(value))
    except OverflowError as e:
        raise InvalidArgumentError(f'{value} does not fit in a 64-bit integer') from e


def datetime64_to_datetime(value: np.datetime64) -> datetime.datetime:
    return pd.Timestamp(value).to_pydatetime()


def timestamp_to_datetime(value: pd.Timestamp) -> datetime.datetime:
    return value.to_pydatetime()


def timestamp_to_date(value: pd.Timestamp) -> datetime.date:
    return value.date()


def enum_to_name(value: enum.Enum) -> str:
    return value.name


def datetime_to_date(value: datetime.datetime) -> datetime.date:
    return value.date()


def date_to_datetime(value: datetime.date) -> datetime.datetime:
    """Start of the day, in UTC.

    >>> date_to_datetime(datetime.date(2023, 5, 15)).isoformat()
    '2023-05-15T00:00:00+00:00'
    """
    return datetime.datetime.combine(value, datetime.time.min, tzinfo=datetime.timezone.utc)


def decimal_to_datetime(value: Decimal) -> datetime.datetime:
    """Interpret a number as milliseconds since the epoch.

    >>> decimal_to_datetime(Decimal(0)).isoformat()
    '1970-01-01T00:00:00+00:00'
    """
    return datetime.datetime.fromtimestamp(int(value) / 1000, tz=datetime.timezone.utc)


def str_to_time(value: str) -> datetime.time | None:
    if _blank(value):
        return None
    try:
        return datetime.time.fromisoformat(value.strip())
    except ValueError as e:
        raise InvalidArgumentError(f'Cannot convert <{value}> to a time') from e


def time_to_str(value: datetime.time) -> str:
    return value.isoformat()


class DateFormats:
    """Ordered candidate patterns for dates written as text.

    Parsing tries every pattern in order and then ISO-8601; the first pattern
    is also the output format. Parsed values keep their wall-clock fields and
    are stamped UTC, whatever offset the text carried.

    >>> formats = DateFormats(('%m/%d/%Y', '%Y-%m-%d'))
    >>> formats.parse_date('2023-05-15')
    datetime.date(2023, 5, 15)
    >>> formats.format(datetime.date(2023, 5, 15))
    '05/15/2023'
    >>> formats.parse_datetime('2023-05-15T14:30:00+02:00').isoformat()
    '2023-05-15T14:30:00+00:00'
    """

    def __init__(self, patterns: tuple[str, ...]) -> None:
        if not patterns:
            raise ValueError('At least one date pattern is required')
        self.patterns = tuple(patterns)

    @property
    def output_pattern(self) -> str:
        return self.patterns[0]

    def format(self, value: datetime.date) -> str:
        return value.strftime(self.output_pattern)

    def parse_datetime(self, value: str) -> datetime.datetime | None:
        if value is None or _blank(value):
            return None

        text = value.strip()
        for pattern in self.patterns:
            try:
                parsed = datetime.datetime.strptime(text, pattern)
            except ValueError:
                logger.debug(f'Error parsing datetime {text} with pattern {pattern}; trying next pattern')
                continue
            return parsed.replace(tzinfo=datetime.timezone.utc)

        try:
            parsed = dateutil.parser.isoparse(text)
        except (ValueError, OverflowError):
            logger.debug(f'Error parsing datetime {text} as ISO-8601')
        else:
            return parsed.replace(tzinfo=datetime.timezone.utc)

        logger.error(f'Could not convert string to datetime -- no patterns were able to decode {text}')
        raise InvalidArgumentError(f'Could not convert string to datetime -- no patterns were able to decode {text}')

    def parse_date(self, value: str) -> datetime.date | None:
        parsed = self.parse_datetime(value)
        return None if parsed is None else parsed.date()


def identifier_of(member: enum.Enum) -> Any:
    """Storage identifier of an enum member: `identifier` for Identified enums, else the value."""
    if isinstance(member, Identified):
        return member.identifier
    return member.value


class StringToEnum:
    """Look up an enum member by name, retrying upper-cased."""

    def __init__(self, enum_type: type[enum.Enum]) -> None:
        self.enum_type = enum_type

    def __call__(self, value: str) -> enum.Enum:
        try:
            return self.enum_type[value]
        except KeyError:
            pass
        try:
            return self.enum_type[value.upper()]
        except KeyError:
            raise InvalidArgumentError(f'{self.enum_type.__name__} has no member named <{value}>') from None

    def __repr__(self) -> str:
        return f'{type(self).__name__}({self.enum_type.__name__})'


class ObjectToEnum(StringToEnum):
    """Render an opaque driver value as text, then look up by name."""

    def __call__(self, value: Any) -> enum.Enum:
        if isinstance(value, enum.Enum):
            return super().__call__(value.name)
        return super().__call__(str(value))


class IdentifierToEnum:
    """Look up an enum member by its registered identifier."""

    def __init__(self, registry: 'TypeConverterRegistry', enum_type: type[enum.Enum]) -> None:
        self.registry = registry
        self.enum_type = enum_type

    def __call__(self, value: Any) -> enum.Enum:
        if isinstance(value, np.integer):
            value = value.item()
        elif isinstance(value, float | np.floating) and float(value).is_integer():
            value = int(value)
        member = self.registry.lookup_enum(self.enum_type, value)
        if member is None:
            raise InvalidArgumentError(f'{self.enum_type.__name__} has no member with id {value!r}')
        return member

    def __repr__(self) -> str:
        return f'IdentifierToEnum({self.enum_type.__name__})'


def _distance(subclass: type, superclass: type) -> int:
    """Inheritance distance, counting virtual subclasses as farthest."""
    mro = subclass.__mro__
    return mro.index(superclass) if superclass in mro else len(mro)


def _is_enum_type(tp: type) -> bool:
    return isinstance(tp, type) and issubclass(tp, enum.Enum)


class TypeConverterRegistry:
    """Registry of converters keyed by (source, target) type pairs.

    Resolution order for `get_converter(source, target)`:
    1. identity when both types are the same or the target is `object`
    2. enum targets, dispatched on the source type
    3. the exactly registered pair
    4. the most specific compatible registered pair: source is a subclass
       of its source type and its target type is a subclass of target;
       ties go to the smaller source distance, then the smaller target
       distance, then registration order
    5. text rendering when the target is `str`
    """

    def __init__(self, options: MappingOptions | None = None, cache: Cache | None = None) -> None:
        self.options = options or MappingOptions()
        self.cache = cache if cache is not None else Cache()
        self.dates = DateFormats(self.options.date_patterns)
        self._table: dict[tuple[type, type], Converter] = {}
        self._lock = threading.RLock()
        register_baseline_converters(self)

    def register(self, source: type, target: type, converter: Converter) -> None:
        """Register a converter for an exact type pair.

        Remembered fallback matches are forgotten, since the new pair may be
        a better match for them.
        """
        with self._lock:
            self._table[(source, target)] = converter
            self.cache.clear_cache(CONVERTER_CACHE)

    def registered_pairs(self) -> list[tuple[type, type]]:
        return list(self._table)

    def get_converter(self, source: type, target: type) -> Converter | None:
        """Find a converter from source type to target type.

        Returns
            The converter, or None when no conversion is known
        """
        if source is target:
            return identity

        if not isinstance(source, type) or not isinstance(target, type):
            return None

        if target is object:
            return identity

        if _is_enum_type(target):
            return self.cache.get_or_compute(CONVERTER_CACHE, (source, target),
                                             lambda: self._enum_converter(source, target))

        converter = self._table.get((source, target))
        if converter is not None:
            return converter

        memo = self.cache.get_cache(CONVERTER_CACHE).get((source, target))
        if memo is not None:
            return memo

        converter = self._search(source, target)
        if converter is not None:
            self.cache.put(CONVERTER_CACHE, (source, target), converter)
            logger.warning(f'Converter mapping added: {source.__name__} --> {target.__name__} = '
                           f'{getattr(converter, "__name__", converter)!r}')
            logger.info('Consider registering this pair so that searching is not required')
            return converter

        if issubclass(target, str):
            return render_text

        return None

    def _enum_converter(self, source: type, target: type[enum.Enum]) -> Converter:
        if issubclass(source, str):
            return StringToEnum(target)
        if issubclass(source, (int, np.integer)) and not issubclass(source, (bool, np.bool_)):
            return IdentifierToEnum(self, target)
        if issubclass(source, (float, np.floating)):
            # nullable integer columns arrive as floats
            return IdentifierToEnum(self, target)
        # opaque driver objects (e.g. database enum labels) render to their name
        return ObjectToEnum(target)

    def _search(self, source: type, target: type) -> Converter | None:
        best = None
        best_rank = None
        for index, ((row, col), converter) in enumerate(list(self._table.items())):
            if not (issubclass(source, row) and issubclass(col, target)):
                continue
            rank = (_distance(source, row), _distance(col, target), index)
            if best_rank is None or rank < best_rank:
                best, best_rank = converter, rank
        return best

    def convert(self, value: Any, target: type) -> Any:
        """Convert a single value to the target type.

        Raises
            ConversionError: if no converter exists for the value's type
        """
        if value is None:
            return None
        converter = self.get_converter(type(value), target)
        if converter is None:
            raise ConversionError(f'No converter found: {type(value).__name__} --> {target.__name__}')
        return converter(value)

    def register_identified_enum(self, enum_type: type[enum.Enum]) -> Mapping[Any, enum.Enum]:
        """Build the identifier table of an enum type, once.

        Identifiers come from `Identified.identifier`, else the member value.

        Returns
            The identifier -> member table
        """
        if not _is_enum_type(enum_type):
            raise ConfigurationError(f'{enum_type!r} is not an enum type')
        return self.cache.get_or_compute(ENUM_CACHE, enum_type, lambda: _identifier_table(enum_type))

    def lookup_enum(self, enum_type: type[enum.Enum], identifier: Any) -> enum.Enum | None:
        """Find the member of a registered enum type carrying the identifier."""
        table = self.cache.get_cache(ENUM_CACHE).get(enum_type)
        if table is None:
            raise InvalidArgumentError(f'{enum_type.__name__} has no registered identifiers; '
                                       'call register_identified_enum first')
        try:
            return table.get(identifier)
        except TypeError:
            return None


def _identifier_table(enum_type: type[enum.Enum]) -> Mapping[Any, enum.Enum]:
    table: dict[Any, enum.Enum] = {}
    for member in enum_type:
        identifier = identifier_of(member)
        try:
            if identifier in table:
                raise ConfigurationError(f'{enum_type.__name__}.{member.name} repeats identifier '
                                         f'{identifier!r} of {table[identifier].name}')
            table[identifier] = member
        except TypeError as e:
            raise ConfigurationError(f'{enum_type.__name__}.{member.name} identifier '
                                     f'{identifier!r} is not hashable') from e
    logger.debug(f'Registered {len(table)} identifiers for {enum_type.__name__}')
    return table


def register_baseline_converters(registry: TypeConverterRegistry) -> None:
    """Register the conversions every registry starts with."""
    dates = registry.dates
    register = registry.register

    # numbers and text
    register(int, str, str)
    register(str, int, str_to_int)
    register(float, int, float_to_int)
    register(np.floating, int, float_to_int)
    register(float, str, float_to_str)
    register(str, float, str_to_float)
    register(Decimal, str, str)
    register(str, Decimal, str_to_decimal)
    register(bool, str, bool_to_str)
    register(str, bool, str_to_bool)

    # numeric widening and narrowing
    register(int, float, float)
    register(int, Decimal, Decimal)
    register(Decimal, int, int)
    register(Decimal, float, float)
    register(float, Decimal, float_to_decimal)
    register(bool, int, int)
    register(int, bool, bool)
    register(np.integer, int, numpy_to_python)
    register(np.floating, float, numpy_to_python)
    register(np.bool_, bool, numpy_to_python)
    register(str, list, comma_separated_ints)
    register(int, np.int64, int_to_int64)
    register(int, np.int32, int_to_int32)

    # enums render by name
    register(enum.Enum, str, enum_to_name)

    # dates and times
    register(datetime.date, str, dates.format)
    register(datetime.datetime, str, dates.format)
    register(str, datetime.date, dates.parse_date)
    register(str, datetime.datetime, dates.parse_datetime)
    register(str, datetime.time, str_to_time)
    register(datetime.time, str, time_to_str)
    register(datetime.datetime, datetime.date, datetime_to_date)
    register(datetime.date, datetime.datetime, date_to_datetime)
    register(Decimal, datetime.datetime, decimal_to_datetime)
    register(np.datetime64, datetime.datetime, datetime64_to_datetime)
    register(pd.Timestamp, datetime.datetime, timestamp_to_datetime)
    register(pd.Timestamp, datetime.date, timestamp_to_date)


class IdentifiedEnumMapper:
    """Parse text into enum members by identifier.

    Blank text gives None. Text naming no identifier gives None, or raises
    InvalidArgumentError when strict.

    Args:
        identity_type: Type of the enum's identifiers
        enum_type: The enum type
        registry: Converter registry supplying str --> identity_type
        strict: Raise instead of returning None for unknown identifiers
    """

    def __init__(self, identity_type: type, enum_type: type[enum.Enum],
                 registry: TypeConverterRegistry | None = None,
                 strict: bool | None = None) -> None:
        self.registry = registry or TypeConverterRegistry()
        self.enum_type = enum_type
        self.strict = self.registry.options.strict_enum_text if strict is None else strict

        self.converter = self.registry.get_converter(str, identity_type)
        if self.converter is None:
            raise InvalidArgumentError(f"Can't map enums when no converter exists for "
                                       f'str --> {getattr(identity_type, "__name__", identity_type)}')
        try:
            self.registry.register_identified_enum(enum_type)
        except ConfigurationError as e:
            raise InvalidArgumentError(f'Error mapping enums by identifier for {enum_type.__name__}') from e

    def from_text(self, text: str | None) -> enum.Enum | None:
        if text is None:
            return None

        text = text.strip()
        identifier = self.converter(text)

        if identifier is None or identifier == '':
            if self.strict:
                raise InvalidArgumentError(f'Could not get an identifier from text <{text}> '
                                           f'for enum {self.enum_type.__name__}')
            return None

        member = self.registry.lookup_enum(self.enum_type, identifier)
        if member is None and self.strict:
            raise InvalidArgumentError(f'Invalid id {identifier!r} for enum {self.enum_type.__name__}')
        return member

    __call__ = from_text

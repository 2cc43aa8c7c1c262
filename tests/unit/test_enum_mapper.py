"""
Tests for parsing text into enum members by identifier.
"""
import enum

import pytest
from tests.fixtures.entities import LongEnum, StringEnum

from entitymap import Identified, IdentifiedEnumMapper, InvalidArgumentError
from entitymap import MappingOptions, TypeConverterRegistry


@pytest.mark.parametrize(('text', 'expected'), [
    (None, None),
    ('', None),
    (' ', None),
    ('0', None),
    ('1 ', LongEnum.A),
    ('1', LongEnum.A),
    (' 42', LongEnum.B),
    ('-3000', LongEnum.C),
])
def test_long_identifiers(text, expected):
    mapper = IdentifiedEnumMapper(int, LongEnum)
    assert mapper.from_text(text) is expected


@pytest.mark.parametrize(('text', 'expected'), [
    (None, None),
    ('', None),
    ('FIRST\t', StringEnum.A),
    ('  SECOND', StringEnum.B),
    ('THIRD', StringEnum.C),
    ('0', None),
])
def test_string_identifiers(text, expected):
    mapper = IdentifiedEnumMapper(str, StringEnum)
    assert mapper(text) is expected


def test_identity_type_without_converter():
    """An identity type that text cannot be converted to is rejected up front"""
    class Dummy:
        pass

    with pytest.raises(InvalidArgumentError):
        IdentifiedEnumMapper(Dummy, LongEnum)


def test_strict_mapper_rejects_unknown_text():
    mapper = IdentifiedEnumMapper(int, LongEnum, strict=True)
    assert mapper.from_text('42') is LongEnum.B

    with pytest.raises(InvalidArgumentError):
        mapper.from_text('7')

    with pytest.raises(InvalidArgumentError):
        mapper.from_text('  ')


def test_strict_default_comes_from_options():
    registry = TypeConverterRegistry(MappingOptions(strict_enum_text=True))
    mapper = IdentifiedEnumMapper(int, LongEnum, registry)
    assert mapper.strict

    with pytest.raises(InvalidArgumentError):
        mapper('99')


def test_unparseable_identifier_raises():
    mapper = IdentifiedEnumMapper(int, LongEnum)
    with pytest.raises(InvalidArgumentError):
        mapper.from_text('forty-two')


def test_duplicate_identifiers_rejected():
    class Repeats(Identified, enum.Enum):
        ONE = 'one'
        UNO = 'uno'

        @property
        def identifier(self):
            return 1

    with pytest.raises(InvalidArgumentError):
        IdentifiedEnumMapper(int, Repeats)


def test_mapper_registers_enum_with_registry():
    registry = TypeConverterRegistry()
    IdentifiedEnumMapper(int, LongEnum, registry)
    assert registry.lookup_enum(LongEnum, -3000) is LongEnum.C


if __name__ == '__main__':
    __import__('pytest').main([__file__])

from __future__ import annotations

import dataclasses
import datetime
import decimal
import fractions
import uuid

import pytest

from dualform import converters, errors, formats, registry


@pytest.mark.parametrize(
    "value",
    (
        datetime.date(1547, 9, 29),
        datetime.datetime(2022, 5, 4, 12, 30, 1, 5),
        datetime.time(23, 59, 1),
        uuid.UUID("12345678-1234-5678-1234-567812345678"),
        decimal.Decimal("-1.50"),
        decimal.Decimal("1E+3"),
    ),
)
def test_builtin_converters_roundtrip(value):
    conv = converters.get_converter(type(value))
    assert conv.parse(conv.format(value)) == value


def test_invalid_decimal():
    with pytest.raises(ValueError):
        converters.get_converter(decimal.Decimal).parse("one")


def test_register_infers_type():
    @converters.register(parse=fractions.Fraction)
    def _format_fraction(f: fractions.Fraction) -> str:
        return str(f)

    conv = converters.get_converter(fractions.Fraction)
    assert conv.type is fractions.Fraction
    assert conv.format(fractions.Fraction(1, 3)) == "1/3"


def test_register_explicit_type():
    converters.register(str, parse=fractions.Fraction, type=fractions.Fraction)
    assert converters.lookup(fractions.Fraction) is not None


def test_register_without_annotation():
    with pytest.raises(ValueError):
        converters.register(lambda x: str(x), parse=int)


def test_exact_type_lookup():
    class MyUUID(uuid.UUID):
        pass

    assert converters.lookup(uuid.UUID) is not None
    assert converters.lookup(MyUUID) is None
    with pytest.raises(errors.UnsupportedTypeError):
        converters.get_converter(MyUUID)


@dataclasses.dataclass
class Measure:
    value: fractions.Fraction


def test_custom_scalar_in_record():
    converters.register(str, parse=fractions.Fraction, type=fractions.Fraction)
    m = Measure(fractions.Fraction(3, 4))
    assert formats.dumps(m) == "value: 3/4\n"
    assert formats.loads("value: 3/4\n", Measure) == m


def test_custom_scalar_parse_error():
    converters.register(str, parse=fractions.Fraction, type=fractions.Fraction)
    with pytest.raises(errors.TypeMismatchError) as exc_info:
        formats.loads("value: three quarters\n", Measure)
    assert exc_info.value.path == "value"
    assert isinstance(exc_info.value.__cause__, ValueError)


def test_unregistered_converter():
    with pytest.raises(errors.UnsupportedTypeError):
        registry.describe(Measure)

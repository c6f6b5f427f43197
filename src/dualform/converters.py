"""
``dualform.converters``: Custom scalar types
============================================

Types that are neither primitives nor records can be serialised as long as
they have a registered :class:`Converter`: a pair of functions that convert
values to and from text.

Converters have to obey the round-trip law ``parse(format(x)) == x``::

  >>> from decimal import Decimal
  >>> conv = get_converter(Decimal)
  >>> conv.format(Decimal("1.50"))
  '1.50'
  >>> conv.parse(conv.format(Decimal("1.50")))
  Decimal('1.50')

Lookups are done on the exact type of the value; converters are not inherited
by subclasses.
"""
from __future__ import annotations

import dataclasses
import datetime
import decimal
import inspect
import typing
import uuid
import weakref
from typing import Any, Callable, Generic, Type, TypeAlias, TypeVar

from dualform import errors, utils

T = TypeVar("T")

Formatter: TypeAlias = Callable[[T], str]
Parser: TypeAlias = Callable[[str], T]

__all__ = ("Converter", "register", "get_converter", "lookup")


@dataclasses.dataclass(frozen=True, slots=True)
class Converter(Generic[T]):
    """Bidirectional mapping between a type and its textual representation.

    Parameters:
      type: the type this converter handles
      parse: text -> value
      format: value -> text
    """

    type: Type[T]
    parse: Parser[T]
    format: Formatter[T]


DISPATCH_TABLE = weakref.WeakKeyDictionary[Type[Any], Converter[Any]]()


def _infer_formatter_type(f: Formatter[T]) -> Type[T]:
    values = list(inspect.signature(f, eval_str=True).parameters.values())
    if len(values) != 1:
        raise ValueError(
            "The registered function should take only one argument"
        )
    [arg] = values
    ty = arg.annotation
    if ty is inspect.Parameter.empty:
        raise ValueError(
            f"Cannot infer the type handled by {f.__name__}: add a type "
            "annotation or pass the `type` argument"
        )
    origin = typing.get_origin(ty)
    if origin is not None:
        ty = origin
    return typing.cast(Type[T], ty)


@typing.overload
def register(
    format: Formatter[T], /, *, parse: Parser[T], type: Type[T] | None = None
) -> Formatter[T]:  # pragma: no cover
    ...


@typing.overload
def register(
    *, parse: Parser[T], type: Type[T] | None = None
) -> Callable[[Formatter[T]], Formatter[T]]:  # pragma: no cover
    ...


def register(
    format: Formatter[T] | None = None,
    /,
    *,
    parse: Parser[T],
    type: Type[T] | None = None,
) -> Formatter[T] | Callable[[Formatter[T]], Formatter[T]]:
    """Register a converter for a custom scalar type.

    *format* takes values of type *T* and returns their text representation,
    *parse* does the reverse. If *type* is not specified, :func:`register`
    uses the type annotation on the first argument of *format*.

    Here are two equivalent ways to add support for :class:`complex`::

        >>> @register(parse=complex)
        ... def _format_complex(c: complex) -> str:
        ...   return str(c)

        >>> _ = register(str, parse=complex, type=complex)

    Types have to be registered before the first record that uses them is
    described.

    Args:

      format: Function used to convert values to text

      parse: Function used to convert text back to values. It should raise
        :class:`ValueError` (or :class:`TypeError`) on invalid input.

      type: The type we are registering the converter for
    """

    def wrapper(format: Formatter[T]) -> Formatter[T]:
        cls = _infer_formatter_type(format) if type is None else type
        DISPATCH_TABLE[cls] = Converter(cls, parse, format)
        return format

    if format is None:
        return wrapper
    return wrapper(format)


def lookup(ty: Type[T]) -> Converter[T] | None:
    "Get the converter for a given type, if there is one."
    return DISPATCH_TABLE.get(ty)


def get_converter(ty: Type[T]) -> Converter[T]:
    """Get the converter for a given type."""
    conv = lookup(ty)
    if conv is None:
        raise errors.UnsupportedTypeError(
            f"No converter registered for {utils.type_name(ty)}", cls=ty
        )
    return conv


def _isoformat(v: datetime.date | datetime.time) -> str:
    return v.isoformat()


register(_isoformat, parse=datetime.date.fromisoformat, type=datetime.date)
register(
    _isoformat, parse=datetime.datetime.fromisoformat, type=datetime.datetime
)
register(_isoformat, parse=datetime.time.fromisoformat, type=datetime.time)


@register(parse=uuid.UUID)
def _format_uuid(u: uuid.UUID) -> str:
    return str(u)


def _parse_decimal(s: str) -> decimal.Decimal:
    try:
        return decimal.Decimal(s)
    except decimal.InvalidOperation:
        raise ValueError(f"Invalid decimal literal: {s!r}") from None


register(str, parse=_parse_decimal, type=decimal.Decimal)

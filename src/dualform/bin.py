"""
``dualform.bin``: msgpack based binary format
=============================================

Encode value trees in `MessagePack <https://msgpack.org/>`_::

  >>> import dataclasses
  >>> @dataclasses.dataclass
  ... class Author:
  ...   name: str
  ...   born: int
  >>> packed = dump_bin(Author("Cervantes", 1547))
  >>> packed
  b'\\x82\\xa4name\\xa9Cervantes\\xa4born\\xcd\\x06\\x0b'
  >>> load_bin(packed, Author)
  Author(name='Cervantes', born=1547)

Scalars are stored with their native msgpack type (strings, integers, floats
and booleans) so the kind of every scalar survives the round trip.
"""

from __future__ import annotations

import pickle
from typing import Any, Final, Iterable, Iterator, Type, TypeVar

import msgpack

from dualform import base, binder, errors, tree
from dualform.base import ScalarKind

T = TypeVar("T")
V = TypeVar("V")

__all__ = (
    "dump_bin",
    "dump_bin_many",
    "load_bin",
    "load_bin_many",
    "Ext",
    "BinPacker",
    "reduce_bin",
)

MAX_RAW_INT: Final = 2**64 - 1
MIN_RAW_INT: Final = -(2**63)

encode_long: Final = pickle.encode_long
decode_long: Final = pickle.decode_long


class Ext:
    """The `messagepack extensions`_ used by *dualform*

    Attributes:

      LONG(): An :class:`int` that is too big (resp too small) to be encoded
        directly in msgpack. The payload is encoded as two's complement
        little-endian int.
    """

    LONG: Final = 0


def _pack_int(value: int) -> int | msgpack.ExtType:
    if MIN_RAW_INT <= value <= MAX_RAW_INT:
        return value
    return msgpack.ExtType(Ext.LONG, encode_long(value))


class BinPacker(base.Accumulator[Any, bytes]):
    """Writer for binary encoded values."""

    def scalar(self, text: str, kind: ScalarKind) -> Any:
        match kind:
            case ScalarKind.INT:
                return _pack_int(int(text))
            case ScalarKind.FLOAT:
                return float(text)
            case ScalarKind.BOOL:
                return text == "true"
        return text

    def null(self) -> Any:
        return None

    def sequence(self, size: int, items: Iterator[Any]) -> Any:
        return list(items)

    def mapping(self, size: int, items: Iterator[tuple[str, Any]]) -> Any:
        return dict(items)

    def root(self, value: Any) -> bytes:
        packed: bytes = msgpack.packb(value, use_bin_type=True)
        return packed


class _Pairs(tuple[tuple[Any, Any], ...]):
    "msgpack maps, as read by the unpacker"


def _format_number(value: int | float) -> tuple[str, ScalarKind]:
    if isinstance(value, int):
        return str(value), ScalarKind.INT
    return base.format_float(value), ScalarKind.FLOAT


def reduce_bin(
    packed: bytes,
    acc: base.Accumulator[T, V],
    *,
    max_depth: int = base.MAX_DEPTH,
) -> V:
    """Read a binary encoded value.

    Raises:
      MalformedInputError:
      DepthExceededError:
    """
    scalar = acc.scalar
    null = acc.null
    sequence = acc.sequence
    mapping = acc.mapping
    depth = 0

    def reduce_entries(pairs: _Pairs) -> Iterator[tuple[str, T]]:
        seen = set()
        for k, v in pairs:
            if not isinstance(k, str):
                raise errors.MalformedInputError(
                    f"map keys should be strings, got {type(k).__name__}"
                )
            if k in seen:
                raise errors.MalformedInputError(f"duplicate key {k!r}")
            seen.add(k)
            yield k, reduce(v)

    def reduce(exp: Any) -> T:
        nonlocal depth
        match exp:
            case None:
                return null()
            case bool():
                return scalar("true" if exp else "false", ScalarKind.BOOL)
            case int() | float():
                return scalar(*_format_number(exp))
            case str():
                return scalar(exp, ScalarKind.STR)
            case msgpack.ExtType(code=Ext.LONG, data=data):
                try:
                    digits = str(decode_long(data))
                except ValueError as e:
                    raise errors.MalformedInputError(str(e)) from e
                return scalar(digits, ScalarKind.INT)
            case msgpack.ExtType(code=code):
                raise errors.MalformedInputError(
                    f"unknown msgpack extension type: {code}"
                )
            case _Pairs() | tuple():
                if depth >= max_depth:
                    raise errors.DepthExceededError(max_depth)
                depth += 1
                try:
                    if isinstance(exp, _Pairs):
                        return mapping(len(exp), reduce_entries(exp))
                    return sequence(len(exp), (reduce(elt) for elt in exp))
                finally:
                    depth -= 1
        raise errors.MalformedInputError(
            f"unsupported msgpack value of type {type(exp).__name__}"
        )

    try:
        value = msgpack.unpackb(
            packed,
            use_list=False,
            raw=False,
            object_pairs_hook=_Pairs,
            strict_map_key=False,
        )
    except (msgpack.UnpackException, ValueError) as e:
        raise errors.MalformedInputError(f"invalid msgpack data: {e}") from e
    return acc.root(reduce(value))


def dump_bin(obj: Any, *, max_depth: int = base.MAX_DEPTH) -> bytes:
    """Serialise the record *obj* to the binary format"""
    return base.reduce_instance(obj, BinPacker(), max_depth=max_depth)


def dump_bin_many(
    objs: Iterable[Any], *, max_depth: int = base.MAX_DEPTH
) -> bytes:
    """Serialise a sequence of records as a msgpack array"""
    return base.reduce_instance(list(objs), BinPacker(), max_depth=max_depth)


def load_bin(
    packed: bytes, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
) -> T:
    """Read an instance of *cls* written in binary format"""
    node = reduce_bin(packed, tree.TreeBuilder(), max_depth=max_depth)
    return binder.implode(node, cls, max_depth=max_depth)


def load_bin_many(
    packed: bytes, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
) -> list[T]:
    """Read a list of instances of *cls* written in binary format"""
    node = reduce_bin(packed, tree.TreeBuilder(), max_depth=max_depth)
    return binder.implode_many(node, cls, max_depth=max_depth)

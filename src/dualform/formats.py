"""
``dualform.formats``: One interface for all the formats
=======================================================

Every format is available as a :class:`Codec`::

  >>> import dataclasses
  >>> @dataclasses.dataclass
  ... class Point:
  ...   x: int
  ...   y: int
  >>> print(INDENT.serialize(Point(1, 2)), end="")
  x: 1
  y: 2
  >>> TAGS.serialize(Point(1, 2))
  '<Point><x>1</x><y>2</y></Point>'
  >>> TAGS.deserialize_sequence(TAGS.serialize_sequence([Point(1, 2)]), Point)
  [Point(x=1, y=2)]

or through :func:`dumps` and :func:`loads`:

  >>> loads(dumps(Point(1, 2), format=Format.BIN), Point, format=Format.BIN)
  Point(x=1, y=2)
"""
from __future__ import annotations

import dataclasses
import enum
from typing import Any, Callable, Final, Generic, Iterable, Type, TypeVar

from dualform import base, bin, indent, tags

T = TypeVar("T")
D = TypeVar("D", str, bytes)

__all__ = (
    "Format",
    "Codec",
    "INDENT",
    "TAGS",
    "BIN",
    "get_codec",
    "dumps",
    "dumps_many",
    "loads",
    "loads_many",
)


class Format(enum.Enum):
    """Which format to use for :func:`dumps` and :func:`loads`"""

    #: Indentation structured text (see :mod:`dualform.indent`).
    INDENT = enum.auto()

    #: Tag nested text (see :mod:`dualform.tags`).
    TAGS = enum.auto()

    #: MessagePack (see :mod:`dualform.bin`).
    BIN = enum.auto()


@dataclasses.dataclass(frozen=True, slots=True)
class Codec(Generic[D]):
    """The four operations of a format.

    Every operation takes an optional ``max_depth`` keyword argument that
    bounds the nesting depth of the values and documents it handles.
    """

    format: Format
    dump: Callable[..., D]
    dump_many: Callable[..., D]
    load: Callable[..., Any]
    load_many: Callable[..., list[Any]]

    def serialize(
        self, instance: Any, *, max_depth: int = base.MAX_DEPTH
    ) -> D:
        "Write a record"
        return self.dump(instance, max_depth=max_depth)

    def serialize_sequence(
        self, instances: Iterable[Any], *, max_depth: int = base.MAX_DEPTH
    ) -> D:
        "Write a sequence of records"
        return self.dump_many(instances, max_depth=max_depth)

    def deserialize(
        self, data: D, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
    ) -> T:
        """Read an instance of the record type *cls*

        Raises:
          MalformedInputError: if *data* is not a valid document
          BindError: if the document doesn't match *cls*
          DepthExceededError:
          UnsupportedTypeError: if *cls* cannot be described
        """
        res: T = self.load(data, cls, max_depth=max_depth)
        return res

    def deserialize_sequence(
        self, data: D, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
    ) -> list[T]:
        "Read a list of instances of the record type *cls*"
        return self.load_many(data, cls, max_depth=max_depth)


INDENT: Final[Codec[str]] = Codec(
    Format.INDENT,
    dump=indent.dump_indent,
    dump_many=indent.dump_indent_many,
    load=indent.load_indent,
    load_many=indent.load_indent_many,
)

TAGS: Final[Codec[str]] = Codec(
    Format.TAGS,
    dump=tags.dump_tags,
    dump_many=tags.dump_tags_many,
    load=tags.load_tags,
    load_many=tags.load_tags_many,
)

BIN: Final[Codec[bytes]] = Codec(
    Format.BIN,
    dump=bin.dump_bin,
    dump_many=bin.dump_bin_many,
    load=bin.load_bin,
    load_many=bin.load_bin_many,
)

_CODECS: Final = {codec.format: codec for codec in (INDENT, TAGS, BIN)}


def get_codec(format: Format) -> Codec[Any]:
    """
    >>> get_codec(Format.TAGS) is TAGS
    True
    """
    return _CODECS[format]


def dumps(
    obj: Any,
    *,
    format: Format = Format.INDENT,
    max_depth: int = base.MAX_DEPTH,
) -> Any:
    """Serialise the record *obj*

    Args:
      obj: The value to serialise
      format: One of :attr:`Format.INDENT` (the default),
        :attr:`Format.TAGS` or :attr:`Format.BIN`. The result is a
        :class:`bytes` for :attr:`Format.BIN` and a :class:`str` otherwise.
      max_depth(int): maximum nesting depth of *obj*
    """
    return get_codec(format).serialize(obj, max_depth=max_depth)


def dumps_many(
    objs: Iterable[Any],
    *,
    format: Format = Format.INDENT,
    max_depth: int = base.MAX_DEPTH,
) -> Any:
    """Serialise a sequence of records"""
    return get_codec(format).serialize_sequence(objs, max_depth=max_depth)


def loads(
    data: str | bytes,
    cls: Type[T],
    *,
    format: Format = Format.INDENT,
    max_depth: int = base.MAX_DEPTH,
) -> T:
    """Read an instance of *cls* written with :func:`dumps`"""
    res: T = get_codec(format).deserialize(data, cls, max_depth=max_depth)
    return res


def loads_many(
    data: str | bytes,
    cls: Type[T],
    *,
    format: Format = Format.INDENT,
    max_depth: int = base.MAX_DEPTH,
) -> list[T]:
    """Read a list of instances of *cls* written with :func:`dumps_many`"""
    res: list[T] = get_codec(format).deserialize_sequence(
        data, cls, max_depth=max_depth
    )
    return res

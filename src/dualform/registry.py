"""
``dualform.registry``: Describing record types
==============================================

:func:`describe` turns a record type (a :mod:`dataclasses` dataclass or a
:class:`typing.NamedTuple`) into a :class:`TypeDescriptor`: the ordered list of
its fields along with how each one should be converted.

    >>> import dataclasses
    >>> @dataclasses.dataclass
    ... class Point:
    ...   x: int
    ...   y: int = 0
    ...   label: str | None = None
    >>> [(f.external_name, f.kind) for f in describe(Point).fields]
    [('x', Primitive(type=<class 'int'>)), ('y', Primitive(type=<class 'int'>)), ('label', Primitive(type=<class 'str'>))]
    >>> describe(Point) is describe(Point)
    True

Descriptors are built once, on first use, and then cached for the lifetime of
the process.

Naming overrides are read from a configuration table filled via
:func:`configure`. The table is consumed when the descriptor is built; a type
cannot be reconfigured afterwards.

"""
from __future__ import annotations

import collections.abc
import dataclasses
import enum
import logging
import threading
import types
import typing
from typing import Any, Callable, Iterator, Mapping, Type, TypeAlias, TypeVar

from dualform import converters, errors, utils

__all__ = (
    "TypeDescriptor",
    "FieldDescriptor",
    "Kind",
    "Primitive",
    "CustomScalar",
    "Record",
    "SequenceOf",
    "EnumKind",
    "describe",
    "configure",
    "is_record",
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

PRIMITIVES: tuple[type, ...] = (str, int, float, bool)


@dataclasses.dataclass(frozen=True, slots=True)
class Primitive:
    "One of :class:`str`, :class:`int`, :class:`float` or :class:`bool`"

    type: type


@dataclasses.dataclass(frozen=True, slots=True)
class CustomScalar:
    "A type handled by a registered :class:`~dualform.converters.Converter`"

    converter: converters.Converter[Any]


@dataclasses.dataclass(frozen=True, slots=True)
class EnumKind:
    """An enumeration.

    Values are represented by the name of their member.
    """

    type: Type[enum.Enum]
    labels: tuple[str, ...]


@dataclasses.dataclass(frozen=True, slots=True)
class Record:
    """A nested record.

    The descriptor is looked up when needed so that types can refer to
    themselves.
    """

    type: type

    @property
    def descriptor(self) -> TypeDescriptor:
        return describe(self.type)


@dataclasses.dataclass(frozen=True, slots=True)
class SequenceOf:
    """A homogeneous sequence.

    Parameters:
      element(Kind): kind of the elements
      container: type used to rebuild the sequence (:class:`list` or
        :class:`tuple`)
    """

    element: Kind
    container: type = list


Kind: TypeAlias = Primitive | CustomScalar | EnumKind | Record | SequenceOf


@dataclasses.dataclass(frozen=True, slots=True)
class FieldDescriptor:
    """A field of a record.

    Parameters:
      name(str): the attribute name
      external_name(str): the name used in serialised documents
      kind(Kind):
      nullable(bool): whether ``None`` is an acceptable value
      default: a thunk that returns the default value (``None`` if the field
        has no default)
    """

    name: str
    external_name: str
    kind: Kind
    nullable: bool = False
    default: Callable[[], Any] | None = None

    @property
    def has_default(self) -> bool:
        return self.default is not None


@dataclasses.dataclass(frozen=True, slots=True)
class TypeDescriptor:
    """The cached description of a record type.

    Parameters:
      type: the record type
      root_name(str): name used for the top-level element of a document
      fields(tuple[FieldDescriptor, ...]): in declaration order
    """

    type: type
    root_name: str
    fields: tuple[FieldDescriptor, ...]
    by_name: Mapping[str, FieldDescriptor] = dataclasses.field(
        repr=False, compare=False
    )

    def __iter__(self) -> Iterator[FieldDescriptor]:
        return iter(self.fields)

    def construct(self, values: dict[str, Any]) -> Any:
        "Build an instance from its attribute values."
        return self.type(**values)


@dataclasses.dataclass(frozen=True, slots=True)
class Metadata:
    root_name: str | None = None
    fields: Mapping[str, str] = dataclasses.field(default_factory=dict)


# Published descriptors. Reads are done without taking the lock.
DESCRIPTORS: dict[type, TypeDescriptor] = {}

METADATA: dict[type, Metadata] = {}

_LOCK = threading.RLock()

# Types being built by the current thread, along with descriptors that are
# not published yet.
_local = threading.local()


def is_record(ty: Any) -> bool:
    """Is *ty* a type that can be described?

    >>> is_record(int)
    False
    """
    if not isinstance(ty, type):
        return False
    if dataclasses.is_dataclass(ty):
        return True
    return issubclass(ty, tuple) and hasattr(ty, "_fields")


@typing.overload
def configure(cls: Type[T], /, **kwargs: Any) -> Type[T]:  # pragma: no cover
    ...


@typing.overload
def configure(
    *, root_name: str | None = None, fields: Mapping[str, str] | None = None
) -> Callable[[Type[T]], Type[T]]:  # pragma: no cover
    ...


def configure(
    cls: Type[T] | None = None,
    /,
    *,
    root_name: str | None = None,
    fields: Mapping[str, str] | None = None,
) -> Type[T] | Callable[[Type[T]], Type[T]]:
    """Set the naming overrides of a record type.

    *root_name* replaces the name of the type as the name of top-level
    elements. *fields* maps attribute names to the name they should have in
    serialised documents.

    :func:`configure` can be called directly or used as a class decorator::

        >>> import dataclasses
        >>> @configure(root_name="book", fields={"year": "published"})
        ... @dataclasses.dataclass
        ... class Book:
        ...   title: str
        ...   year: int
        >>> desc = describe(Book)
        >>> desc.root_name, [f.external_name for f in desc.fields]
        ('book', ['title', 'published'])

    Raises:
      ValueError: if the type was already described
    """

    def wrapper(cls: Type[T]) -> Type[T]:
        with _LOCK:
            if cls in DESCRIPTORS:
                raise ValueError(
                    f"{utils.type_name(cls)} was already described, it "
                    "cannot be configured anymore"
                )
            METADATA[cls] = Metadata(root_name, dict(fields or {}))
        return cls

    if cls is None:
        return wrapper
    return wrapper(cls)


def describe(cls: type) -> TypeDescriptor:
    """Get the :class:`TypeDescriptor` of a record type.

    Raises:
      UnsupportedTypeError: if *cls* is not a record or if one of its fields
        has a type that cannot be converted
    """
    desc = DESCRIPTORS.get(cls)
    if desc is not None:
        return desc
    pending: dict[type, TypeDescriptor] | None = getattr(
        _local, "pending", None
    )
    if pending is not None and cls in pending:
        return pending[cls]
    with _LOCK:
        # Someone else might have published it while we were waiting
        desc = DESCRIPTORS.get(cls)
        if desc is not None:
            return desc
        if pending is not None:
            # Nested call while building a type graph.
            _build(cls, pending)
            return pending[cls]
        _local.pending = pending = {}
        try:
            _build(cls, pending)
            DESCRIPTORS.update(pending)
            return pending[cls]
        finally:
            del _local.pending


def _build(cls: type, pending: dict[type, TypeDescriptor]) -> None:
    if not is_record(cls):
        raise errors.UnsupportedTypeError(
            f"{utils.type_name(cls)} is not a record type", cls=cls
        )
    logger.debug("Describing %s", utils.type_name(cls))
    meta = METADATA.get(cls, Metadata())
    try:
        hints = typing.get_type_hints(cls)
    except NameError as e:
        raise errors.UnsupportedTypeError(
            f"Cannot resolve the annotations of {utils.type_name(cls)}: {e}",
            cls=cls,
        ) from e

    fields: list[FieldDescriptor] = []
    for name, default in _iter_fields(cls):
        try:
            hint = hints[name]
        except KeyError:
            raise errors.UnsupportedTypeError(
                f"{utils.type_name(cls)}.{name} has no type annotation",
                cls=cls,
                field=name,
            ) from None
        nullable, hint = _strip_optional(hint)
        fields.append(
            FieldDescriptor(
                name=name,
                external_name=meta.fields.get(name, name),
                kind=_resolve_kind(hint, cls, name),
                nullable=nullable,
                default=default,
            )
        )

    known = {f.name for f in fields}
    for name in meta.fields:
        if name not in known:
            raise errors.UnsupportedTypeError(
                f"{utils.type_name(cls)} has no field named {name!r}",
                cls=cls,
                field=name,
            )
    by_name: dict[str, FieldDescriptor] = {}
    for field in fields:
        if field.external_name in by_name:
            raise errors.UnsupportedTypeError(
                f"{utils.type_name(cls)}: two fields are named "
                f"{field.external_name!r}",
                cls=cls,
                field=field.name,
            )
        by_name[field.external_name] = field

    # Publish before visiting nested records so that recursive types
    # terminate.
    pending[cls] = TypeDescriptor(
        type=cls,
        root_name=meta.root_name or cls.__name__,
        fields=tuple(fields),
        by_name=types.MappingProxyType(by_name),
    )
    for field in fields:
        for nested in _iter_records(field.kind):
            if nested not in DESCRIPTORS and nested not in pending:
                _build(nested, pending)


def _iter_fields(
    cls: type,
) -> Iterator[tuple[str, Callable[[], Any] | None]]:
    if dataclasses.is_dataclass(cls):
        for field in dataclasses.fields(cls):
            if not field.init:
                continue
            if field.default is not dataclasses.MISSING:
                yield field.name, _constant(field.default)
            elif field.default_factory is not dataclasses.MISSING:
                yield field.name, field.default_factory
            else:
                yield field.name, None
    else:
        defaults: dict[str, Any] = getattr(cls, "_field_defaults", {})
        for name in getattr(cls, "_fields"):
            if name in defaults:
                yield name, _constant(defaults[name])
            else:
                yield name, None


def _constant(v: T) -> Callable[[], T]:
    return lambda: v


def _strip_optional(hint: Any) -> tuple[bool, Any]:
    origin = typing.get_origin(hint)
    if origin is typing.Union or origin is types.UnionType:
        args = typing.get_args(hint)
        if type(None) in args:
            rest = tuple(a for a in args if a is not type(None))
            if len(rest) == 1:
                return True, rest[0]
            return True, typing.Union[rest]
    return False, hint


def _resolve_kind(hint: Any, cls: type, name: str) -> Kind:
    def unsupported(reason: str) -> typing.NoReturn:
        raise errors.UnsupportedTypeError(
            f"{utils.type_name(cls)}.{name}: {reason}", cls=cls, field=name
        )

    origin = typing.get_origin(hint)
    if origin is not None:
        args = typing.get_args(hint)
        if origin is list or origin is collections.abc.Sequence:
            container: type = list
            [element] = args
        elif origin is tuple and len(args) == 2 and args[1] is Ellipsis:
            container = tuple
            element = args[0]
        else:
            unsupported(f"{hint!r} is not supported")
        nullable, element = _strip_optional(element)
        if nullable:
            unsupported("sequences cannot contain None")
        return SequenceOf(_resolve_kind(element, cls, name), container)
    if hint in (list, tuple):
        unsupported("sequences need an element type (e.g. list[int])")
    if hint in PRIMITIVES:
        return Primitive(hint)
    if isinstance(hint, type) and issubclass(hint, enum.Enum):
        return EnumKind(hint, tuple(hint.__members__))
    if isinstance(hint, type):
        conv = converters.lookup(hint)
        if conv is not None:
            return CustomScalar(conv)
        if is_record(hint):
            return Record(hint)
    unsupported(
        f"{utils.type_name(hint)} is not a record and has no registered "
        "converter"
    )


def _iter_records(kind: Kind) -> Iterator[type]:
    match kind:
        case Record(ty):
            yield ty
        case SequenceOf(element):
            yield from _iter_records(element)

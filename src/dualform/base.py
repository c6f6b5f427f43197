from __future__ import annotations

import abc
import enum
import math
import re
from typing import Any, Final, Generic, Iterable, Iterator, TypeVar

from dualform import errors, registry, utils
from dualform.registry import (
    CustomScalar,
    EnumKind,
    Kind,
    Primitive,
    Record,
    SequenceOf,
)

T = TypeVar("T")
V = TypeVar("V")

#: Default limit on the nesting depth of documents and object graphs.
MAX_DEPTH: Final = 100

Path = tuple[str | int, ...]


class ScalarKind(enum.Enum):
    "The kind of literal a scalar was written as."

    STR = enum.auto()
    INT = enum.auto()
    FLOAT = enum.auto()
    BOOL = enum.auto()


_INT_RE: Final = re.compile(r"[-+]?[0-9]+")
_FLOAT_RE: Final = re.compile(
    r"[-+]?(?:"
    r"(?:[0-9]+\.[0-9]*|\.[0-9]+)(?:[eE][-+]?[0-9]+)?"
    r"|[0-9]+[eE][-+]?[0-9]+"
    r"|inf|nan"
    r")"
)


def infer_kind(text: str) -> ScalarKind:
    """Guess the kind of a literal from its text.

    >>> samples = ("true", "1605", "-1.5e3", "inf", "1547-09-29")
    >>> [infer_kind(x).name for x in samples]
    ['BOOL', 'INT', 'FLOAT', 'FLOAT', 'STR']
    """
    if text in ("true", "false"):
        return ScalarKind.BOOL
    if _INT_RE.fullmatch(text):
        return ScalarKind.INT
    if _FLOAT_RE.fullmatch(text):
        return ScalarKind.FLOAT
    return ScalarKind.STR


def format_float(f: float) -> str:
    """
    >>> [format_float(x) for x in (1.5, 1e20, -math.inf, math.nan)]
    ['1.5', '1e+20', '-inf', 'nan']
    """
    if math.isnan(f):
        return "nan"
    if math.isinf(f):
        return "inf" if f > 0 else "-inf"
    return repr(f)


class Accumulator(Generic[T, V], abc.ABC):
    """Receives a value tree, one node at a time.

    Producers (:func:`reduce_instance`, :func:`dualform.tree.reduce_tree` and
    the decoders of each format) walk their input depth first and call the
    accumulator for each node they encounter.
    """

    @abc.abstractmethod
    def scalar(self, text: str, kind: ScalarKind) -> T:  # pragma: no cover
        ...

    @abc.abstractmethod
    def null(self) -> T:  # pragma: no cover
        ...

    # We pass in iterators because that gives the `sequence` and `mapping`
    # constructors a chance to do something both before and after the
    # sub-nodes are visited.
    @abc.abstractmethod
    def sequence(self, size: int, items: Iterator[T]) -> T:  # pragma: no cover
        ...

    @abc.abstractmethod
    def mapping(
        self, size: int, items: Iterator[tuple[str, T]]
    ) -> T:  # pragma: no cover
        ...

    @abc.abstractmethod
    def root(self, value: T) -> V:  # pragma: no cover
        ...


def kind_of(value: Any) -> Kind:
    """Get the kind of a top level value.

    Raises:
      UnsupportedTypeError:
    """
    ty = type(value)
    if registry.is_record(ty):
        return Record(ty)
    raise errors.UnsupportedTypeError(
        f"Cannot serialise a value of type {utils.type_name(ty)}: only records "
        "and sequences of records are supported",
        cls=ty,
    )


def reduce_instance(
    obj: Any,
    acc: Accumulator[T, V],
    *,
    kind: Kind | None = None,
    max_depth: int = MAX_DEPTH,
) -> V:
    """Walk an instance and feed it to *acc*.

    *obj* is either a record or a list (or tuple) of records. The walk is
    guided by the descriptors of the records so fields are visited in
    declaration order.

    Raises:
      UnsupportedTypeError:
      TypeMismatchError: if a field holds a value that doesn't match its
        declared type
      CyclicReferenceError:
      DepthExceededError:
    """
    # ids of the containers on the path we are currently visiting
    active: set[int] = set()
    depth = 0

    scalar = acc.scalar
    null = acc.null
    sequence = acc.sequence
    mapping = acc.mapping

    def mismatch(
        v: Any, expected: str, path: Path
    ) -> errors.TypeMismatchError:
        return errors.TypeMismatchError(
            f"expected {expected}, got {type(v).__name__} "
            f"({utils.cram(repr(v), 40)})",
            path=path,
        )

    def reduce_fields(
        v: Any, desc: registry.TypeDescriptor, path: Path
    ) -> Iterator[tuple[str, T]]:
        for field in desc.fields:
            value = getattr(v, field.name)
            fpath = (*path, field.external_name)
            if value is None:
                if not field.nullable:
                    raise errors.TypeMismatchError(
                        "field is not nullable but is None",
                        path=fpath,
                        root=desc.root_name,
                    )
                yield field.external_name, null()
            else:
                yield field.external_name, reduce(value, field.kind, fpath)

    def reduce_items(
        v: Iterable[Any], element: Kind | None, path: Path
    ) -> Iterator[T]:
        for idx, x in enumerate(v):
            kind = kind_of(x) if element is None else element
            yield reduce(x, kind, (*path, idx))

    def reduce_container(
        v: Any, kind: Record | SequenceOf | None, path: Path
    ) -> T:
        nonlocal depth
        addr = id(v)
        if addr in active:
            raise errors.CyclicReferenceError(
                "Recursive value found at "
                f"{errors.format_path(path) or '<root>'}"
            )
        if depth >= max_depth:
            raise errors.DepthExceededError(max_depth)
        active.add(addr)
        depth += 1
        try:
            if isinstance(kind, Record):
                desc = kind.descriptor
                return mapping(len(desc.fields), reduce_fields(v, desc, path))
            element = None if kind is None else kind.element
            return sequence(len(v), reduce_items(v, element, path))
        finally:
            depth -= 1
            active.discard(addr)

    def reduce(v: Any, kind: Kind, path: Path) -> T:
        match kind:
            case Primitive(ty) if ty is str:
                if not isinstance(v, str):
                    raise mismatch(v, "str", path)
                return scalar(v, ScalarKind.STR)
            case Primitive(ty) if ty is bool:
                if not isinstance(v, bool):
                    raise mismatch(v, "bool", path)
                return scalar("true" if v else "false", ScalarKind.BOOL)
            case Primitive(ty) if ty is int:
                if not isinstance(v, int) or isinstance(v, bool):
                    raise mismatch(v, "int", path)
                try:
                    text = str(v)
                except ValueError as e:
                    raise errors.TypeMismatchError(str(e), path=path) from e
                return scalar(text, ScalarKind.INT)
            case Primitive(ty) if ty is float:
                if not isinstance(v, int | float) or isinstance(v, bool):
                    raise mismatch(v, "float", path)
                try:
                    f = float(v)
                except OverflowError as e:
                    raise errors.TypeMismatchError(str(e), path=path) from e
                return scalar(format_float(f), ScalarKind.FLOAT)
            case EnumKind(ty):
                if not isinstance(v, ty):
                    raise mismatch(v, ty.__name__, path)
                return scalar(v.name, ScalarKind.STR)
            case CustomScalar(conv):
                if not isinstance(v, conv.type):
                    raise mismatch(v, conv.type.__name__, path)
                return scalar(conv.format(v), ScalarKind.STR)
            case Record(ty):
                if not isinstance(v, ty):
                    raise mismatch(v, ty.__name__, path)
                return reduce_container(v, kind, path)
            case SequenceOf():
                if not isinstance(v, list | tuple):
                    raise mismatch(v, "a sequence", path)
                return reduce_container(v, kind, path)
        # Unreachable
        assert False, kind  # pragma: no cover

    if kind is None:
        # NamedTuples are records, not sequences
        if isinstance(obj, list | tuple) and not registry.is_record(type(obj)):
            return acc.root(reduce_container(obj, None, ()))
        kind = kind_of(obj)
    return acc.root(reduce(obj, kind, ()))


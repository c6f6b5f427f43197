"""
``dualform.binder``: From trees to instances
============================================

:func:`bind` rebuilds instances from a :class:`~dualform.tree.Node`, using the
:class:`~dualform.registry.TypeDescriptor` of the target type to know what to
expect.

    >>> import dataclasses
    >>> from dualform import tree
    >>> @dataclasses.dataclass(frozen=True)
    ... class Author:
    ...   name: str
    ...   born: int = 0
    >>> implode(tree.Mapping((("name", tree.Scalar("Cervantes")),)), Author)
    Author(name='Cervantes', born=0)

Binding is forgiving where it can be:

+ entries in the tree that don't match any field are ignored,
+ fields that are absent from the tree get their default value (or ``None`` if
  they are nullable).

Everything else is an error (see :mod:`dualform.errors`). Instances are only
built once all their fields have been resolved so a failure never leaves a
half-built object behind.

"""
from __future__ import annotations

import logging
from typing import Any, Type, TypeVar

from dualform import base, errors, registry
from dualform.base import Path, ScalarKind
from dualform.registry import (
    CustomScalar,
    EnumKind,
    Kind,
    Primitive,
    Record,
    SequenceOf,
)
from dualform.tree import Mapping, Node, Null, Scalar, Sequence

__all__ = ("bind", "implode", "implode_many")

logger = logging.getLogger(__name__)

T = TypeVar("T")

_BOOLS = {"true": True, "false": False}


def _parse_int(text: str) -> int:
    if base.infer_kind(text) is not ScalarKind.INT:
        raise ValueError(f"invalid integer literal: {text!r}")
    return int(text)


def _parse_float(text: str) -> float:
    if base.infer_kind(text) not in (ScalarKind.INT, ScalarKind.FLOAT):
        raise ValueError(f"invalid float literal: {text!r}")
    return float(text)


def _parse_bool(text: str) -> bool:
    try:
        return _BOOLS[text]
    except KeyError:
        raise ValueError(f"invalid boolean literal: {text!r}") from None


_PRIMITIVE_PARSERS = {
    str: str,
    int: _parse_int,
    float: _parse_float,
    bool: _parse_bool,
}


def _describe_node(node: Node) -> str:
    match node:
        case Scalar():
            return "a scalar"
        case Sequence():
            return "a sequence"
        case Mapping():
            return "a mapping"
    return "null"


def bind(node: Node, kind: Kind, *, max_depth: int = base.MAX_DEPTH) -> Any:
    """Convert *node* to a value of the given kind.

    Raises:
      MissingFieldError:
      NonNullableFieldMissingError:
      TypeMismatchError:
      UnknownEnumValueError:
      DepthExceededError:
    """
    depth = 0

    def bind_record(
        node: Node, desc: registry.TypeDescriptor, path: Path
    ) -> Any:
        if not isinstance(node, Mapping):
            raise errors.TypeMismatchError(
                f"expected a mapping, got {_describe_node(node)}",
                path=path,
                root=desc.root_name,
            )
        values: dict[str, Any] = {}
        for field in desc.fields:
            fpath = (*path, field.external_name)
            value = node.get(field.external_name)
            if value is None:
                if field.default is not None:
                    values[field.name] = field.default()
                elif field.nullable:
                    values[field.name] = None
                else:
                    raise errors.MissingFieldError(
                        "missing required field",
                        path=fpath,
                        root=desc.root_name,
                    )
            elif isinstance(value, Null):
                if not field.nullable:
                    raise errors.NonNullableFieldMissingError(
                        "field cannot be null", path=fpath, root=desc.root_name
                    )
                values[field.name] = None
            else:
                values[field.name] = reduce(value, field.kind, fpath, desc)
        if logger.isEnabledFor(logging.DEBUG):
            for key in node.keys():
                if key not in desc.by_name:
                    logger.debug(
                        "Ignoring unknown key %r for %s", key, desc.root_name
                    )
        return desc.construct(values)

    def bind_scalar(
        node: Node,
        kind: Primitive | EnumKind | CustomScalar,
        path: Path,
        root: str | None,
    ) -> Any:
        if not isinstance(node, Scalar):
            raise errors.TypeMismatchError(
                f"expected a scalar, got {_describe_node(node)}",
                path=path,
                root=root,
            )
        text = node.text
        match kind:
            case EnumKind(ty, labels):
                if text not in labels:
                    raise errors.UnknownEnumValueError(
                        text, labels, path=path, root=root
                    )
                return ty[text]
            case Primitive(ty):
                parse = _PRIMITIVE_PARSERS[ty]
                expected = ty.__name__
            case CustomScalar(conv):
                parse = conv.parse
                expected = conv.type.__name__
        try:
            return parse(text)
        except (ValueError, TypeError) as e:
            raise errors.TypeMismatchError(
                f"cannot read {text!r} as {expected}: {e}",
                path=path,
                root=root,
            ) from e

    def reduce(
        node: Node,
        kind: Kind,
        path: Path,
        parent: registry.TypeDescriptor | None,
    ) -> Any:
        nonlocal depth
        root = None if parent is None else parent.root_name
        if not isinstance(kind, Record | SequenceOf):
            return bind_scalar(node, kind, path, root)
        if depth >= max_depth:
            raise errors.DepthExceededError(max_depth)
        depth += 1
        try:
            if isinstance(kind, Record):
                return bind_record(node, kind.descriptor, path)
            if not isinstance(node, Sequence):
                raise errors.TypeMismatchError(
                    f"expected a sequence, got {_describe_node(node)}",
                    path=path,
                    root=root,
                )
            return kind.container(
                reduce(item, kind.element, (*path, idx), parent)
                for idx, item in enumerate(node)
            )
        finally:
            depth -= 1

    return reduce(node, kind, (), None)


def implode(
    node: Node, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
) -> T:
    """Build an instance of the record type *cls* from *node*"""
    res: T = bind(node, registry.Record(cls), max_depth=max_depth)
    return res


def implode_many(
    node: Node, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
) -> list[T]:
    """Build a list of instances of the record type *cls* from *node*"""
    res: list[T] = bind(
        node, registry.SequenceOf(registry.Record(cls)), max_depth=max_depth
    )
    return res

"""``dualform.tree``: In memory trees
===================================

Convert to and from :class:`Node`.

:class:`Node` is the format-neutral representation shared by all the codecs.
It knows nothing about the record types it was built from::

  >>> import dataclasses
  >>> @dataclasses.dataclass
  ... class Author:
  ...   name: str
  ...   born: int
  >>> explode(Author("Cervantes", 1547))
  Mapping(entries=(('name', Scalar(text='Cervantes', kind=<ScalarKind.STR: 1>)), ('born', Scalar(text='1547', kind=<ScalarKind.INT: 2>))))

This is the easiest way to programmatically check what a value looks like
once it has been reduced, or what a document looks like once it has been
parsed.

API:
----

"""
from __future__ import annotations

import dataclasses
from typing import Any, Iterator, TypeAlias, TypeVar

from dualform import base
from dualform.base import ScalarKind

T = TypeVar("T")
V = TypeVar("V")

__all__ = (
    "Node",
    "Scalar",
    "Sequence",
    "Mapping",
    "Null",
    "NULL",
    "ScalarKind",
    "TreeBuilder",
    "reduce_tree",
    "explode",
)


@dataclasses.dataclass(slots=True, frozen=True)
class Scalar:
    """A leaf value.

    Parameters:
      text(str): the textual representation of the value
      kind(ScalarKind): the kind of literal *text* is
    """

    text: str
    kind: ScalarKind = ScalarKind.STR

    @classmethod
    def infer(cls, text: str) -> Scalar:
        """Build a scalar, inferring its kind from the text.

        >>> Scalar.infer("1605").kind
        <ScalarKind.INT: 2>
        """
        return cls(text, base.infer_kind(text))


@dataclasses.dataclass(slots=True, frozen=True)
class Null:
    "An absent value"


#: The only instance of :class:`Null`
NULL = Null()


@dataclasses.dataclass(slots=True, frozen=True)
class Sequence:
    """An ordered list of nodes

    Parameters:
      items(tuple[Node, ...]):
    """

    items: tuple[Node, ...] = ()

    def __iter__(self) -> Iterator[Node]:
        return iter(self.items)

    def __len__(self) -> int:
        return len(self.items)


@dataclasses.dataclass(slots=True, frozen=True)
class Mapping:
    """Key value pairs.

    Keys are unique and the order of the entries is preserved from the source
    but, when binding, entries are looked up by key:

        >>> m = Mapping((("b", NULL), ("a", Scalar("1", ScalarKind.INT))))
        >>> list(m.keys())
        ['b', 'a']
        >>> m.get("a")
        Scalar(text='1', kind=<ScalarKind.INT: 2>)

    Parameters:
      entries(tuple[tuple[str, Node], ...]):
    """

    entries: tuple[tuple[str, Node], ...] = ()
    _index: dict[str, Node] = dataclasses.field(
        init=False, repr=False, compare=False, hash=False
    )

    def __post_init__(self) -> None:
        index = {}
        for k, v in self.entries:
            if k in index:
                raise ValueError(f"Duplicate key: {k!r}")
            index[k] = v
        object.__setattr__(self, "_index", index)

    def get(self, key: str) -> Node | None:
        "The node associated with *key* or ``None`` if the key is absent."
        return self._index.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self._index

    def keys(self) -> Iterator[str]:
        for k, _ in self.entries:
            yield k

    def items(self) -> Iterator[tuple[str, Node]]:
        yield from self.entries

    def __len__(self) -> int:
        return len(self.entries)


#:
Node: TypeAlias = Scalar | Sequence | Mapping | Null


class TreeBuilder(base.Accumulator[Node, Node]):
    """A :class:`~dualform.base.Accumulator` used to build :class:`Node`"""

    def scalar(self, text: str, kind: ScalarKind) -> Node:
        return Scalar(text, kind)

    def null(self) -> Node:
        return NULL

    def sequence(self, size: int, items: Iterator[Node]) -> Node:
        return Sequence(tuple(items))

    def mapping(self, size: int, items: Iterator[tuple[str, Node]]) -> Node:
        return Mapping(tuple(items))

    def root(self, node: Node) -> Node:
        return node


def reduce_tree(value: Node, acc: base.Accumulator[T, V]) -> V:
    "Feed a tree to an accumulator."
    scalar = acc.scalar
    null = acc.null
    sequence = acc.sequence
    mapping = acc.mapping

    def reduce(node: Node) -> T:
        match node:
            case Scalar(text, kind):
                return scalar(text, kind)
            case Null():
                return null()
            case Sequence(items):
                return sequence(len(items), (reduce(x) for x in items))
            case Mapping(entries):
                return mapping(
                    len(entries), ((k, reduce(v)) for k, v in entries)
                )
        raise TypeError(
            f"Object of type {type(node).__name__} is not a tree node"
        )

    return acc.root(reduce(value))


def explode(v: Any, *, max_depth: int = base.MAX_DEPTH) -> Node:
    """Convert a record (or a sequence of records) to a :class:`Node`

    Args:
      v:
    """
    return base.reduce_instance(v, TreeBuilder(), max_depth=max_depth)

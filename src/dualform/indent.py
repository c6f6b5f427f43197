"""
``dualform.indent``: Indentation structured documents
=====================================================

A small subset of YAML: nesting is given by indentation, mappings are written
``key: value`` and sequence items ``- item``::

  >>> import dataclasses
  >>> @dataclasses.dataclass
  ... class Book:
  ...   title: str
  ...   year: int
  ...   tags: list[str]
  >>> book = Book("Don Quixote", 1605, ["novel", "1605"])
  >>> print(dump_indent(book), end="")
  title: Don Quixote
  year: 1605
  tags:
    - novel
    - "1605"
  >>> load_indent(dump_indent(book), Book) == book
  True

Scalars are read as follows:

+ ``null`` is the absent value,
+ ``true`` and ``false`` are booleans,
+ integer and floating point literals (including ``inf`` and ``nan``) are
  numbers,
+ ``[]`` and ``{}`` are the empty sequence and the empty mapping,
+ text between double quotes is a string, with JSON escapes,
+ anything else is a string.

Strings that would be read back as something else are written between quotes.

There are no comments, anchors, flow collections or multi-line scalars.
"""
from __future__ import annotations

import dataclasses
import json
import re
from typing import Any, Final, Iterable, Iterator, Type, TypeAlias, TypeVar

from dualform import base, binder, errors, tree
from dualform.base import ScalarKind
from dualform.tree import Node

T = TypeVar("T")
V = TypeVar("V")

__all__ = (
    "dump_indent",
    "dump_indent_many",
    "load_indent",
    "load_indent_many",
    "reduce_indent",
    "parse",
    "IndentPrinter",
    "INDENT",
)

#: Number of columns added at each nesting level.
INDENT: Final = 2

_ENTRY_RE: Final = re.compile(
    r'(?P<key>"(?:[^"\\]|\\.)*"|[^\s"][^:]*?) *:(?: +(?P<value>.*))?'
)

_RESERVED: Final = frozenset(("null", "[]", "{}"))


def _is_item(content: str) -> bool:
    return content == "-" or content.startswith("- ")


def _needs_quotes(text: str) -> bool:
    return (
        text == ""
        or text != text.strip()
        or not text.isprintable()
        or text.startswith('"')
        or _is_item(text)
        or text in _RESERVED
        or _ENTRY_RE.fullmatch(text) is not None
        or base.infer_kind(text) is not ScalarKind.STR
    )


def _format_key(key: str) -> str:
    if (
        key == ""
        or key != key.strip()
        or not key.isprintable()
        or key.startswith('"')
        or ":" in key
        or _is_item(key)
    ):
        return json.dumps(key, ensure_ascii=False)
    return key


@dataclasses.dataclass(slots=True)
class Block:
    "Lines of a non-empty mapping or sequence, relative to their own indent"

    lines: list[str]


_Doc: TypeAlias = str | Block


class IndentPrinter(base.Accumulator[_Doc, str]):
    "Serialize a value as an indentation structured document."

    def scalar(self, text: str, kind: ScalarKind) -> _Doc:
        if kind is ScalarKind.STR and _needs_quotes(text):
            return json.dumps(text, ensure_ascii=False)
        return text

    def null(self) -> _Doc:
        return "null"

    def sequence(self, size: int, items: Iterator[_Doc]) -> _Doc:
        lines: list[str] = []
        for item in items:
            if isinstance(item, str):
                lines.append(f"- {item}")
            else:
                first, *rest = item.lines
                lines.append(f"- {first}")
                # Align with the first line, right after the dash
                lines.extend(f"  {line}" for line in rest)
        if not lines:
            return "[]"
        return Block(lines)

    def mapping(self, size: int, items: Iterator[tuple[str, _Doc]]) -> _Doc:
        pad = " " * INDENT
        lines: list[str] = []
        for key, value in items:
            key = _format_key(key)
            if isinstance(value, str):
                lines.append(f"{key}: {value}")
            else:
                lines.append(f"{key}:")
                lines.extend(pad + line for line in value.lines)
        if not lines:
            return "{}"
        return Block(lines)

    def root(self, value: _Doc) -> str:
        if isinstance(value, str):
            return value + "\n"
        return "\n".join(value.lines) + "\n"


# Tokens: a line is a series of `- ` markers optionally followed by a mapping
# entry or a bare scalar.


@dataclasses.dataclass(slots=True, frozen=True)
class _Item:
    pass


@dataclasses.dataclass(slots=True, frozen=True)
class _Entry:
    key: str
    value: str | None


@dataclasses.dataclass(slots=True, frozen=True)
class _Bare:
    value: str


_Token = _Item | _Entry | _Bare


@dataclasses.dataclass(slots=True)
class _Frame:
    "An open block"

    col: int
    is_seq: bool
    items: list[Node] = dataclasses.field(default_factory=list)
    entries: list[tuple[str, Node]] = dataclasses.field(default_factory=list)
    keys: set[str] = dataclasses.field(default_factory=set)
    # Key (or item) waiting for its value to be given as a nested block
    pending_key: str | None = None
    pending_item: bool = False
    pending_lineno: int = 0

    @property
    def has_pending(self) -> bool:
        return self.pending_key is not None or self.pending_item

    def put(self, node: Node) -> None:
        if self.pending_key is not None:
            self.entries.append((self.pending_key, node))
            self.pending_key = None
        else:
            assert self.pending_item
            self.items.append(node)
            self.pending_item = False

    def flush(self) -> None:
        "Pending keys or items that never got a block are null."
        if self.has_pending:
            self.put(tree.NULL)

    def close(self) -> Node:
        self.flush()
        if self.is_seq:
            return tree.Sequence(tuple(self.items))
        return tree.Mapping(tuple(self.entries))


def _tokenize(content: str, col: int) -> Iterator[tuple[int, _Token]]:
    while _is_item(content):
        yield col, _Item()
        rest = content[1:]
        content = rest.lstrip(" ")
        col += 1 + len(rest) - len(content)
        if not content:
            return
    m = _ENTRY_RE.fullmatch(content)
    if m is None:
        yield col, _Bare(content)
    else:
        yield col, _Entry(m.group("key"), m.group("value"))


def parse(text: str, *, max_depth: int = base.MAX_DEPTH) -> Node:
    """Parse a document into a :class:`~dualform.tree.Node`.

    The parser works one line at a time and keeps a stack of the blocks that
    are currently open. A line indented deeper than the innermost block opens
    a new block attached to the last key (or item) of that block; a line that
    is less indented closes blocks until one matches its indentation.

    >>> parse("a: 1\\nb:\\n  - x\\n")
    Mapping(entries=(('a', Scalar(text='1', kind=<ScalarKind.INT: 2>)), ('b', Sequence(items=(Scalar(text='x', kind=<ScalarKind.STR: 1>),)))))

    Raises:
      MalformedInputError:
      DepthExceededError:
    """
    stack: list[_Frame] = []
    result: Node | None = None
    # Number of columns used for one level of indentation, as set by the
    # first nested mapping block of the document.
    unit: int | None = None
    lineno = 0

    def error(reason: str) -> errors.MalformedInputError:
        return errors.MalformedInputError(
            reason, lineno=lineno, content=text
        )

    def scalar(raw: str) -> Node:
        if raw.startswith('"'):
            try:
                value = json.loads(raw)
            except ValueError:
                raise error(f"invalid quoted string {raw!r}") from None
            if not isinstance(value, str):  # pragma: no cover
                raise error(f"invalid quoted string {raw!r}")
            return tree.Scalar(value, ScalarKind.STR)
        if raw == "null":
            return tree.NULL
        if raw == "[]":
            return tree.Sequence()
        if raw == "{}":
            return tree.Mapping()
        return tree.Scalar.infer(raw)

    def key(raw: str) -> str:
        if raw.startswith('"'):
            try:
                return str(json.loads(raw))
            except ValueError:
                raise error(f"invalid quoted key {raw!r}") from None
        return raw

    def close() -> None:
        nonlocal result
        node = stack.pop().close()
        if stack:
            stack[-1].put(node)
        else:
            result = node

    def push(col: int, token: _Token) -> _Frame:
        if len(stack) >= max_depth:
            raise errors.DepthExceededError(max_depth)
        frame = _Frame(col, is_seq=isinstance(token, _Item))
        stack.append(frame)
        return frame

    def add(frame: _Frame, token: _Token) -> None:
        frame.flush()
        match token:
            case _Item():
                if not frame.is_seq:
                    raise error("expected a `key: value` entry, got an item")
                frame.pending_item = True
                frame.pending_lineno = lineno
            case _Entry(raw_key, value):
                if frame.is_seq:
                    raise error("expected a `- ` item, got a mapping entry")
                k = key(raw_key)
                if k in frame.keys:
                    raise error(f"duplicate key {k!r}")
                frame.keys.add(k)
                if value is None:
                    frame.pending_key = k
                    frame.pending_lineno = lineno
                else:
                    frame.entries.append((k, scalar(value)))
            case _Bare():
                raise error("expected a `key: value` entry or a `- ` item")

    def feed(col: int, token: _Token) -> None:
        nonlocal result, unit
        while stack and stack[-1].col > col:
            close()
        if not stack:
            if result is not None:
                raise error("content after the end of the document")
            if col != 0:
                raise error("the document should not be indented")
            if isinstance(token, _Bare):
                result = scalar(token.value)
                return
            add(push(col, token), token)
            return
        top = stack[-1]
        if top.col == col:
            add(top, token)
            return
        if not top.has_pending:
            raise error("unexpected indentation")
        if isinstance(token, _Bare):
            # `- value`: only valid on the line of the item.
            if top.pending_item and top.pending_lineno == lineno:
                top.put(scalar(token.value))
                return
            raise error("expected a `key: value` entry or a `- ` item")
        if top.pending_key is not None:
            if unit is None:
                unit = col - top.col
            elif col - top.col != unit:
                raise error(
                    f"inconsistent indentation: expected {unit} columns, "
                    f"got {col - top.col}"
                )
        add(push(col, token), token)

    for lineno, line in enumerate(text.split("\n"), 1):
        line = line.rstrip()
        content = line.lstrip(" ")
        if not content:
            continue
        if content[0] == "\t":
            raise error("tabs cannot be used for indentation")
        for col, token in _tokenize(content, len(line) - len(content)):
            feed(col, token)

    while stack:
        close()
    if result is None:
        raise errors.MalformedInputError("empty document", lineno=1)
    return result


def reduce_indent(
    text: str, acc: base.Accumulator[T, V], *, max_depth: int = base.MAX_DEPTH
) -> V:
    """Read an indentation structured document into an accumulator."""
    return tree.reduce_tree(parse(text, max_depth=max_depth), acc)


def dump_indent(obj: Any, *, max_depth: int = base.MAX_DEPTH) -> str:
    """Serialise the record *obj*

    Args:
      obj: the record to serialise
      max_depth(int): maximum nesting depth of *obj*
    """
    return base.reduce_instance(obj, IndentPrinter(), max_depth=max_depth)


def dump_indent_many(
    objs: Iterable[Any], *, max_depth: int = base.MAX_DEPTH
) -> str:
    """Serialise a sequence of records

    Every record is written as a ``- `` item of a top level sequence.
    """
    return base.reduce_instance(
        list(objs), IndentPrinter(), max_depth=max_depth
    )


def load_indent(
    text: str, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
) -> T:
    """Read an instance of *cls* from a document

    Args:
      text(str):
      cls: a record type
    """
    node = parse(text, max_depth=max_depth)
    return binder.implode(node, cls, max_depth=max_depth)


def load_indent_many(
    text: str, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
) -> list[T]:
    """Read a list of instances of *cls* from a document"""
    node = parse(text, max_depth=max_depth)
    return binder.implode_many(node, cls, max_depth=max_depth)

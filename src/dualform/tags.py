"""
``dualform.tags``: Tag nested documents
=======================================

A small subset of XML where every field is a nested element::

  >>> import dataclasses
  >>> from dualform import registry
  >>> @registry.configure(root_name="book")
  ... @dataclasses.dataclass
  ... class Book:
  ...   title: str
  ...   year: int
  ...   tags: list[str]
  >>> book = Book("Don Quixote", 1605, ["novel", "classic"])
  >>> dump_tags(book)
  '<book><title>Don Quixote</title><year>1605</year><tags>novel</tags><tags>classic</tags></book>'
  >>> load_tags(dump_tags(book), Book) == book
  True

+ A record is an element containing one element per field.
+ A sequence repeats the tag of its field once per item; there is no wrapper
  element.
+ A scalar is the text content of its element.
+ ``None`` is an empty self-closing element (``<tag/>``).

Without type information it's impossible to tell a sequence of one element
apart from a single value, so the decoder uses the target type to decide how
to group sibling elements. When a field that is not a sequence appears more
than once, the first occurrence is used and the others are ignored.

Empty sequences are not written out. When a sequence field has no element in
a document it is read as an empty sequence if the field is required or
defaults to an empty sequence; otherwise the field gets its default (or
``None``). An empty list in a field that defaults to something else does not
survive a round trip.

Surrounding whitespace is dropped from the text of numbers, booleans and
enumeration members.

Attributes, namespaces, comments, processing instructions and CDATA sections
are not supported.
"""
from __future__ import annotations

import dataclasses
import html
import logging
import re
from typing import Any, Final, Iterable, Iterator, Type, TypeAlias, TypeVar
from xml.sax import saxutils

from dualform import base, binder, errors, registry, tree
from dualform.base import ScalarKind
from dualform.registry import EnumKind, Kind, Primitive, Record, SequenceOf

T = TypeVar("T")
V = TypeVar("V")

__all__ = (
    "dump_tags",
    "dump_tags_many",
    "load_tags",
    "load_tags_many",
    "reduce_tags",
    "parse_elements",
    "Element",
    "TagPrinter",
)

logger = logging.getLogger(__name__)

_NAME_RE: Final = re.compile(r"[A-Za-z_][A-Za-z0-9_.\-]*")
_WS_RE: Final = re.compile(r"\s*")


# Encoding


@dataclasses.dataclass(slots=True)
class _Text:
    escaped: str


@dataclasses.dataclass(slots=True)
class _Null:
    pass


@dataclasses.dataclass(slots=True)
class _Children:
    entries: list[tuple[str, _Frag]]


@dataclasses.dataclass(slots=True)
class _Repeat:
    items: list[_Frag]


_Frag: TypeAlias = "_Text | _Null | _Children | _Repeat"


class TagPrinter(base.Accumulator[_Frag, str]):
    """Serialize a value as a tag nested document.

    Args:
      root_name(str): tag of the top level element(s)
      indent(int | None): if not ``None``, put every element on its own line
        and indent nested elements by that many columns.
    """

    root_name: str
    indent: int | None

    def __init__(self, root_name: str, indent: int | None = None) -> None:
        self.root_name = root_name
        self.indent = indent

    def scalar(self, text: str, kind: ScalarKind) -> _Frag:
        return _Text(saxutils.escape(text))

    def null(self) -> _Frag:
        return _Null()

    def sequence(self, size: int, items: Iterator[_Frag]) -> _Frag:
        return _Repeat(list(items))

    def mapping(self, size: int, items: Iterator[tuple[str, _Frag]]) -> _Frag:
        return _Children(list(items))

    def _render(
        self, tag: str, frag: _Frag, depth: int, out: list[str]
    ) -> None:
        if not isinstance(frag, _Repeat) and _NAME_RE.fullmatch(tag) is None:
            raise errors.UnsupportedTypeError(
                f"{tag!r} cannot be used as a tag name"
            )
        pad = "" if self.indent is None else " " * (self.indent * depth)
        match frag:
            case _Text(escaped):
                out.append(f"{pad}<{tag}>{escaped}</{tag}>")
            case _Null():
                out.append(f"{pad}<{tag}/>")
            case _Children([]):
                out.append(f"{pad}<{tag}></{tag}>")
            case _Children(entries):
                out.append(f"{pad}<{tag}>")
                for key, value in entries:
                    self._render(key, value, depth + 1, out)
                out.append(f"{pad}</{tag}>")
            case _Repeat(items):
                for item in items:
                    if isinstance(item, _Repeat):
                        raise errors.UnsupportedTypeError(
                            f"<{tag}>: sequences of sequences cannot be "
                            "represented with tags"
                        )
                    self._render(tag, item, depth, out)

    def root(self, frag: _Frag) -> str:
        out: list[str] = []
        self._render(self.root_name, frag, 0, out)
        if self.indent is None:
            return "".join(out)
        return "".join(line + "\n" for line in out)


# Decoding


@dataclasses.dataclass(slots=True)
class Element:
    """A parsed element.

    Parameters:
      tag(str):
      offset(int): position of the opening ``<`` in the document
      children(list[Element]):
      text(str | None): the (unescaped) text content of elements that have
        no children
      closed(bool): ``True`` for self-closing elements (``<tag/>``)
    """

    tag: str
    offset: int
    children: list[Element] = dataclasses.field(default_factory=list)
    text: str | None = None
    closed: bool = False


class _Parser:
    text: str
    pos: int
    max_depth: int

    def __init__(self, text: str, max_depth: int) -> None:
        self.text = text
        self.pos = 0
        self.max_depth = max_depth

    def error(
        self, reason: str, offset: int | None = None
    ) -> errors.MalformedInputError:
        return errors.MalformedInputError(
            reason,
            offset=self.pos if offset is None else offset,
            content=self.text,
        )

    def skip_ws(self) -> None:
        m = _WS_RE.match(self.text, self.pos)
        assert m is not None
        self.pos = m.end()

    def name(self) -> str:
        m = _NAME_RE.match(self.text, self.pos)
        if m is None:
            raise self.error("expected a tag name")
        self.pos = m.end()
        return m.group()

    def document(self) -> list[Element]:
        elements = []
        while True:
            self.skip_ws()
            if self.pos >= len(self.text):
                return elements
            if self.text[self.pos] != "<":
                raise self.error("text outside of an element")
            elements.append(self.element(0))

    def element(self, depth: int) -> Element:
        text = self.text
        start = self.pos
        if depth >= self.max_depth:
            raise errors.DepthExceededError(self.max_depth)
        match text[start + 1 : start + 2]:
            case "!":
                raise self.error(
                    "comments and CDATA sections are not supported"
                )
            case "?":
                raise self.error("processing instructions are not supported")
            case "/":
                raise self.error("unexpected closing tag")
        self.pos += 1
        tag = self.name()
        self.skip_ws()
        if text.startswith("/>", self.pos):
            self.pos += 2
            return Element(tag, start, closed=True)
        if not text.startswith(">", self.pos):
            if self.pos >= len(text):
                raise self.error(f"unterminated tag <{tag}", start)
            raise self.error(f"<{tag}>: attributes are not supported")
        self.pos += 1

        children: list[Element] = []
        chunks: list[tuple[int, str]] = []
        while True:
            lt = text.find("<", self.pos)
            if lt == -1:
                raise self.error(f"unterminated element <{tag}>", start)
            if lt > self.pos:
                chunks.append((self.pos, text[self.pos : lt]))
            self.pos = lt
            if text.startswith("</", lt):
                self.pos += 2
                closing = self.name()
                self.skip_ws()
                if not text.startswith(">", self.pos):
                    raise self.error(f"malformed closing tag </{closing}")
                self.pos += 1
                if closing != tag:
                    raise self.error(
                        f"mismatched closing tag </{closing}> for <{tag}>", lt
                    )
                break
            children.append(self.element(depth + 1))

        if children:
            for offset, chunk in chunks:
                if chunk.strip():
                    raise self.error(
                        f"<{tag}>: text cannot be mixed with elements", offset
                    )
            return Element(tag, start, children=children)
        return Element(
            tag, start, text=html.unescape("".join(c for _, c in chunks))
        )


def parse_elements(
    text: str, *, max_depth: int = base.MAX_DEPTH
) -> list[Element]:
    """Parse the top-level elements of a document.

    >>> [(e.tag, e.text) for e in parse_elements("<a>1</a> <b/>")]
    [('a', '1'), ('b', None)]

    Raises:
      MalformedInputError:
      DepthExceededError:
    """
    return _Parser(text, max_depth).document()


def _scalar_kind(kind: Kind) -> ScalarKind:
    match kind:
        case Primitive(ty) if ty is bool:
            return ScalarKind.BOOL
        case Primitive(ty) if ty is int:
            return ScalarKind.INT
        case Primitive(ty) if ty is float:
            return ScalarKind.FLOAT
    return ScalarKind.STR


def _scalar_text(text: str, kind: Kind) -> str:
    # Pretty printers pad element text, only strings keep their whitespace.
    match kind:
        case Primitive(ty) if ty is str:
            return text
        case Primitive() | EnumKind():
            return text.strip()
    return text


def _empty_when_absent(field: registry.FieldDescriptor) -> bool:
    "Whether a sequence field with no element at all is an empty sequence"
    if field.default is not None:
        value = field.default()
        return value is not None and len(value) == 0
    return not field.nullable


def _absent_sequences(
    desc: registry.TypeDescriptor, tags: Iterable[str]
) -> list[registry.FieldDescriptor]:
    present = set(tags)
    return [
        f
        for f in desc.fields
        if isinstance(f.kind, SequenceOf)
        and f.external_name not in present
        and _empty_when_absent(f)
    ]


def _group(elements: Iterable[Element]) -> dict[str, list[Element]]:
    groups: dict[str, list[Element]] = {}
    for elt in elements:
        groups.setdefault(elt.tag, []).append(elt)
    return groups


def reduce_tags(
    text: str,
    acc: base.Accumulator[T, V],
    *,
    kind: Kind | None = None,
    max_depth: int = base.MAX_DEPTH,
) -> V:
    """Read a tag nested document into an accumulator.

    *kind* is the type the document is expected to contain. When it is given
    it is used to decide which sibling elements form sequences and what kind
    of literal each scalar is; the root element(s) must have the root name of
    the record type. Otherwise repeated siblings are read as sequences and
    the kind of scalars is inferred from their text.

    Raises:
      MalformedInputError:
      DepthExceededError:
    """
    elements = parse_elements(text, max_depth=max_depth)

    scalar = acc.scalar
    null = acc.null
    sequence = acc.sequence
    mapping = acc.mapping

    def unhinted(elt: Element) -> T:
        if elt.closed:
            return null()
        if elt.text is not None:
            return scalar(elt.text, base.infer_kind(elt.text))
        groups = _group(elt.children)
        return mapping(
            len(groups), ((k, unhinted_group(v)) for k, v in groups.items())
        )

    def unhinted_group(elts: list[Element]) -> T:
        if len(elts) == 1:
            return unhinted(elts[0])
        return sequence(len(elts), (unhinted(e) for e in elts))

    def fields(
        elt: Element, desc: registry.TypeDescriptor
    ) -> Iterator[tuple[str, T]]:
        groups = _group(elt.children)
        position = {f.external_name: i for i, f in enumerate(desc.fields)}
        # Empty sequences are not written out at all.
        absent = _absent_sequences(desc, groups)

        def fill(upto: int) -> Iterator[tuple[str, T]]:
            while absent and position[absent[0].external_name] < upto:
                yield absent.pop(0).external_name, sequence(0, iter(()))

        for tag, elts in groups.items():
            field = desc.by_name.get(tag)
            if field is None:
                yield tag, unhinted_group(elts)
                continue
            yield from fill(position[tag])
            fkind = field.kind
            if isinstance(fkind, SequenceOf):
                if len(elts) == 1 and elts[0].closed and field.nullable:
                    yield tag, null()
                else:
                    yield tag, sequence(
                        len(elts), (hinted(e, fkind.element) for e in elts)
                    )
                continue
            if len(elts) > 1:
                logger.warning(
                    "<%s> appears %d times in <%s> (line %d), only the first "
                    "one is used",
                    tag,
                    len(elts),
                    elt.tag,
                    text.count("\n", 0, elts[1].offset) + 1,
                )
            yield tag, hinted(elts[0], fkind)
        yield from fill(len(desc.fields))

    def hinted(elt: Element, kind: Kind) -> T:
        if elt.closed:
            return null()
        if isinstance(kind, Record):
            desc = kind.descriptor
            if elt.text is not None and elt.text.strip():
                return scalar(elt.text, ScalarKind.STR)
            groups = _group(elt.children)
            size = len(groups) + len(_absent_sequences(desc, groups))
            return mapping(size, fields(elt, desc))
        if isinstance(kind, SequenceOf) or elt.text is None:
            # Mismatches are reported by the binder.
            return unhinted(elt)
        return scalar(_scalar_text(elt.text, kind), _scalar_kind(kind))

    def check_root(elt: Element, kind: Kind) -> None:
        if isinstance(kind, Record):
            expected = kind.descriptor.root_name
            if elt.tag != expected:
                raise errors.MalformedInputError(
                    f"expected a <{expected}> element, got <{elt.tag}>",
                    offset=elt.offset,
                    content=text,
                )

    if kind is None:
        if not elements:
            raise errors.MalformedInputError("empty document", lineno=1)
        return acc.root(unhinted_group(elements))
    if isinstance(kind, SequenceOf):
        for elt in elements:
            check_root(elt, kind.element)
        return acc.root(
            sequence(
                len(elements), (hinted(e, kind.element) for e in elements)
            )
        )
    if len(elements) != 1:
        raise errors.MalformedInputError(
            f"expected exactly one root element, got {len(elements)}",
            offset=elements[1].offset if elements else 0,
            content=text,
        )
    check_root(elements[0], kind)
    return acc.root(hinted(elements[0], kind))


def _root_name(objs: list[Any]) -> str:
    if not objs:
        return ""
    return registry.describe(type(objs[0])).root_name


def dump_tags(
    obj: Any, *, indent: int | None = None, max_depth: int = base.MAX_DEPTH
) -> str:
    """Serialise the record *obj*

    Args:
      obj: the record to serialise
      indent(int | None): pretty print the output with that indentation
      max_depth(int): maximum nesting depth of *obj*
    """
    root_name = registry.describe(type(obj)).root_name
    return base.reduce_instance(
        obj, TagPrinter(root_name, indent=indent), max_depth=max_depth
    )


def dump_tags_many(
    objs: Iterable[Any],
    *,
    indent: int | None = None,
    max_depth: int = base.MAX_DEPTH,
) -> str:
    """Serialise a sequence of records as a run of sibling root elements

    All the records should be of the same type.
    """
    objs = list(objs)
    return base.reduce_instance(
        objs,
        TagPrinter(_root_name(objs), indent=indent),
        max_depth=max_depth,
    )


def load_tags(
    text: str, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
) -> T:
    """Read an instance of *cls* from a document"""
    node = reduce_tags(
        text, tree.TreeBuilder(), kind=Record(cls), max_depth=max_depth
    )
    return binder.implode(node, cls, max_depth=max_depth)


def load_tags_many(
    text: str, cls: Type[T], *, max_depth: int = base.MAX_DEPTH
) -> list[T]:
    """Read a list of instances of *cls* from a document"""
    node = reduce_tags(
        text,
        tree.TreeBuilder(),
        kind=SequenceOf(Record(cls)),
        max_depth=max_depth,
    )
    return binder.implode_many(node, cls, max_depth=max_depth)

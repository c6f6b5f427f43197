from __future__ import annotations

import logging

import pytest

from dualform import binder, errors, registry, tree
from dualform.base import ScalarKind
from dualform.tree import NULL, Mapping, Scalar, Sequence

from . import models
from .test_tree import DON_QUIXOTE_TREE, S


def author(**entries):
    return Mapping(tuple(entries.items()))


def test_implode():
    assert binder.implode(DON_QUIXOTE_TREE, models.Book) == models.DON_QUIXOTE


def test_missing_field():
    node = author(name=S("Cervantes"))
    with pytest.raises(errors.MissingFieldError) as exc_info:
        binder.implode(node, models.Author)
    assert exc_info.value.path == "birthdate"
    assert exc_info.value.root == "Author"
    assert "birthdate" in str(exc_info.value)


def test_missing_nested_field():
    node = Mapping(
        (
            ("title", S("Don Quixote")),
            ("author", author(name=S("Cervantes"))),
            ("year", S("1605")),
        )
    )
    with pytest.raises(errors.MissingFieldError) as exc_info:
        binder.implode(node, models.Book)
    assert exc_info.value.path == "author.birthdate"


def test_default_substitution():
    node = Mapping(
        (
            ("isbn", NULL),
            ("published", S("2003-04-01")),
            ("price", S("12.99")),
        )
    )
    edition = binder.implode(node, models.Edition)
    assert edition.genre is models.Genre.NOVEL
    assert edition.tags == []
    assert edition.rating == 0.0
    assert edition.in_print is True


def test_absent_nullable_field_is_none():
    node = Mapping((("published", S("2003-04-01")), ("price", S("1"))))
    assert binder.implode(node, models.Edition).isbn is None


def test_null_in_non_nullable_field():
    node = author(name=NULL, birthdate=S("1547-09-29"))
    with pytest.raises(errors.NonNullableFieldMissingError) as exc_info:
        binder.implode(node, models.Author)
    assert exc_info.value.path == "name"


def test_unknown_keys_are_ignored(caplog):
    node = author(
        name=S("Cervantes"), birthdate=S("1547-09-29"), nickname=S("Manco")
    )
    with caplog.at_level(logging.DEBUG, logger="dualform.binder"):
        res = binder.implode(node, models.Author)
    assert res == models.Author("Cervantes", "1547-09-29")
    assert "nickname" in caplog.text


def test_unknown_enum_value():
    node = Mapping(
        (
            ("published", S("2003-04-01")),
            ("price", S("1")),
            ("genre", S("COMEDY")),
        )
    )
    with pytest.raises(errors.UnknownEnumValueError) as exc_info:
        binder.implode(node, models.Edition)
    assert exc_info.value.value == "COMEDY"
    assert exc_info.value.labels == ("NOVEL", "POETRY", "DRAMA")
    assert exc_info.value.path == "genre"


@pytest.mark.parametrize(
    "field, text",
    (
        ("rating", "high"),
        ("in_print", "yes"),
        ("in_print", "1"),
        ("published", "yesterday"),
        ("price", "cheap"),
        ("id", "not-a-uuid"),
    ),
)
def test_type_mismatch(field, text):
    node = Mapping(
        (
            ("published", S("2003-04-01")),
            ("price", S("1")),
            (field, S(text)),
        )
    )
    with pytest.raises(errors.TypeMismatchError) as exc_info:
        binder.implode(node, models.Edition)
    assert exc_info.value.path == field


def test_int_field_rejects_floats():
    node = Mapping(
        (
            ("title", S("Don Quixote")),
            ("author", DON_QUIXOTE_TREE.get("author")),
            ("year", S("1605.5", ScalarKind.FLOAT)),
        )
    )
    with pytest.raises(errors.TypeMismatchError, match="int"):
        binder.implode(node, models.Book)


def test_scalar_kind_is_ignored():
    # Only the text matters: a quoted number can be read as an int.
    node = Mapping(
        (
            ("title", S("1605", ScalarKind.INT)),
            ("author", DON_QUIXOTE_TREE.get("author")),
            ("year", S("1605")),
        )
    )
    book = binder.implode(node, models.Book)
    assert book.title == "1605" and book.year == 1605


@pytest.mark.parametrize(
    "node, expected",
    (
        (S("Cervantes"), "expected a mapping, got a scalar"),
        (Sequence(), "expected a mapping, got a sequence"),
        (NULL, "expected a mapping, got null"),
    ),
)
def test_structure_mismatch(node, expected):
    with pytest.raises(errors.TypeMismatchError, match=expected):
        binder.implode(node, models.Author)


def test_sequence_mismatch():
    desc = registry.describe(models.Library)
    assert desc.by_name["book"].name == "books"
    node = Mapping((("name", S("x")), ("book", Mapping())))
    with pytest.raises(errors.TypeMismatchError, match="sequence") as exc_info:
        binder.implode(node, models.Library)
    assert exc_info.value.path == "book"


def test_error_path_in_sequences():
    books = tree.explode([models.DON_QUIXOTE, models.HAMLET])
    hamlet = books.items[1]
    broken = Mapping(
        tuple((k, S("?") if k == "year" else v) for k, v in hamlet.items())
    )
    node = Sequence((books.items[0], broken))
    with pytest.raises(errors.TypeMismatchError) as exc_info:
        binder.implode_many(node, models.Book)
    assert exc_info.value.path == "[1].year"


def test_implode_many_requires_a_sequence():
    with pytest.raises(errors.TypeMismatchError):
        binder.implode_many(DON_QUIXOTE_TREE, models.Book)


def test_tuple_container():
    node = tree.explode(models.LIBRARY)
    library = binder.implode(node, models.Library)
    assert isinstance(library.editions, tuple)
    assert isinstance(library.books, list)


def test_bind_depth():
    node = tree.explode(models.nest(10))
    with pytest.raises(errors.DepthExceededError):
        binder.implode(node, models.Box, max_depth=5)
    assert binder.implode(node, models.Box) == models.nest(10)


def test_bind_scalar_kinds():
    assert binder.bind(S("12"), registry.Primitive(int)) == 12
    assert binder.bind(S("-1e3"), registry.Primitive(float)) == -1000.0
    assert binder.bind(S("12"), registry.Primitive(float)) == 12.0
    assert binder.bind(S("false"), registry.Primitive(bool)) is False
    strings = registry.SequenceOf(registry.Primitive(str))
    assert binder.bind(Sequence((S("a"), S("b"))), strings) == ["a", "b"]

from __future__ import annotations

import math

import pytest

from dualform import base, binder, errors, tree
from dualform.base import ScalarKind
from dualform.tree import NULL, Mapping, Scalar, Sequence

from . import models


def S(text, kind=ScalarKind.STR):
    return Scalar(text, kind)


DON_QUIXOTE_TREE = Mapping(
    (
        ("title", S("Don Quixote")),
        (
            "author",
            Mapping(
                (
                    ("name", S("Miguel de Cervantes")),
                    ("birthdate", S("1547-09-29")),
                )
            ),
        ),
        ("year", S("1605", ScalarKind.INT)),
    )
)


def test_explode():
    assert tree.explode(models.DON_QUIXOTE) == DON_QUIXOTE_TREE


def test_explode_edition():
    exploded = tree.explode(models.EDITION)
    assert exploded.get("published") == S("2003-04-01")
    assert exploded.get("price") == S("12.99")
    assert exploded.get("genre") == S("NOVEL")
    assert exploded.get("rating") == S("4.5", ScalarKind.FLOAT)
    assert exploded.get("in_print") == S("true", ScalarKind.BOOL)
    assert exploded.get("tags") == Sequence((S("spanish"), S("classic")))
    assert exploded.get("id") == S("12345678-1234-5678-1234-567812345678")


def test_explode_null():
    edition = models.LIBRARY.editions[1]
    exploded = tree.explode(edition)
    assert exploded.get("isbn") is NULL
    assert exploded.get("id") is NULL
    assert exploded.get("tags") == Sequence()


@pytest.mark.parametrize(
    "value", (models.DON_QUIXOTE, models.LIBRARY, models.EDITION)
)
def test_roundtrip(value):
    assert binder.implode(tree.explode(value), type(value)) == value


def test_sequence_roundtrip():
    books = [models.DON_QUIXOTE, models.HAMLET]
    exploded = tree.explode(books)
    assert isinstance(exploded, Sequence)
    assert len(exploded) == 2
    assert binder.implode_many(exploded, models.Book) == books


def test_explode_floats():
    nodes = [
        tree.explode(models.Coord(x, 0.0)).get("lat")
        for x in (1, math.inf, -math.inf, math.nan)
    ]
    assert [n.text for n in nodes] == ["1.0", "inf", "-inf", "nan"]
    assert all(n.kind is ScalarKind.FLOAT for n in nodes)


def test_explode_not_a_record():
    with pytest.raises(errors.UnsupportedTypeError):
        tree.explode({"title": "Don Quixote"})
    with pytest.raises(errors.UnsupportedTypeError):
        tree.explode([1, 2])


def test_explode_type_mismatch():
    bad = models.Book(title=5, author=models.DON_QUIXOTE.author, year=1605)
    with pytest.raises(errors.TypeMismatchError) as exc_info:
        tree.explode(bad)
    assert exc_info.value.path == "title"

    bad = models.Book(title="X", author=models.DON_QUIXOTE.author, year=True)
    with pytest.raises(errors.TypeMismatchError):
        tree.explode(bad)


def test_explode_int_too_large_for_a_float():
    with pytest.raises(errors.TypeMismatchError) as exc_info:
        tree.explode(models.Coord(10**400, 0.0))
    assert exc_info.value.path == "lat"
    assert tree.explode(models.Coord(10**20, 0.0)).get("lat") == (
        S("1e+20", ScalarKind.FLOAT)
    )


def test_explode_int_with_too_many_digits(int_digits_limit):
    huge = models.Book(
        title="X", author=models.DON_QUIXOTE.author, year=10**int_digits_limit
    )
    with pytest.raises(errors.TypeMismatchError) as exc_info:
        tree.explode(huge)
    assert exc_info.value.path == "year"


def test_explode_none_in_non_nullable_field():
    bad = models.Book(title="X", author=None, year=1)
    with pytest.raises(errors.TypeMismatchError) as exc_info:
        tree.explode(bad)
    assert exc_info.value.path == "author"
    assert exc_info.value.root == "book"


def test_cycle():
    box = models.Box("a")
    box.inner = models.Box("b", box)
    with pytest.raises(errors.CyclicReferenceError):
        tree.explode(box)


def test_cycle_in_sequence():
    node = models.Node("root")
    node.children.append(node)
    with pytest.raises(errors.CyclicReferenceError, match=r"children\[0\]"):
        tree.explode(node)


def test_shared_values_are_not_cycles():
    leaf = models.Node("leaf")
    node = models.Node("root", [leaf, leaf])
    exploded = tree.explode(node)
    assert binder.implode(exploded, models.Node) == node


def test_depth_limit():
    tree.explode(models.nest(5), max_depth=5)
    with pytest.raises(errors.DepthExceededError) as exc_info:
        tree.explode(models.nest(6), max_depth=5)
    assert exc_info.value.limit == 5


def test_default_depth_limit():
    with pytest.raises(errors.DepthExceededError):
        tree.explode(models.nest(base.MAX_DEPTH + 1))


def test_mapping():
    m = Mapping((("b", NULL), ("a", S("1", ScalarKind.INT))))
    assert list(m.keys()) == ["b", "a"]
    assert "a" in m and "c" not in m
    assert m.get("c") is None
    assert len(m) == 2
    assert m == Mapping((("b", NULL), ("a", S("1", ScalarKind.INT))))
    with pytest.raises(ValueError):
        Mapping((("a", NULL), ("a", NULL)))


def test_scalar_infer():
    assert Scalar.infer("1605") == S("1605", ScalarKind.INT)
    assert Scalar.infer("-1.5e3") == S("-1.5e3", ScalarKind.FLOAT)
    assert Scalar.infer("false") == S("false", ScalarKind.BOOL)
    assert Scalar.infer("1547-09-29") == S("1547-09-29")


def test_reduce_tree_copies():
    assert tree.reduce_tree(DON_QUIXOTE_TREE, tree.TreeBuilder()) == (
        DON_QUIXOTE_TREE
    )

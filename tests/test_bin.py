from __future__ import annotations

import dataclasses
import math

import msgpack
import pytest

from dualform import bin, errors, tree
from dualform.base import ScalarKind
from dualform.tree import NULL, Mapping, Scalar, Sequence

from . import models


@dataclasses.dataclass
class Counter:
    count: int
    ratio: float = 0.0


def test_msgpack_bounds():
    msgpack.packb(bin.MAX_RAW_INT)
    with pytest.raises(OverflowError):
        msgpack.packb(bin.MAX_RAW_INT + 1)

    msgpack.packb(bin.MIN_RAW_INT)
    with pytest.raises(OverflowError):
        msgpack.packb(bin.MIN_RAW_INT - 1)


@pytest.mark.parametrize(
    "value", (models.DON_QUIXOTE, models.LIBRARY, models.EDITION)
)
def test_roundtrip(value):
    packed = bin.dump_bin(value)
    assert bin.reduce_bin(packed, tree.TreeBuilder()) == tree.explode(value)
    assert bin.load_bin(packed, type(value)) == value


def test_native_types():
    packed = bin.dump_bin(models.EDITION)
    raw = msgpack.unpackb(packed)
    assert raw["isbn"] == "978-0060934347"
    assert raw["rating"] == 4.5
    assert raw["in_print"] is True
    assert raw["tags"] == ["spanish", "classic"]
    assert raw["price"] == "12.99"
    raw = msgpack.unpackb(bin.dump_bin(models.LIBRARY.editions[1]))
    assert raw["id"] is None


@pytest.mark.parametrize("count", (2**80, -(2**70), bin.MAX_RAW_INT))
def test_big_ints(count):
    packed = bin.dump_bin(Counter(count))
    assert bin.load_bin(packed, Counter) == Counter(count)


def test_special_floats():
    for ratio in (math.inf, -math.inf):
        packed = bin.dump_bin(Counter(0, ratio))
        assert bin.load_bin(packed, Counter).ratio == ratio
    loaded = bin.load_bin(bin.dump_bin(Counter(0, math.nan)), Counter)
    assert math.isnan(loaded.ratio)


def test_sequence():
    books = [models.DON_QUIXOTE, models.HAMLET]
    packed = bin.dump_bin_many(books)
    assert len(msgpack.unpackb(packed)) == 2
    assert bin.load_bin_many(packed, models.Book) == books


def test_reduce_bin():
    packed = msgpack.packb(
        {"a": [1, 1.5, True, None, "x"], "b": msgpack.ExtType(0, b"\x01")}
    )
    assert bin.reduce_bin(packed, tree.TreeBuilder()) == Mapping(
        (
            (
                "a",
                Sequence(
                    (
                        Scalar("1", ScalarKind.INT),
                        Scalar("1.5", ScalarKind.FLOAT),
                        Scalar("true", ScalarKind.BOOL),
                        NULL,
                        Scalar("x"),
                    )
                ),
            ),
            ("b", Scalar("1", ScalarKind.INT)),
        )
    )


@pytest.mark.parametrize(
    "packed",
    (
        b"\x92\x01",
        msgpack.packb({1: "a"}),
        msgpack.packb(b"bytes", use_bin_type=True),
        msgpack.packb(msgpack.ExtType(42, b"")),
        msgpack.packb(1) + msgpack.packb(2),
    ),
)
def test_malformed(packed):
    with pytest.raises(errors.MalformedInputError):
        bin.reduce_bin(packed, tree.TreeBuilder())


def test_long_with_too_many_digits(int_digits_limit):
    data = bin.encode_long(10**int_digits_limit)
    packed = msgpack.packb({"count": msgpack.ExtType(bin.Ext.LONG, data)})
    with pytest.raises(errors.MalformedInputError):
        bin.load_bin(packed, Counter)


def test_depth_limit():
    packed = msgpack.packb([[[[1]]]])
    assert bin.reduce_bin(packed, tree.TreeBuilder(), max_depth=4)
    with pytest.raises(errors.DepthExceededError):
        bin.reduce_bin(packed, tree.TreeBuilder(), max_depth=3)

from __future__ import annotations

import sys

import pytest

from dualform import converters, registry


@pytest.fixture(autouse=True)
def _auto_clean(monkeypatch):
    monkeypatch.setattr(
        converters, "DISPATCH_TABLE", converters.DISPATCH_TABLE.copy()
    )
    monkeypatch.setattr(registry, "DESCRIPTORS", registry.DESCRIPTORS.copy())
    monkeypatch.setattr(registry, "METADATA", registry.METADATA.copy())


@pytest.fixture
def int_digits_limit():
    "Restore the interpreter's default limit on int to str conversions"
    if not hasattr(sys, "set_int_max_str_digits"):
        pytest.skip("no limit on int to str conversions")
    old = sys.get_int_max_str_digits()
    sys.set_int_max_str_digits(4300)
    yield 4300
    sys.set_int_max_str_digits(old)

"""Declarative serialisation of records to text and binary documents

:mod:`dualform` converts instances of record types (:mod:`dataclasses` and
:class:`typing.NamedTuple`) to and from documents. The structure of the
documents is read from the type annotations of the records; there is no
per-type serialisation code to write.

Out of the box the supported field types are:

+ :class:`str`, :class:`int`, :class:`float`, :class:`bool`
+ :class:`enum.Enum` subclasses (written by member name)
+ :class:`datetime.date`, :class:`datetime.datetime`, :class:`datetime.time`,
  :class:`uuid.UUID`, :class:`decimal.Decimal` and any type with a converter
  added via :func:`register`
+ other record types
+ ``list[X]``, ``tuple[X, ...]`` and ``collections.abc.Sequence[X]``
+ ``X | None`` for fields that can be absent
"""
from __future__ import annotations

from importlib import metadata

from .converters import register
from .errors import (
    BindError,
    CyclicReferenceError,
    DepthExceededError,
    DualformError,
    MalformedInputError,
    MissingFieldError,
    NonNullableFieldMissingError,
    TypeMismatchError,
    UnknownEnumValueError,
    UnsupportedTypeError,
)
from .formats import (
    BIN,
    INDENT,
    TAGS,
    Codec,
    Format,
    dumps,
    dumps_many,
    loads,
    loads_many,
)
from .registry import configure, describe

# https://packaging.python.org/en/latest/guides/single-sourcing-package-version/
__version__ = metadata.version(__name__)

__all__ = (
    "BIN",
    "INDENT",
    "TAGS",
    "Codec",
    "Format",
    "dumps",
    "dumps_many",
    "loads",
    "loads_many",
    "configure",
    "describe",
    "register",
    "DualformError",
    "UnsupportedTypeError",
    "CyclicReferenceError",
    "DepthExceededError",
    "MalformedInputError",
    "BindError",
    "MissingFieldError",
    "NonNullableFieldMissingError",
    "TypeMismatchError",
    "UnknownEnumValueError",
)

"""
``dualform.errors``: Error taxonomy
===================================

Every error raised by :mod:`dualform` derives from :class:`DualformError`.
The classes also derive from the builtin exception that would have been
raised for the same condition so that generic handlers keep working::

  >>> issubclass(MissingFieldError, ValueError)
  True
  >>> issubclass(UnsupportedTypeError, TypeError)
  True

"""
from __future__ import annotations

from typing import Any, Iterable

from dualform import utils

__all__ = (
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


class DualformError(Exception):
    "Base class for all the errors raised by dualform"


class UnsupportedTypeError(DualformError, TypeError):
    """A type cannot be described.

    Attributes:
      cls: the record type being described (if any)
      field(str | None): the field whose declared type is not supported
    """

    def __init__(
        self, message: str, *, cls: Any = None, field: str | None = None
    ) -> None:
        super().__init__(message)
        self.cls = cls
        self.field = field


class CyclicReferenceError(DualformError, ValueError):
    "The object graph contains a reference cycle."


class DepthExceededError(DualformError, ValueError):
    """The nesting depth guard tripped.

    Attributes:
      limit(int): the maximum depth that was allowed
    """

    def __init__(self, limit: int) -> None:
        super().__init__(f"Maximum nesting depth exceeded ({limit})")
        self.limit = limit


class MalformedInputError(DualformError, ValueError):
    """The codec could not recover a structure from its input.

    Attributes:
      reason(str): what went wrong
      lineno(int | None): 1-based line of the error
      offset(int | None): 0-based character offset of the error
    """

    def __init__(
        self,
        reason: str,
        *,
        lineno: int | None = None,
        offset: int | None = None,
        content: str | None = None,
    ) -> None:
        if lineno is None and offset is not None and content is not None:
            lineno = content.count("\n", 0, offset) + 1
        self.reason = reason
        self.lineno = lineno
        self.offset = offset
        message = reason
        if lineno is not None:
            message = f"line {lineno}: {reason}"
            if content is not None:
                line = utils.get_line(content, lineno)
                if line.strip():
                    message += f" ({utils.cram(line.strip(), 60)!r})"
        super().__init__(message)


class BindError(DualformError, ValueError):
    """A value tree could not be bound to its target type.

    Attributes:
      path(str): dotted path of the offending field (``""`` for the root)
      root(str | None): root name of the enclosing record
    """

    def __init__(
        self,
        reason: str,
        *,
        path: Iterable[str | int] = (),
        root: str | None = None,
    ) -> None:
        self.reason = reason
        self.path = format_path(path)
        self.root = root
        where = self.path or "<root>"
        if root is not None:
            where = f"{root}: {where}"
        super().__init__(f"{where}: {reason}")


class MissingFieldError(BindError):
    "A required field is absent from the input."


class NonNullableFieldMissingError(BindError):
    "A field that cannot be null was given an explicit null."


class TypeMismatchError(BindError):
    "A value does not match the declared type of its field."


class UnknownEnumValueError(BindError):
    """The text does not name any member of the enumeration.

    Attributes:
      value(str):
      labels(tuple[str, ...]): the allowed labels
    """

    def __init__(
        self,
        value: str,
        labels: tuple[str, ...],
        *,
        path: Iterable[str | int] = (),
        root: str | None = None,
    ) -> None:
        self.value = value
        self.labels = labels
        super().__init__(
            f"{value!r} is not one of {', '.join(labels)}",
            path=path,
            root=root,
        )


def format_path(path: Iterable[str | int]) -> str:
    """
    >>> format_path(["authors", 1, "name"])
    'authors[1].name'
    """
    res = ""
    for elt in path:
        if isinstance(elt, int):
            res += f"[{elt}]"
        elif res:
            res += f".{elt}"
        else:
            res = elt
    return res

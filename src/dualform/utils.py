from __future__ import annotations

import pydoc
import typing
from typing import Any

cram = pydoc.cram


def get_line(content: str, lineno: int) -> str:
    """Get the line *lineno* (1-based) of *content*, or ``""``.

    >>> get_line("a\\nb\\nc", 2)
    'b'
    """
    lines = content.splitlines()
    if 1 <= lineno <= len(lines):
        return lines[lineno - 1]
    return ""


def type_name(ty: Any) -> str:
    "A short printable name for a type or a type annotation"
    if isinstance(ty, type) and typing.get_origin(ty) is None:
        if ty.__module__ == "builtins":
            return ty.__qualname__
        return f"{ty.__module__}.{ty.__qualname__}"
    return repr(ty)

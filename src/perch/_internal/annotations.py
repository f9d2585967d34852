"""Helpers for reading handler and constructor annotations."""

import types
import typing
from typing import Any


def unwrap_optional(annotation: Any) -> Any:
    """``User | None`` -> ``User``; anything else is returned unchanged."""
    origin = typing.get_origin(annotation)
    if origin is typing.Union or origin is types.UnionType:
        args = [a for a in typing.get_args(annotation) if a is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation

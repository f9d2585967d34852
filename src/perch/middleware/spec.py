"""Typed middleware references.

Routes and groups accept middleware as an alias string with optional
colon-delimited arguments (``"throttle:uploads"``,
``"role:admin,editor"``), as a class, or as a callable. Each form is
parsed once, at registration, into a ``MiddlewareSpec``.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class MiddlewareSpec:
    """A middleware reference plus the extra arguments to call it with.

    ``ref`` is an alias (``str``), a middleware class, or a middleware
    callable/instance. ``args`` are passed after ``(request, next)``.
    """

    ref: str | type | Callable[..., Any]
    args: tuple[str, ...] = ()

    @classmethod
    def of(cls, ref: str | type | Callable[..., Any], *args: object) -> MiddlewareSpec:
        """Build a spec with arguments, e.g. ``MiddlewareSpec.of(Throttle, 60, 1)``."""
        return cls(ref, tuple(str(a) for a in args))

    @property
    def is_alias(self) -> bool:
        return isinstance(self.ref, str)

    def __str__(self) -> str:
        name = self.ref if isinstance(self.ref, str) else getattr(self.ref, "__qualname__", repr(self.ref))
        if self.args:
            return f"{name}:{','.join(self.args)}"
        return str(name)


type MiddlewareLike = str | type | Callable[..., Any] | MiddlewareSpec


def parse_middleware(value: MiddlewareLike) -> MiddlewareSpec:
    """Parse one middleware reference into a ``MiddlewareSpec``.

    ``"name:arg1,arg2"`` -> ``MiddlewareSpec("name", ("arg1", "arg2"))``.
    """
    if isinstance(value, MiddlewareSpec):
        return value
    if isinstance(value, str):
        name, _, raw_args = value.partition(":")
        name = name.strip()
        if not name:
            msg = f"Empty middleware alias in {value!r}"
            raise ValueError(msg)
        args = tuple(a.strip() for a in raw_args.split(",")) if raw_args else ()
        return MiddlewareSpec(name, args)
    if callable(value):
        return MiddlewareSpec(value)
    msg = f"Not a middleware reference: {value!r}"
    raise TypeError(msg)


def parse_all(values: MiddlewareLike | Iterable[MiddlewareLike] | None) -> tuple[MiddlewareSpec, ...]:
    """Parse a single reference or an iterable of references."""
    if values is None:
        return ()
    if isinstance(values, (str, MiddlewareSpec)) or callable(values):
        return (parse_middleware(values),)
    return tuple(parse_middleware(v) for v in values)

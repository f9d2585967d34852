"""Binding results.

Lookups report failure as a value, not an exception, so the kernel can
apply one not-found policy in one place.
"""

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class Found[T]:
    value: T


@dataclass(frozen=True, slots=True)
class Missing:
    reason: str = ""


type BindingResult[T] = Found[T] | Missing


@dataclass(frozen=True, slots=True)
class BindingFailure:
    """A parameter that could not be bound, as seen by the kernel."""

    param: str
    value: Any
    reason: str


@dataclass(frozen=True, slots=True)
class BoundParams:
    """Every captured parameter after binding, in capture order.

    Failed parameters appear in ``values`` as ``None`` and are listed in
    ``failures``.
    """

    values: dict[str, Any]
    failures: tuple[BindingFailure, ...] = ()

    @property
    def ok(self) -> bool:
        return not self.failures

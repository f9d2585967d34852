"""Route, BindingOptions and RouteMatch frozen dataclasses."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from perch.middleware.spec import MiddlewareSpec
from perch.routing.handler import HandlerRef
from perch.routing.pattern import CompiledPattern
from perch.updates import Verb


@dataclass(frozen=True, slots=True)
class BindingOptions:
    """Model-binding switches for one route.

    ``scope_bindings`` is tri-state: ``None`` inherits the implicit rule
    (scope when a later parameter declares a binding field).
    """

    with_trashed: bool = False
    scope_bindings: bool | None = None


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition.

    Created when the registry is built; never mutated afterwards.
    """

    verbs: frozenset[Verb]
    pattern: str
    compiled: CompiledPattern
    handler: HandlerRef
    middleware: tuple[MiddlewareSpec, ...] = ()
    excluded_middleware: tuple[MiddlewareSpec, ...] = ()
    name: str | None = None
    constraints: Mapping[str, str] = field(default_factory=dict)
    binding: BindingOptions = field(default_factory=BindingOptions)
    defaults: Mapping[str, Any] = field(default_factory=dict)
    fallback: bool = False

    def answers(self, verb: Verb) -> bool:
        """True if this route handles updates of kind *verb*."""
        return Verb.ANY in self.verbs or verb in self.verbs

    def match(self, verb: Verb, payload: str) -> dict[str, Any] | None:
        """Return captured params (with defaults applied) or ``None``."""
        if not self.answers(verb):
            return None
        captures = self.compiled.match(payload)
        if captures is None:
            return None
        for key, value in self.defaults.items():
            if captures.get(key) is None:
                captures[key] = value
        return captures


@dataclass(frozen=True, slots=True)
class RouteMatch:
    """Result of a successful route match."""

    route: Route
    params: dict[str, Any]

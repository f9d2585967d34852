"""Middleware registry: global list, aliases, groups, and priority.

``build(route)`` produces the ordered chain for one route:

1. global middleware, then the route's own (group middleware first)
2. aliases and middleware groups expanded into concrete references
3. anything the route excludes removed
4. stable reorder by the priority list
5. identical references (same target and arguments) collapsed, first kept
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterable, Sequence
from typing import TYPE_CHECKING, Any

from perch.errors import ConfigurationError
from perch.middleware.spec import MiddlewareLike, MiddlewareSpec, parse_all, parse_middleware

if TYPE_CHECKING:
    from perch.routing.route import Route


def _same_target(ref: Any, other: Any) -> bool:
    if ref is other or (isinstance(ref, str) and ref == other):
        return True
    return inspect.isclass(ref) and inspect.isclass(other) and issubclass(ref, other)


def is_excluded(spec: MiddlewareSpec, excluded: Sequence[MiddlewareSpec]) -> bool:
    """True if *spec* is removed by any entry of *excluded*.

    An exclusion without arguments removes every use of its target
    (and of subclasses); with arguments it removes only that exact use.
    """
    for ex in excluded:
        if not _same_target(spec.ref, ex.ref):
            continue
        if not ex.args or ex.args == spec.args:
            return True
    return False


def _priority_index(priority: Sequence[Any], ref: Any) -> int | None:
    for index, entry in enumerate(priority):
        if _same_target(ref, entry):
            return index
    return None


def sort_by_priority(middleware: Iterable[MiddlewareSpec], priority: Sequence[Any]) -> list[MiddlewareSpec]:
    """Stably reorder *middleware* so prioritised entries follow *priority*.

    Entries absent from *priority* keep their position. Whenever a
    prioritised entry is found after one that should come later, it is
    moved directly in front of that entry and the scan restarts.
    """
    items = list(middleware)
    if not priority:
        return items

    while True:
        last_index = 0
        last_priority: int | None = None
        for index, spec in enumerate(items):
            current = _priority_index(priority, spec.ref)
            if current is None:
                continue
            if last_priority is not None and current < last_priority:
                items.insert(last_index, items.pop(index))
                break
            last_index = index
            last_priority = current
        else:
            return items


def unique(middleware: Iterable[MiddlewareSpec]) -> list[MiddlewareSpec]:
    result: list[MiddlewareSpec] = []
    for spec in middleware:
        if spec not in result:
            result.append(spec)
    return result


class MiddlewareRegistry:
    """Mutable during setup; ``build()`` is read-only and safe at dispatch."""

    __slots__ = ("_aliases", "_global", "_groups", "_priority")

    def __init__(self) -> None:
        self._global: list[MiddlewareSpec] = []
        self._aliases: dict[str, type | Callable[..., Any]] = {}
        self._groups: dict[str, tuple[MiddlewareSpec, ...]] = {}
        self._priority: list[MiddlewareLike] = []

    # -- Setup --

    def add(self, middleware: MiddlewareLike) -> None:
        """Append to the global middleware list (runs for every update)."""
        self._global.append(parse_middleware(middleware))

    def prepend(self, middleware: MiddlewareLike) -> None:
        self._global.insert(0, parse_middleware(middleware))

    def alias(self, name: str, target: type | Callable[..., Any]) -> None:
        """Make ``"name"`` (and ``"name:args"``) refer to *target*."""
        if name in self._groups:
            msg = f"{name!r} is already a middleware group"
            raise ConfigurationError(msg)
        self._aliases[name] = target

    def group(self, name: str, middleware: Iterable[MiddlewareLike]) -> None:
        """Make ``"name"`` expand to a list of middleware."""
        if name in self._aliases:
            msg = f"{name!r} is already a middleware alias"
            raise ConfigurationError(msg)
        self._groups[name] = parse_all(middleware)

    def priority(self, order: Iterable[MiddlewareLike]) -> None:
        """Set the priority list (classes, callables, or aliases)."""
        self._priority = list(order)

    @property
    def global_middleware(self) -> tuple[MiddlewareSpec, ...]:
        return tuple(self._global)

    @property
    def aliases(self) -> dict[str, type | Callable[..., Any]]:
        return dict(self._aliases)

    # -- Resolution --

    def expand(self, spec: MiddlewareSpec, _seen: frozenset[str] = frozenset()) -> list[MiddlewareSpec]:
        """Resolve aliases and groups into concrete references."""
        if not isinstance(spec.ref, str):
            return [spec]
        name = spec.ref
        if name in self._groups:
            if name in _seen:
                msg = f"Middleware group {name!r} includes itself"
                raise ConfigurationError(msg)
            expanded: list[MiddlewareSpec] = []
            for member in self._groups[name]:
                expanded.extend(self.expand(member, _seen | {name}))
            return expanded
        try:
            target = self._aliases[name]
        except KeyError:
            msg = f"Unknown middleware alias {name!r}"
            raise ConfigurationError(msg) from None
        return [MiddlewareSpec(target, spec.args)]

    def expand_all(self, specs: Iterable[MiddlewareSpec]) -> list[MiddlewareSpec]:
        result: list[MiddlewareSpec] = []
        for spec in specs:
            result.extend(self.expand(spec))
        return result

    def _priority_targets(self) -> list[Any]:
        targets: list[Any] = []
        for entry in self._priority:
            targets.extend(s.ref for s in self.expand(parse_middleware(entry)))
        return targets

    def build(self, route: Route | None) -> list[MiddlewareSpec]:
        """Return the resolved, ordered middleware chain for *route*."""
        chain = self.expand_all(self._global)
        excluded: list[MiddlewareSpec] = []
        if route is not None:
            chain.extend(self.expand_all(route.middleware))
            excluded = self.expand_all(route.excluded_middleware)
        if excluded:
            chain = [spec for spec in chain if not is_excluded(spec, excluded)]
        return unique(sort_by_priority(chain, self._priority_targets()))

    def validate(self, routes: Iterable[Route]) -> None:
        """Expand every route's middleware so unknown aliases fail at boot."""
        for route in routes:
            self.build(route)

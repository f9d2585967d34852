"""Route registration API.

The Router collects pending routes during setup, capturing the attributes
of every enclosing group at the moment each route is declared. ``build()``
compiles them, in declaration order, into an immutable ``RouteRegistry``.

Usage::

    router = Router()
    router.pattern("id", NUMBER)

    router.command("start", start)
    with router.group(prefix="user", name="user.", middleware=["auth"]):
        router.text("{id}", show_user).name("show")
        router.callback_query("{id} delete", delete_user).middleware("throttle:destructive")
    router.fallback(not_understood)

    registry = router.build()
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator, Mapping
from contextlib import contextmanager
from typing import Any

from perch.middleware.spec import MiddlewareLike, MiddlewareSpec, parse_all
from perch.routing import constraints as _constraints
from perch.routing.constraints import ConstraintRegistry
from perch.routing.group import EffectiveAttributes, GroupAttributes, GroupContext
from perch.routing.handler import HandlerRef
from perch.routing.pattern import compile_pattern, join
from perch.routing.registry import RouteRegistry
from perch.routing.route import BindingOptions, Route
from perch.updates import Verb

FALLBACK_PATTERN = "{payload?}"
FALLBACK_CONSTRAINT = ".*"


class PendingRoute:
    """A route waiting to be compiled.

    Returned by every registration call so options can be chained::

        router.text("user {id}", show).name("user.show").where_number("id")
    """

    __slots__ = (
        "_defaults",
        "_excluded",
        "_middleware",
        "_name",
        "_scope_bindings",
        "_where",
        "_with_trashed",
        "fallback",
        "group",
        "handler",
        "pattern",
        "verbs",
    )

    def __init__(
        self,
        verbs: frozenset[Verb],
        pattern: str,
        handler: HandlerRef,
        group: EffectiveAttributes,
        *,
        fallback: bool = False,
    ) -> None:
        self.verbs = verbs
        self.pattern = pattern
        self.handler = handler
        self.group = group
        self.fallback = fallback
        self._name: str | None = None
        self._middleware: list[MiddlewareSpec] = []
        self._excluded: list[MiddlewareSpec] = []
        self._where: dict[str, str] = {}
        self._defaults: dict[str, Any] = {}
        self._with_trashed: bool | None = None
        self._scope_bindings: bool | None = None

    # -- Fluent options --

    def name(self, name: str) -> PendingRoute:
        """Name the route. The enclosing groups' name prefix is prepended."""
        self._name = name
        return self

    def middleware(self, *middleware: MiddlewareLike) -> PendingRoute:
        self._middleware.extend(parse_all(middleware))
        return self

    def without_middleware(self, *middleware: MiddlewareLike) -> PendingRoute:
        self._excluded.extend(parse_all(middleware))
        return self

    def where(self, name: str | Mapping[str, str], regex: str | None = None) -> PendingRoute:
        """Constrain parameters: ``where("id", r"\\d+")`` or ``where({...})``."""
        if isinstance(name, Mapping):
            self._where.update(name)
        elif regex is not None:
            self._where[name] = regex
        return self

    def where_number(self, *names: str) -> PendingRoute:
        return self._where_all(names, _constraints.NUMBER)

    def where_alpha(self, *names: str) -> PendingRoute:
        return self._where_all(names, _constraints.ALPHA)

    def where_alpha_numeric(self, *names: str) -> PendingRoute:
        return self._where_all(names, _constraints.ALPHA_NUMERIC)

    def where_uuid(self, *names: str) -> PendingRoute:
        return self._where_all(names, _constraints.UUID)

    def where_ulid(self, *names: str) -> PendingRoute:
        return self._where_all(names, _constraints.ULID)

    def where_in(self, name: str, values: Iterable[object]) -> PendingRoute:
        self._where[name] = _constraints.one_of(values)
        return self

    def defaults(self, **values: Any) -> PendingRoute:
        """Values used when an optional parameter is not captured."""
        self._defaults.update(values)
        return self

    def with_trashed(self, flag: bool = True) -> PendingRoute:
        self._with_trashed = flag
        return self

    def scope_bindings(self) -> PendingRoute:
        self._scope_bindings = True
        return self

    def without_scoped_bindings(self) -> PendingRoute:
        self._scope_bindings = False
        return self

    def _where_all(self, names: Iterable[str], regex: str) -> PendingRoute:
        for name in names:
            self._where[name] = regex
        return self

    # -- Compilation --

    @property
    def full_name(self) -> str | None:
        if self._name is None:
            return None
        return self.group.name + self._name

    def to_route(self, global_constraints: Mapping[str, str] | None = None) -> Route:
        """Compile into an immutable Route, merging group attributes."""
        group = self.group
        constraints = {**group.where, **self._where}
        with_trashed = self._with_trashed if self._with_trashed is not None else group.with_trashed
        scope = self._scope_bindings if self._scope_bindings is not None else group.scope_bindings
        return Route(
            verbs=self.verbs,
            pattern=self.pattern,
            compiled=compile_pattern(self.pattern, constraints, global_constraints),
            handler=self.handler,
            middleware=(*group.middleware, *self._middleware),
            excluded_middleware=(*group.without_middleware, *self._excluded),
            name=self.full_name,
            constraints=constraints,
            binding=BindingOptions(with_trashed=with_trashed, scope_bindings=scope),
            defaults=dict(self._defaults),
            fallback=self.fallback,
        )

    def __repr__(self) -> str:
        verbs = ",".join(sorted(self.verbs))
        return f"<PendingRoute {verbs} {self.pattern!r} -> {self.handler.display_name}>"


class Router:
    """Mutable route builder. ``build()`` produces the frozen registry."""

    __slots__ = ("_groups", "_pending", "constraints")

    def __init__(self, constraints: ConstraintRegistry | None = None) -> None:
        self.constraints = constraints or ConstraintRegistry()
        self._groups = GroupContext()
        self._pending: list[PendingRoute] = []

    @property
    def groups(self) -> GroupContext:
        return self._groups

    @property
    def pending(self) -> list[PendingRoute]:
        return list(self._pending)

    def pattern(self, name: str, regex: str) -> None:
        """Register a global constraint for every parameter called *name*."""
        self.constraints.pattern(name, regex)

    # -- Groups --

    @contextmanager
    def group(
        self,
        *,
        prefix: str = "",
        name: str = "",
        middleware: MiddlewareLike | Iterable[MiddlewareLike] | None = None,
        without_middleware: MiddlewareLike | Iterable[MiddlewareLike] | None = None,
        where: Mapping[str, str] | None = None,
        controller: type | str | None = None,
        with_trashed: bool | None = None,
        scope_bindings: bool | None = None,
    ) -> Iterator[EffectiveAttributes]:
        """Enter a route group for the duration of a ``with`` block."""
        attrs = GroupAttributes.create(
            prefix=prefix,
            name=name,
            middleware=middleware,
            without_middleware=without_middleware,
            where=where,
            controller=controller,
            with_trashed=with_trashed,
            scope_bindings=scope_bindings,
        )
        with self._groups.group(attrs) as effective:
            yield effective

    # -- Registration --

    def add(
        self,
        verbs: Verb | Iterable[Verb],
        pattern: str,
        handler: Any,
        *,
        name: str | None = None,
        middleware: MiddlewareLike | Iterable[MiddlewareLike] | None = None,
        without_middleware: MiddlewareLike | Iterable[MiddlewareLike] | None = None,
        where: Mapping[str, str] | None = None,
        defaults: Mapping[str, Any] | None = None,
        fallback: bool = False,
    ) -> PendingRoute:
        """Register a route and return its builder."""
        effective = self._groups.current_effective()
        verb_set = frozenset([verbs] if isinstance(verbs, Verb) else verbs)
        if not verb_set:
            msg = f"Route {pattern!r} must answer at least one verb"
            raise ValueError(msg)

        pending = PendingRoute(
            verb_set,
            join(effective.prefix, pattern),
            HandlerRef.coerce(handler, effective.controller),
            effective,
            fallback=fallback,
        )
        if name is not None:
            pending.name(name)
        if middleware is not None:
            pending.middleware(*parse_all(middleware))
        if without_middleware is not None:
            pending.without_middleware(*parse_all(without_middleware))
        if where:
            pending.where(where)
        if defaults:
            pending.defaults(**defaults)
        self._pending.append(pending)
        return pending

    def on(
        self,
        verbs: Verb | Iterable[Verb],
        pattern: str,
        handler: Any = None,
        **options: Any,
    ) -> Any:
        """Register *handler* for *verbs*, or return a decorator if omitted."""
        if handler is not None:
            return self.add(verbs, pattern, handler, **options)

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.add(verbs, pattern, func, **options)
            return func

        return decorator

    def text(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        return self.on(Verb.TEXT, pattern, handler, **options)

    def command(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        return self.on(Verb.COMMAND, pattern, handler, **options)

    def callback_query(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        return self.on(Verb.CALLBACK_QUERY, pattern, handler, **options)

    def inline_query(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        return self.on(Verb.INLINE_QUERY, pattern, handler, **options)

    def any(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        """Register a route that answers every update kind."""
        return self.on(Verb.ANY, pattern, handler, **options)

    def fallback(self, handler: Any = None, *, verbs: Verb | Iterable[Verb] = Verb.ANY, **options: Any) -> Any:
        """Register the route used when nothing else matches.

        The whole payload is captured as ``payload``.
        """
        where = {"payload": FALLBACK_CONSTRAINT, **(options.pop("where", None) or {})}
        return self.on(verbs, FALLBACK_PATTERN, handler, where=where, fallback=True, **options)

    # -- Compilation --

    def build(self) -> RouteRegistry:
        """Compile every pending route into a frozen ``RouteRegistry``.

        Raises ``PatternError`` for a bad pattern and ``ConfigurationError``
        for a duplicate name or a second fallback.
        """
        global_constraints = self.constraints.as_dict()
        registry = RouteRegistry(p.to_route(global_constraints) for p in self._pending)
        registry.compile()
        return registry

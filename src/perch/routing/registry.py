"""Route registry: ordered routes, a name index, and first-match lookup.

Routes are registered at boot and the registry is compiled (frozen)
before the first dispatch. After that it is only read, so concurrent
dispatches can share it without locking.
"""

import logging
from collections.abc import Iterable, Iterator

from perch.errors import ConfigurationError, RouteNotFound, Unhandled
from perch.routing.route import Route, RouteMatch
from perch.updates import Verb

logger = logging.getLogger("perch.routing")


class RouteRegistry:
    """Ordered route collection with a designated fallback.

    Usage::

        registry = RouteRegistry()
        registry.register(route)
        registry.compile()
        match = registry.match(Verb.TEXT, "user 42")

    Matching scans routes in registration order and returns the first
    whose verbs and pattern both match. The fallback route, if any, is
    tried only after every other route has failed, wherever it was
    registered.
    """

    __slots__ = ("_compiled", "_fallback", "_names", "_routes")

    def __init__(self, routes: Iterable[Route] = ()) -> None:
        self._routes: list[Route] = []
        self._names: dict[str, Route] = {}
        self._fallback: Route | None = None
        self._compiled = False
        for route in routes:
            self.register(route)

    def register(self, route: Route) -> None:
        """Add a route. Must be called before compile().

        Raises ``ConfigurationError`` for a duplicate route name or a
        second fallback route.
        """
        if self._compiled:
            msg = "Cannot add routes after compilation."
            raise RuntimeError(msg)

        if route.name is not None:
            if route.name in self._names:
                existing = self._names[route.name]
                msg = (
                    f"Route name {route.name!r} is already used by "
                    f"{existing.pattern!r}; cannot reuse it for {route.pattern!r}"
                )
                raise ConfigurationError(msg)
            self._names[route.name] = route

        if route.fallback:
            if self._fallback is not None:
                msg = (
                    f"A fallback route is already registered ({self._fallback.handler.display_name}); "
                    "only one fallback is allowed"
                )
                raise ConfigurationError(msg)
            self._fallback = route
            return

        self._routes.append(route)

    def compile(self) -> None:
        """Freeze the registry. No more routes can be added."""
        self._compiled = True

    @property
    def compiled(self) -> bool:
        return self._compiled

    @property
    def fallback(self) -> Route | None:
        return self._fallback

    @property
    def routes(self) -> list[Route]:
        """All routes in match order (fallback last)."""
        if self._fallback is None:
            return list(self._routes)
        return [*self._routes, self._fallback]

    def __iter__(self) -> Iterator[Route]:
        return iter(self.routes)

    def __len__(self) -> int:
        return len(self._routes) + (1 if self._fallback is not None else 0)

    def has(self, name: str) -> bool:
        return name in self._names

    def find_by_name(self, name: str) -> Route:
        """Return the route registered as *name*.

        Raises ``RouteNotFound`` if no route has that name.
        """
        try:
            return self._names[name]
        except KeyError:
            msg = f"No route named {name!r}"
            raise RouteNotFound(msg) from None

    def match(self, verb: Verb, payload: str) -> RouteMatch:
        """Match an update against the registry.

        Returns a ``RouteMatch`` on success.
        Raises ``Unhandled`` if no route (and no fallback) matches.
        """
        for route in self._routes:
            params = route.match(verb, payload)
            if params is not None:
                logger.debug("%s %r matched %r", verb, payload, route.pattern)
                return RouteMatch(route=route, params=params)

        if self._fallback is not None:
            params = self._fallback.match(verb, payload)
            if params is not None:
                logger.debug("%s %r fell back to %s", verb, payload, self._fallback.handler.display_name)
                return RouteMatch(route=self._fallback, params=params)

        raise Unhandled(str(verb), payload)

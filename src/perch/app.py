"""Perch application class.

Mutable during setup (route registration, middleware, binders, limiters).
Frozen at runtime when the first update is handled.
"""

import logging
import threading
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import anyio

from perch._internal.invoke import invoke
from perch.binding.binder import ParameterBinder
from perch.binding.repository import Repository
from perch.config import AppConfig
from perch.container import Container, signature_of
from perch.context import dispatch_scope
from perch.errors import ConfigurationError, DispatchError, ModelNotFound
from perch.middleware.pipeline import Pipeline
from perch.middleware.registry import MiddlewareRegistry
from perch.middleware.spec import MiddlewareLike
from perch.middleware.throttle import ThrottleRequests
from perch.ratelimit.limiter import RateLimiter
from perch.ratelimit.store import RateLimitStore
from perch.rendering import ErrorHandler, call_error_handler, default_response, find_error_handler
from perch.request import Request
from perch.response import Response, empty
from perch.routing.cache import read_cache, write_cache
from perch.routing.registry import RouteRegistry
from perch.routing.route import Route, RouteMatch
from perch.routing.router import Router
from perch.updates import FOREIGN_COMMAND, Unknown, Update, parse_update

logger = logging.getLogger("perch.dispatch")

type Send = Callable[[Request, Response], Awaitable[Any] | Any]


@dataclass(slots=True)
class Dispatch:
    """The outcome of handling one update.

    ``pipeline`` is None when the update never reached the middleware
    (no route matched, or binding aborted). ``error`` is set only by
    ``process_many`` for an update whose exception nothing rendered; its
    response is then empty.
    """

    request: Request
    response: Response
    pipeline: Pipeline | None = None
    match: RouteMatch | None = None
    error: Exception | None = None


class App:
    """The perch application.

    Mutable during setup (route registration, middleware, binders).
    Frozen at runtime when ``handle()`` is first invoked.

    Thread safety:
        The setup phase is single-threaded (decorators at import time).
        The freeze transition uses a Lock + double-check so exactly one
        thread builds the route registry, even when several workers
        receive their first update at the same time.
    """

    __slots__ = (
        "_declared",
        "_error_handlers",
        "_freeze_lock",
        "_frozen",
        # Compiled state (populated by _freeze, rebuild or load_from_cache)
        "_registry",
        "binder",
        "config",
        "container",
        "limiter",
        "middleware",
        "router",
    )

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        repository: Repository | None = None,
        rate_limit_store: RateLimitStore | None = None,
    ) -> None:
        self.config: AppConfig = config or AppConfig()
        self.router = Router()
        self.middleware = MiddlewareRegistry()
        self.middleware.alias("throttle", ThrottleRequests)
        self.binder = ParameterBinder(repository)
        self.limiter = RateLimiter(rate_limit_store)

        self.container = Container()
        self.container.instance(AppConfig, self.config)
        self.container.instance(RateLimiter, self.limiter)
        self.container.instance(ParameterBinder, self.binder)
        self.container.instance(App, self)

        self._error_handlers: dict[type, ErrorHandler] = {}
        self._declared: dict[int, dict[str, Any]] = {}
        self._registry: RouteRegistry | None = None
        self._frozen: bool = False
        self._freeze_lock: threading.Lock = threading.Lock()

    # -- Routes --

    def on(self, verbs: Any, pattern: str, handler: Any = None, **options: Any) -> Any:
        """Register a route for *verbs*; returns a decorator if *handler* is omitted."""
        self._check_not_frozen()
        return self.router.on(verbs, pattern, handler, **options)

    def text(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        """Register a plain-text route.

        Usage::

            @app.text("hello {name?}")
            def hello(name: str = "there") -> str:
                return f"Hello, {name}!"
        """
        self._check_not_frozen()
        return self.router.text(pattern, handler, **options)

    def command(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        """Register a ``/command`` route. The pattern omits the slash."""
        self._check_not_frozen()
        return self.router.command(pattern, handler, **options)

    def callback_query(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        self._check_not_frozen()
        return self.router.callback_query(pattern, handler, **options)

    def inline_query(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        self._check_not_frozen()
        return self.router.inline_query(pattern, handler, **options)

    def any(self, pattern: str, handler: Any = None, **options: Any) -> Any:
        self._check_not_frozen()
        return self.router.any(pattern, handler, **options)

    def fallback(self, handler: Any = None, **options: Any) -> Any:
        """Register the route used when nothing else matches."""
        self._check_not_frozen()
        return self.router.fallback(handler, **options)

    def group(self, **attributes: Any) -> Any:
        """Context manager: routes registered inside share *attributes*.

        Usage::

            with app.group(prefix="admin", name="admin.", middleware="auth"):
                app.command("ban {user}", ban, name="ban")
        """
        self._check_not_frozen()
        return self.router.group(**attributes)

    def pattern(self, name: str, regex: str) -> None:
        """Constrain every parameter called *name* to *regex*."""
        self._check_not_frozen()
        self.router.pattern(name, regex)

    def payload_for(self, name: str, **params: Any) -> str:
        """Render the payload that would reach the route called *name*.

        Useful for callback data::

            data = app.payload_for("orders.show", order=42)  # "orders show 42"
        """
        route = self.registry.find_by_name(name)
        return route.compiled.build(params)

    # -- Error handlers --

    def error(self, exc_type: type[BaseException]) -> Callable[[ErrorHandler], ErrorHandler]:
        """Register an error handler via decorator."""

        def decorator(func: ErrorHandler) -> ErrorHandler:
            self._check_not_frozen()
            self._error_handlers[exc_type] = func
            return func

        return decorator

    # -- Middleware --

    def add_middleware(self, middleware: MiddlewareLike) -> None:
        """Append a global middleware (runs for every matched update)."""
        self._check_not_frozen()
        self.middleware.add(middleware)

    def prepend_middleware(self, middleware: MiddlewareLike) -> None:
        self._check_not_frozen()
        self.middleware.prepend(middleware)

    def alias_middleware(self, name: str, target: type | Callable[..., Any]) -> None:
        self._check_not_frozen()
        self.middleware.alias(name, target)

    def middleware_group(self, name: str, middleware: Iterable[MiddlewareLike]) -> None:
        self._check_not_frozen()
        self.middleware.group(name, middleware)

    def middleware_priority(self, order: Iterable[MiddlewareLike]) -> None:
        self._check_not_frozen()
        self.middleware.priority(order)

    # -- Binding and services --

    def bind(self, name: str, resolver: Callable[[str], Any]) -> None:
        """Resolve route parameter *name* with *resolver* (sync or async)."""
        self._check_not_frozen()
        self.binder.register(name, resolver)

    def model(self, name: str, model: type) -> None:
        """Bind route parameter *name* to a Model subclass."""
        self._check_not_frozen()
        self.binder.register_model(name, model)

    def provide(self, annotation: Any, factory: Callable[[], Any]) -> None:
        """Register a provider for handler/constructor injection.

        Usage::

            app.provide(Database, get_db)

            @app.command("stats")
            async def stats(db: Database) -> str: ...
        """
        self._check_not_frozen()
        self.container.provide(annotation, factory)

    # -- Registry lifecycle --

    @property
    def registry(self) -> RouteRegistry:
        self._ensure_frozen()
        assert self._registry is not None
        return self._registry

    @property
    def routes(self) -> list[Route]:
        return self.registry.routes

    def rebuild(self) -> RouteRegistry:
        """Compile the registry from the routes registered on this app."""
        self._install(self.router.build())
        assert self._registry is not None
        return self._registry

    def load_from_cache(self, path: str | Path | None = None) -> RouteRegistry:
        """Install a registry from a route cache instead of compiling routes."""
        source = self._cache_path(path)
        self._install(read_cache(source))
        logger.info("loaded %d routes from %s", len(self._registry or ()), source)
        assert self._registry is not None
        return self._registry

    def cache_routes(self, path: str | Path | None = None) -> Path:
        """Compile the registered routes and write them to a cache file."""
        registry = self.router.build()
        self.middleware.validate(registry)
        target = write_cache(registry, self._cache_path(path))
        logger.info("cached %d routes to %s", len(registry), target)
        return target

    def _cache_path(self, path: str | Path | None) -> Path:
        source = path if path is not None else self.config.route_cache
        if source is None:
            msg = "No route cache path given and AppConfig.route_cache is not set"
            raise ConfigurationError(msg)
        return Path(source)

    def _install(self, registry: RouteRegistry) -> None:
        if self._registry is not None:
            msg = "The route registry is already populated; rebuild() and load_from_cache() are exclusive"
            raise ConfigurationError(msg)
        self.middleware.validate(registry)
        self._registry = registry

    def _ensure_frozen(self) -> None:
        """Thread-safe freeze with double-check locking."""
        if self._frozen:
            return
        with self._freeze_lock:
            if self._frozen:
                return
            self._freeze()

    def _freeze(self) -> None:
        """Populate the registry if nobody has yet.

        MUST only be called while holding _freeze_lock.
        """
        if self._registry is None:
            cache = self.config.route_cache
            if cache is not None and Path(cache).is_file():
                self.load_from_cache(cache)
            else:
                self.rebuild()
        self._frozen = True

    def _check_not_frozen(self) -> None:
        if self._frozen:
            msg = (
                "Cannot modify the app after it has started handling updates. "
                "Register routes, middleware, and binders before the first dispatch."
            )
            raise RuntimeError(msg)

    # -- Dispatch --

    def _declared_types(self, route: Route) -> dict[str, Any]:
        key = id(route)
        declared = self._declared.get(key)
        if declared is None:
            parameters = signature_of(route.handler.signature_target()).parameters
            declared = {name: p.annotation for name, p in parameters.items() if p.annotation is not p.empty}
            self._declared[key] = declared
        return declared

    async def _bind(self, request: Request, match: RouteMatch) -> Request:
        bound = await self.binder.bind_all(match.route, match.params, self._declared_types(match.route))
        if bound.failures and self.config.binding_failure == "abort":
            failure = bound.failures[0]
            raise ModelNotFound(failure.param, failure.value, failure.reason)
        return request.with_route(match.route, match.params, bound.values)

    async def _call_handler(self, request: Request) -> Any:
        assert request.route is not None
        handler = request.route.handler.resolve(self.container)
        args, kwargs = self.container.arguments(handler, request, request.bindings)
        return await invoke(handler, *args, **kwargs)

    async def _render_error(self, request: Request, exc: Exception) -> Response | None:
        handler = find_error_handler(exc, self._error_handlers)
        if handler is not None:
            return await call_error_handler(handler, request, exc)
        if isinstance(exc, DispatchError):
            return default_response(exc, self.config)
        logger.exception("error while handling %s %r", request.verb, request.payload)
        return None

    async def handle(self, update: Update | Mapping[str, Any]) -> Dispatch:
        """Route, bind, and run one update through its middleware and handler.

        Dispatch errors are rendered into the returned response. Anything
        without an error handler or default rendering propagates.
        """
        self._ensure_frozen()
        assert self._registry is not None
        if isinstance(update, Mapping):
            update = parse_update(update, bot_username=self.config.bot_username)

        request = Request(update)
        if isinstance(update, Unknown) and update.kind == FOREIGN_COMMAND:
            logger.debug("ignoring a command addressed to another bot")
            return Dispatch(request=request, response=empty())

        match: RouteMatch | None = None
        pipeline: Pipeline | None = None
        with dispatch_scope(request) as scope:
            try:
                match = self._registry.match(update.verb, update.payload)
                request = scope.request = await self._bind(request, match)
                pipeline = Pipeline(self.middleware.build(match.route), self.container)
                response = await pipeline.run(request, self._call_handler)
            except Exception as exc:
                rendered = await self._render_error(request, exc)
                if rendered is None:
                    raise
                response = rendered
        return Dispatch(request=request, response=response, pipeline=pipeline, match=match)

    async def terminate(self, dispatch: Dispatch) -> None:
        """Run ``terminate`` hooks once the response has been delivered."""
        if dispatch.pipeline is not None:
            await dispatch.pipeline.terminate(dispatch.request, dispatch.response)

    async def process(
        self,
        update: Update | Mapping[str, Any],
        send: Send | None = None,
    ) -> Dispatch:
        """Handle *update*, hand a non-empty response to *send*, then terminate.

        Terminate hooks run only once delivery is done: after *send*
        returns, or straight away when there is nothing to send. A failing
        *send* skips them and propagates.
        """
        dispatch = await self.handle(update)
        if send is not None and not dispatch.response.is_empty:
            await invoke(send, dispatch.request, dispatch.response)
        await self.terminate(dispatch)
        return dispatch

    async def process_many(
        self,
        updates: Iterable[Update | Mapping[str, Any]],
        send: Send | None = None,
    ) -> list[Dispatch]:
        """Process *updates* concurrently; results keep the input order.

        Each update is independent: an exception that no error handler
        renders is logged and recorded on that update's ``Dispatch.error``
        instead of cancelling the rest of the batch.
        """
        self._ensure_frozen()
        batch = list(updates)
        results: list[Dispatch | None] = [None] * len(batch)

        async def run(index: int, update: Update | Mapping[str, Any]) -> None:
            if isinstance(update, Mapping):
                update = parse_update(update, bot_username=self.config.bot_username)
            try:
                results[index] = await self.process(update, send)
            except Exception as exc:
                logger.exception("update %d of the batch failed: %s %r", index, update.verb, update.payload)
                results[index] = Dispatch(request=Request(update), response=empty(), error=exc)

        async with anyio.create_task_group() as tg:
            for index, update in enumerate(batch):
                tg.start_soon(run, index, update)
        return [dispatch for dispatch in results if dispatch is not None]

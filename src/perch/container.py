"""Service container: provider registry and handler argument resolution.

Handlers and middleware classes declare what they need through type
annotations. The container supplies registered services, the current
request, and the bound route parameters::

    app.provide(Database, get_db)

    async def show(request: Request, db: Database, user: User) -> str: ...

Resolution order per handler parameter:

1. ``request`` (by name or ``Request`` annotation)
2. a route parameter with the same name (already bound by the binder)
3. a provider or instance registered for the annotation
4. the next unused route parameter, in capture order
5. the parameter's default
"""

import inspect
from collections.abc import Callable, Mapping
from typing import Any

from perch._internal.annotations import unwrap_optional
from perch.errors import ConfigurationError
from perch.request import Request

_EMPTY = inspect.Parameter.empty


def signature_of(func: Callable[..., Any]) -> inspect.Signature:
    """``inspect.signature`` with string annotations evaluated."""
    try:
        return inspect.signature(func, eval_str=True)
    except NameError:
        return inspect.signature(func)


class Container:
    """Maps annotations to factories or shared instances."""

    __slots__ = ("_instances", "_providers")

    def __init__(self) -> None:
        self._providers: dict[Any, Callable[[], Any]] = {}
        self._instances: dict[Any, Any] = {}

    def provide(self, annotation: Any, factory: Callable[[], Any]) -> None:
        """Call *factory* (no arguments) whenever *annotation* is requested."""
        self._providers[annotation] = factory

    def instance(self, annotation: Any, obj: Any) -> None:
        """Share *obj* for every request of *annotation*."""
        self._instances[annotation] = obj

    def has(self, annotation: Any) -> bool:
        return annotation in self._instances or annotation in self._providers

    def get(self, annotation: Any) -> Any:
        if annotation in self._instances:
            return self._instances[annotation]
        try:
            factory = self._providers[annotation]
        except KeyError:
            msg = f"Nothing is registered for {annotation!r}"
            raise ConfigurationError(msg) from None
        return factory()

    def make(self, cls: type) -> Any:
        """Instantiate *cls*, injecting constructor dependencies.

        Registered services win; unregistered parameters must have defaults.
        """
        if self.has(cls):
            return self.get(cls)
        if cls.__init__ is object.__init__:
            return cls()

        kwargs: dict[str, Any] = {}
        for name, param in signature_of(cls.__init__).parameters.items():
            if name == "self" or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            annotation = unwrap_optional(param.annotation)
            if annotation is not _EMPTY and self.has(annotation):
                kwargs[name] = self.get(annotation)
            elif param.default is _EMPTY:
                msg = f"Cannot build {cls.__qualname__}: unresolvable parameter {name!r}"
                raise ConfigurationError(msg)
        return cls(**kwargs)

    def arguments(
        self,
        func: Callable[..., Any],
        request: Request,
        params: Mapping[str, Any],
    ) -> tuple[list[Any], dict[str, Any]]:
        """Build ``(args, kwargs)`` for calling *func*."""
        parameters = signature_of(func).parameters
        leftovers = list(params)
        # Parameters claimed by name are never handed out positionally
        used: set[str] = {name for name in parameters if name in params}
        args: list[Any] = []
        kwargs: dict[str, Any] = {}

        def next_leftover() -> tuple[bool, Any]:
            while leftovers:
                key = leftovers.pop(0)
                if key not in used:
                    used.add(key)
                    return True, params[key]
            return False, None

        for name, param in parameters.items():
            if param.kind is param.VAR_KEYWORD:
                continue
            if param.kind is param.VAR_POSITIONAL:
                while True:
                    found, value = next_leftover()
                    if not found:
                        break
                    args.append(value)
                continue

            annotation = unwrap_optional(param.annotation)
            if name == "request" or annotation is Request:
                value = request
            elif name in params:
                value = params[name]
                if value is None and param.default is not _EMPTY:
                    value = param.default
            elif annotation is not _EMPTY and self.has(annotation):
                value = self.get(annotation)
            else:
                found, value = next_leftover()
                if not found:
                    if param.default is _EMPTY:
                        qualname = getattr(func, "__qualname__", repr(func))
                        msg = f"Cannot call {qualname}: no value for parameter {name!r}"
                        raise ConfigurationError(msg)
                    value = param.default

            if param.kind is param.KEYWORD_ONLY:
                kwargs[name] = value
            else:
                args.append(value)

        return args, kwargs

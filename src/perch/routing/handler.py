"""Handler references.

A route's handler is stored as a ``HandlerRef`` and only resolved to a
callable at dispatch time, so controllers can be instantiated per update
by the container and cached registries can name handlers by import path.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from perch._internal.imports import import_string
from perch.errors import ConfigurationError

if TYPE_CHECKING:
    from perch.container import Container


@dataclass(frozen=True, slots=True)
class HandlerRef:
    """A callable, a ``(Controller, "method")`` pair, or an import string.

    ``target`` may be the object itself or ``"module:qualname"``.
    """

    target: Callable[..., Any] | type | str
    method: str | None = None

    @classmethod
    def coerce(cls, handler: Any, controller: type | str | None = None) -> HandlerRef:
        """Normalise the handler forms accepted at registration.

        - ``HandlerRef`` passes through
        - ``(Controller, "method")`` becomes a controller pair
        - ``"method"`` with a group *controller* becomes a controller pair
        - ``"module:attr"`` stays an import string
        - any other callable is wrapped as-is
        """
        if isinstance(handler, HandlerRef):
            return handler
        if isinstance(handler, tuple):
            if len(handler) != 2 or not isinstance(handler[1], str):
                msg = f"Controller handler must be (Controller, 'method'), got {handler!r}"
                raise ConfigurationError(msg)
            return cls(handler[0], handler[1])
        if isinstance(handler, str):
            if ":" in handler:
                return cls(handler)
            if controller is None:
                msg = f"Handler {handler!r} names a method but no group controller is set"
                raise ConfigurationError(msg)
            return cls(controller, handler)
        if callable(handler):
            return cls(handler)
        msg = f"Not a route handler: {handler!r}"
        raise ConfigurationError(msg)

    @property
    def display_name(self) -> str:
        target = self.target
        name = target if isinstance(target, str) else getattr(target, "__qualname__", repr(target))
        return f"{name}.{self.method}" if self.method else str(name)

    def resolve(self, container: Container) -> Callable[..., Any]:
        """Return the callable to invoke for one dispatch.

        Controller classes are instantiated through *container* so their
        constructor dependencies are injected.
        """
        target = import_string(self.target) if isinstance(self.target, str) else self.target
        if self.method is None:
            if isinstance(target, type):
                # Invokable controller: instantiate, then call the instance
                return container.make(target)
            return target
        instance = container.make(target) if isinstance(target, type) else target
        try:
            return getattr(instance, self.method)
        except AttributeError:
            msg = f"{self.display_name} does not exist"
            raise ConfigurationError(msg) from None

    def signature_target(self) -> Callable[..., Any]:
        """Return the function whose annotations describe the handler.

        Used to read declared parameter types without instantiating a
        controller. Invokable controllers report their ``__call__``.
        """
        target = import_string(self.target) if isinstance(self.target, str) else self.target
        name = self.method or ("__call__" if isinstance(target, type) else None)
        if name is None:
            return target
        try:
            return getattr(target, name)
        except AttributeError:
            msg = f"{self.display_name} does not exist"
            raise ConfigurationError(msg) from None

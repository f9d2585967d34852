"""Dispatch-scoped state.

``App.handle`` opens one ``DispatchScope`` per update. The scope holds the
``Request`` being dispatched and the ``g`` namespace, and both disappear
together when the dispatch ends. Outside a dispatch, ``get_request()`` and
``g`` raise ``LookupError``.

Concurrency:
    The scope lives in a ``ContextVar``. Tasks started by ``process_many``
    each copy the context, so concurrent dispatches never share a scope.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any

from perch.request import Request


@dataclass(slots=True)
class DispatchScope:
    """State for the update currently being dispatched.

    ``request`` is replaced once routing and binding have enriched it.
    """

    request: Request
    values: dict[str, Any] = field(default_factory=dict)


_scope: ContextVar[DispatchScope] = ContextVar("perch_dispatch")


@contextmanager
def dispatch_scope(request: Request) -> Iterator[DispatchScope]:
    """Open a scope for *request*; the previous scope is restored on exit."""
    token = _scope.set(DispatchScope(request))
    try:
        yield _scope.get()
    finally:
        _scope.reset(token)


def current_scope() -> DispatchScope:
    try:
        return _scope.get()
    except LookupError:
        msg = "No update is being dispatched"
        raise LookupError(msg) from None


def get_request() -> Request:
    """Return the request being dispatched. Raises ``LookupError`` outside a dispatch."""
    return current_scope().request


class _DispatchGlobals:
    """Attribute access to ``DispatchScope.values``.

    Usage::

        from perch.context import g

        # In middleware
        g.locale = "en"

        # In handler
        greeting = translate("hello", g.locale)
    """

    __slots__ = ()

    def __getattr__(self, name: str) -> Any:
        try:
            return current_scope().values[name]
        except KeyError:
            msg = f"'g' has no attribute {name!r} in this dispatch"
            raise AttributeError(msg) from None

    def __setattr__(self, name: str, value: Any) -> None:
        current_scope().values[name] = value

    def __delattr__(self, name: str) -> None:
        try:
            del current_scope().values[name]
        except KeyError:
            msg = f"'g' has no attribute {name!r} in this dispatch"
            raise AttributeError(msg) from None

    def __contains__(self, name: str) -> bool:
        return name in current_scope().values

    def get(self, name: str, default: Any = None) -> Any:
        return current_scope().values.get(name, default)

    def __repr__(self) -> str:
        try:
            return f"<g {current_scope().values!r}>"
        except LookupError:
            return "<g outside dispatch>"


g = _DispatchGlobals()

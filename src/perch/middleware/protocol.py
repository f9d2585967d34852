"""Middleware protocol and Next type alias.

A middleware is any callable matching::

    async def my_mw(request: Request, next: Next, *args: str) -> Response: ...

No base class required. The framework checks the shape, not the lineage.
``*args`` receives the colon-delimited arguments from the reference
(``"role:admin,editor"`` -> ``("admin", "editor")``).

A middleware may also define ``terminate(request, response)``, called
after the response has been delivered.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Protocol, runtime_checkable

from perch.request import Request
from perch.response import Response

# The next handler in the middleware chain
type Next = Callable[[Request], Awaitable[Response]]


class Middleware(Protocol):
    """Protocol for perch middleware.

    Accepts both functions and callable objects::

        # Function middleware
        async def only_private(request: Request, next: Next) -> Response:
            if request.chat and request.chat.type != "private":
                return empty()
            return await next(request)

        # Class middleware with arguments
        class RequireRole:
            async def __call__(self, request: Request, next: Next, *roles: str) -> Response:
                ...
    """

    async def __call__(self, request: Request, next: Next, *args: str) -> Response: ...


@runtime_checkable
class TerminableMiddleware(Protocol):
    """Middleware that wants to run after the response was sent."""

    def terminate(self, request: Request, response: Response) -> Any: ...

"""Middleware: Protocol-based, no inheritance required.

A middleware is any callable matching:
    async def mw(request: Request, next: Next, *args: str) -> Response

Built-in middleware:
    ThrottleRequests -- rate limiting (alias ``throttle``)
"""

from perch.middleware.protocol import Middleware, Next, TerminableMiddleware
from perch.middleware.spec import MiddlewareSpec, parse_middleware

__all__ = [
    "Middleware",
    "MiddlewareSpec",
    "Next",
    "TerminableMiddleware",
    "parse_middleware",
]

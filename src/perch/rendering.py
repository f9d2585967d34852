"""Error rendering for dispatch failures.

Maps recoverable dispatch errors to Response objects, using handlers
registered with ``@app.error()`` or a sensible default.
"""

import inspect
import logging
from collections.abc import Callable, Mapping
from typing import Any

from perch.config import AppConfig
from perch.errors import ModelNotFound, RateLimitExceeded, Unhandled
from perch.request import Request
from perch.response import Response, empty, to_response

logger = logging.getLogger("perch.dispatch")

type ErrorHandler = Callable[..., Any]


def find_error_handler(
    exc: BaseException,
    handlers: Mapping[type, ErrorHandler],
) -> ErrorHandler | None:
    """Return the handler registered for the closest class in *exc*'s MRO."""
    for cls in type(exc).__mro__:
        if cls in handlers:
            return handlers[cls]
    return None


async def call_error_handler(
    handler: ErrorHandler,
    request: Request,
    exc: BaseException,
) -> Response:
    """Invoke a user-registered error handler with introspected arguments.

    Error handlers may accept zero, one (request), or two (request, exc) args.
    Supports both sync and async error handlers.
    """
    params = list(inspect.signature(handler).parameters.values())

    if len(params) >= 2:
        result = handler(request, exc)
    elif len(params) == 1:
        result = handler(request)
    else:
        result = handler()

    if inspect.isawaitable(result):
        result = await result
    return to_response(result)


def default_response(exc: BaseException, config: AppConfig) -> Response | None:
    """The built-in response for a dispatch error, or None to re-raise."""
    match exc:
        case Unhandled():
            if config.unhandled == "raise":
                return None
            logger.debug("unhandled update: %s", exc)
            return empty()
        case RateLimitExceeded(retry_after=retry_after):
            return (
                Response(text=f"Too many attempts. Try again in {retry_after} seconds.", status=429)
                .with_header("Retry-After", str(retry_after))
            )
        case ModelNotFound():
            return Response(text="Not found.", status=404)
    return None

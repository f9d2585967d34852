"""Perch: a router and dispatch kernel for chat bots.

Routes Telegram-style updates (text, commands, callback and inline
queries) to handlers through patterns, groups, middleware, model binding,
and rate limiting.

Basic usage::

    from perch import App

    app = App()

    @app.command("start")
    def start() -> str:
        return "Hello!"

    @app.callback_query("orders show {order}", name="orders.show")
    async def show(order: Order) -> str:
        return f"Order #{order.id}"

    dispatch = await app.handle(update)
"""

__version__ = "0.1.0"
__all__ = [
    "App",
    "AppConfig",
    "CallbackQuery",
    "Command",
    "ConfigurationError",
    "Dispatch",
    "InlineQuery",
    "Limit",
    "Message",
    "Middleware",
    "Model",
    "Next",
    "PerchError",
    "RateLimitExceeded",
    "Request",
    "Response",
    "Unhandled",
    "Verb",
    "g",
    "get_request",
    "parse_update",
]


def __getattr__(name: str) -> object:
    """Lazy imports for public API.

    Keeps ``import perch`` fast while providing a clean top-level API.
    """
    if name in ("App", "Dispatch"):
        from perch import app as _app

        return getattr(_app, name)

    if name == "AppConfig":
        from perch.config import AppConfig

        return AppConfig

    if name == "Request":
        from perch.request import Request

        return Request

    if name == "Response":
        from perch.response import Response

        return Response

    if name in ("CallbackQuery", "Command", "InlineQuery", "Message", "Verb", "parse_update"):
        from perch import updates as _updates

        return getattr(_updates, name)

    if name in ("Middleware", "Next"):
        from perch.middleware import protocol as _mw

        return getattr(_mw, name)

    if name == "Model":
        from perch.binding.model import Model

        return Model

    if name == "Limit":
        from perch.ratelimit.limit import Limit

        return Limit

    if name in ("g", "get_request"):
        from perch import context as _ctx

        return getattr(_ctx, name)

    if name in ("PerchError", "ConfigurationError", "RateLimitExceeded", "Unhandled"):
        from perch import errors as _errors

        return getattr(_errors, name)

    msg = f"module {__name__!r} has no attribute {name!r}"
    raise AttributeError(msg)

"""App import resolution: ``"module:attribute"`` strings to App instances.

Shared by every ``perch`` subcommand to locate the user's App.
"""

import importlib
import logging
import sys

from perch.app import App


def resolve_app(import_string: str) -> App:
    """Resolve an import string to a perch App instance.

    Accepts ``"module:attribute"`` format. When the attribute portion
    is omitted, defaults to ``"app"`` (``"mybot"`` resolves to
    ``mybot.app``).

    Supports factory functions: if the resolved object is callable and
    not an App instance, it is called.

    Raises:
        ModuleNotFoundError: If the module cannot be imported.
        AttributeError: If the attribute does not exist on the module.
        TypeError: If the resolved object is not a perch ``App`` or callable.
    """
    module_path, _, attr_name = import_string.partition(":")
    if not attr_name:
        attr_name = "app"

    module = importlib.import_module(module_path)
    obj = getattr(module, attr_name)

    if callable(obj) and not isinstance(obj, App):
        try:
            obj = obj()
        except Exception as exc:
            msg = f"Factory function {import_string!r} raised an error: {exc}"
            raise TypeError(msg) from exc

    if not isinstance(obj, App):
        msg = f"{import_string!r} resolved to {type(obj).__name__}, not a perch.App instance"
        raise TypeError(msg)

    return obj


def load_app(import_string: str, log_level: str | None = None) -> App:
    """``resolve_app`` for CLI use.

    Reports import failures and exits with status 1. On success, logging
    is configured from the app's ``AppConfig`` unless *log_level* overrides it.
    """
    try:
        app = resolve_app(import_string)
    except (ModuleNotFoundError, AttributeError, TypeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        raise SystemExit(1) from exc

    logging.basicConfig(
        level=(log_level or app.config.log_level).upper(),
        format=app.config.log_format,
    )
    return app

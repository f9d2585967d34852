"""Import-string helpers shared by the route cache and the CLI.

An import string has the form ``"package.module:attribute"``; dotted
attributes (``"pkg.mod:Class.method"``) are followed one step at a time.
"""

import importlib
import inspect
from typing import Any

from perch.errors import ConfigurationError


def import_string(path: str) -> Any:
    """Resolve ``"module:qualname"`` to the object it names.

    Raises ``ModuleNotFoundError`` or ``AttributeError`` when the target
    does not exist.
    """
    module_path, sep, qualname = path.partition(":")
    if not sep or not qualname:
        msg = f"Import string {path!r} must look like 'module:attribute'"
        raise ValueError(msg)
    obj: Any = importlib.import_module(module_path)
    for part in qualname.split("."):
        obj = getattr(obj, part)
    return obj


def import_path(obj: Any) -> str:
    """Return the import string that resolves back to *obj*.

    Only module-level functions and classes qualify. Lambdas, closures,
    bound methods, and instances raise ``ConfigurationError``.
    """
    if not (inspect.isfunction(obj) or inspect.isclass(obj)):
        msg = f"{obj!r} cannot be cached: only module-level functions and classes can"
        raise ConfigurationError(msg)
    qualname = obj.__qualname__
    if "<lambda>" in qualname or "<locals>" in qualname:
        msg = f"{qualname} cannot be cached: lambdas and closures have no import path"
        raise ConfigurationError(msg)
    return f"{obj.__module__}:{qualname}"

"""Application configuration.

AppConfig is a frozen dataclass: immutable after creation, IDE-autocompletable,
no string-key dict lookups.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from perch.errors import ConfigurationError


@dataclass(frozen=True, slots=True)
class AppConfig:
    """Application configuration. Immutable after creation.

    All fields have sensible defaults. Override what you need::

        config = AppConfig(debug=True, binding_failure="abort")
    """

    debug: bool = False

    # Bot identity: commands addressed to another bot (/start@other_bot) are ignored
    bot_username: str | None = None

    # Route cache artifact used by ``perch route-cache`` and App.load_from_cache()
    route_cache: str | Path | None = None

    # What to do when a route parameter cannot be bound:
    #   "null"  -> pass None to the handler
    #   "abort" -> raise ModelNotFound (rendered by @app.error handlers)
    binding_failure: Literal["null", "abort"] = "null"

    # What to do when no route matches and there is no fallback:
    #   "ignore" -> return an empty response
    #   "raise"  -> raise Unhandled to the caller
    unhandled: Literal["ignore", "raise"] = "ignore"

    # Bucket identity for ``throttle:<max>,<minutes>`` without a named limiter
    throttle_key: Literal["user", "chat"] = "user"

    # Logging (applied by the CLI, never by the library itself)
    log_level: str = "info"
    log_format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    def __post_init__(self) -> None:
        for name, allowed in _CHOICES.items():
            value = getattr(self, name)
            if value not in allowed:
                msg = f"AppConfig.{name} must be one of {sorted(allowed)}, got {value!r}"
                raise ConfigurationError(msg)


_CHOICES: dict[str, frozenset[str]] = {
    "binding_failure": frozenset({"null", "abort"}),
    "unhandled": frozenset({"ignore", "raise"}),
    "throttle_key": frozenset({"user", "chat"}),
}

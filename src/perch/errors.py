"""Perch exception hierarchy.

Shared across Router, App, binder, limiter, and middleware so every module
raises and catches the same types.

Two families:

- Boot-time errors (``ConfigurationError``, ``PatternError``,
  ``GroupStackUnderflow``) indicate a bug in registration code and should
  fail fast before the first update is dispatched.
- Dispatch-time errors (``DispatchError``, ``BindingError``,
  ``RateLimitExceeded``) are recoverable. The kernel renders them through
  ``@app.error()`` handlers or a default response.
"""

from dataclasses import dataclass


class PerchError(Exception):
    """Base for all perch-specific errors."""


class ConfigurationError(PerchError):
    """Raised when app configuration is invalid.

    Typically raised while the route registry is built at startup.
    """


# -- Pattern compilation --


class PatternError(ConfigurationError):
    """A route pattern could not be compiled."""

    def __init__(self, pattern: str, detail: str) -> None:
        self.pattern = pattern
        self.detail = detail
        super().__init__(f"{detail} in pattern {pattern!r}")


class NonTrailingOptional(PatternError):  # noqa: N818
    """An optional ``{name?}`` parameter is followed by another segment."""

    def __init__(self, pattern: str, param: str) -> None:
        self.param = param
        super().__init__(pattern, f"Optional parameter {param!r} must be the last segment")


class DuplicateParam(PatternError):  # noqa: N818
    """The same parameter name appears twice in one pattern."""

    def __init__(self, pattern: str, param: str) -> None:
        self.param = param
        super().__init__(pattern, f"Duplicate parameter {param!r}")


class InvalidConstraintRegex(PatternError):  # noqa: N818
    """A parameter constraint is not a valid regular expression."""

    def __init__(self, pattern: str, param: str, regex: str, reason: str) -> None:
        self.param = param
        self.regex = regex
        super().__init__(pattern, f"Invalid constraint {regex!r} for {param!r}: {reason}")


class GroupStackUnderflow(PerchError):  # noqa: N818
    """More route groups were popped than pushed.

    Always a programming error in registration code.
    """


class RouteNotFound(PerchError, LookupError):  # noqa: N818
    """No route is registered under the requested name."""


# -- Dispatch --


class DispatchError(PerchError):
    """Base for errors raised while dispatching a single update."""


class Unhandled(DispatchError):  # noqa: N818
    """No route matched the update and no fallback route is defined."""

    def __init__(self, verb: str, payload: str) -> None:
        self.verb = verb
        self.payload = payload
        super().__init__(f"No route matches {verb} {payload!r}")


class BindingError(DispatchError):
    """A captured route parameter could not be resolved."""


class ModelNotFound(BindingError):  # noqa: N818
    """Binding failed and the app is configured to abort on failure."""

    def __init__(self, param: str, value: str | None, reason: str = "") -> None:
        self.param = param
        self.value = value
        self.reason = reason
        detail = f"No value could be bound for {param!r} from {value!r}"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)


@dataclass(frozen=True, slots=True)
class RateLimitExceeded(DispatchError):  # noqa: N818
    """A rate limit was hit. Expected, not a system failure.

    ``retry_after`` is the number of seconds until the bucket resets.
    """

    key: str
    max_attempts: int
    retry_after: int

    def __str__(self) -> str:
        return f"Too many attempts for {self.key!r}, retry after {self.retry_after}s"

"""Global per-parameter constraints.

A ``ConstraintRegistry`` holds regexes keyed by parameter name. The
pattern compiler consults it for any parameter the route itself does not
constrain, so ``app.pattern("id", NUMBER)`` makes every ``{id}`` numeric.

Each Router owns its registry; there is no process-wide table.
"""

import re
from collections.abc import Iterable, Mapping

from perch.errors import ConfigurationError

# Common constraint regexes
NUMBER = r"[0-9]+"
ALPHA = r"[a-zA-Z]+"
ALPHA_NUMERIC = r"[a-zA-Z0-9]+"
UUID = r"[\da-fA-F]{8}-[\da-fA-F]{4}-[\da-fA-F]{4}-[\da-fA-F]{4}-[\da-fA-F]{12}"
ULID = r"[0-7][0-9a-hjkmnp-tv-zA-HJKMNP-TV-Z]{25}"


def one_of(values: Iterable[object]) -> str:
    """Constraint accepting exactly one of *values*."""
    options = [re.escape(str(v)) for v in values]
    if not options:
        msg = "one_of() needs at least one value"
        raise ConfigurationError(msg)
    return "|".join(options)


class ConstraintRegistry:
    """Mutable during setup, read-only once the registry is built."""

    __slots__ = ("_patterns",)

    def __init__(self, patterns: Mapping[str, str] | None = None) -> None:
        self._patterns: dict[str, str] = {}
        if patterns:
            self.patterns(patterns)

    def pattern(self, name: str, regex: str) -> None:
        """Constrain every parameter called *name* to *regex*."""
        try:
            re.compile(regex)
        except re.error as exc:
            msg = f"Invalid global constraint {regex!r} for {name!r}: {exc}"
            raise ConfigurationError(msg) from exc
        self._patterns[name] = regex

    def patterns(self, patterns: Mapping[str, str]) -> None:
        for name, regex in patterns.items():
            self.pattern(name, regex)

    def get(self, name: str) -> str | None:
        return self._patterns.get(name)

    def as_dict(self) -> dict[str, str]:
        return dict(self._patterns)

    def __contains__(self, name: object) -> bool:
        return name in self._patterns

    def __len__(self) -> int:
        return len(self._patterns)

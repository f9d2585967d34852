"""Pattern compiler: route pattern text -> compiled matcher.

A pattern is a run of segments separated by whitespace or ``/``::

    "user {id}"               literal "user", then a parameter
    "user {id?}"              trailing optional parameter
    "shop {shop} item {item:slug}"   parameter bound by a custom field

Leading and trailing separators are insignificant, and a run of
separators counts as one, so ``"/start"``, ``"start"`` and ``" start "``
compile to the same matcher.
"""

import re
from collections.abc import Mapping
from dataclasses import dataclass, field

from perch.errors import DuplicateParam, InvalidConstraintRegex, NonTrailingOptional, PatternError

SEPARATOR = r"[\s/]+"
DEFAULT_CONSTRAINT = r"[^\s/]+"

_SEPARATOR_RE = re.compile(SEPARATOR)
_SEPARATOR_CHARS = " \t\r\n\f\v/"
_PARAM_RE = re.compile(
    r"^\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::(?P<field>[A-Za-z_][A-Za-z0-9_]*))?(?P<optional>\?)?\}$"
)


@dataclass(frozen=True, slots=True)
class Literal:
    """A segment that must appear verbatim."""

    text: str


@dataclass(frozen=True, slots=True)
class Param:
    """A named capture.

    ``field`` is the binding lookup key from ``{name:field}``; ``None``
    means the bound model's default route key.
    """

    name: str
    optional: bool = False
    constraint: str = DEFAULT_CONSTRAINT
    field: str | None = None


type Segment = Literal | Param


def split_segments(pattern: str) -> list[str]:
    """Split pattern text on separators, dropping empty pieces."""
    return [part for part in _SEPARATOR_RE.split(pattern) if part]


def normalize(payload: str) -> str:
    """Strip leading and trailing separators from an inbound payload."""
    return payload.strip(_SEPARATOR_CHARS)


def join(prefix: str, pattern: str) -> str:
    """Join two pattern fragments with exactly one separator."""
    left = prefix.rstrip(_SEPARATOR_CHARS)
    right = pattern.lstrip(_SEPARATOR_CHARS)
    if not left:
        return right
    if not right:
        return left
    return f"{left} {right}"


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """A compiled route pattern.

    Matching is anchored: the whole (normalized) payload must be consumed.
    """

    source: str
    segments: tuple[Segment, ...]
    regex: re.Pattern[str] = field(compare=False, repr=False)

    @property
    def params(self) -> tuple[Param, ...]:
        return tuple(seg for seg in self.segments if isinstance(seg, Param))

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(p.name for p in self.params)

    def match(self, payload: str) -> dict[str, str | None] | None:
        """Match *payload*, returning captures in pattern order.

        Missing (or empty) optional parameters are captured as ``None``.
        """
        m = self.regex.fullmatch(normalize(payload))
        if m is None:
            return None
        captures: dict[str, str | None] = {}
        for index, seg in enumerate(self.segments):
            if isinstance(seg, Param):
                value = m.group(f"p{index}")
                captures[seg.name] = None if seg.optional and not value else value
        return captures

    def build(self, params: Mapping[str, object]) -> str:
        """Render a payload that this pattern would match.

        Used to generate callback data and command hints from named routes.
        Raises ``KeyError`` for a missing required parameter.
        """
        parts: list[str] = []
        for seg in self.segments:
            if isinstance(seg, Literal):
                parts.append(seg.text)
                continue
            value = params.get(seg.name)
            if value is None:
                if seg.optional:
                    break
                msg = f"Missing required parameter {seg.name!r} for pattern {self.source!r}"
                raise KeyError(msg)
            parts.append(str(value))
        return " ".join(parts)


def _parse(pattern: str) -> list[tuple[str, re.Match[str] | None]]:
    parsed: list[tuple[str, re.Match[str] | None]] = []
    for part in split_segments(pattern):
        if "{" in part or "}" in part:
            m = _PARAM_RE.match(part)
            if m is None:
                raise PatternError(pattern, f"Malformed parameter segment {part!r}")
            parsed.append((part, m))
        else:
            parsed.append((part, None))
    return parsed


def _capture(index: int, constraint: str) -> str:
    return f"(?P<p{index}>(?:{constraint}))"


def build_regex(segments: tuple[Segment, ...]) -> str:
    """Build the anchored regex source for a segment list.

    Trailing optionals nest so a later optional can only match when the
    earlier one did.
    """
    required: list[str] = []
    optional: list[str] = []
    for index, seg in enumerate(segments):
        piece = re.escape(seg.text) if isinstance(seg, Literal) else _capture(index, seg.constraint)
        if isinstance(seg, Param) and seg.optional:
            optional.append(piece)
        else:
            required.append(piece)

    head = SEPARATOR.join(required)
    tail = ""
    for position, piece in reversed(list(enumerate(optional))):
        lead = SEPARATOR if (required or position > 0) else ""
        tail = f"(?:{lead}{piece}{tail})?"
    return head + tail


def compile_pattern(
    pattern: str,
    route_constraints: Mapping[str, str] | None = None,
    global_constraints: Mapping[str, str] | None = None,
) -> CompiledPattern:
    """Compile *pattern* into a ``CompiledPattern``.

    Constraint precedence per parameter: *route_constraints*, then
    *global_constraints*, then ``DEFAULT_CONSTRAINT``.

    Raises:
        NonTrailingOptional: an optional parameter is not at the end.
        DuplicateParam: a parameter name is used twice.
        InvalidConstraintRegex: a constraint does not compile.
        PatternError: a segment contains braces but is not a parameter.
    """
    route_constraints = route_constraints or {}
    global_constraints = global_constraints or {}

    segments: list[Segment] = []
    seen: set[str] = set()
    optional_at: str | None = None

    for text, m in _parse(pattern):
        if optional_at is not None and (m is None or m.group("optional") is None):
            raise NonTrailingOptional(pattern, optional_at)
        if m is None:
            segments.append(Literal(text))
            continue

        name = m.group("name")
        if name in seen:
            raise DuplicateParam(pattern, name)
        seen.add(name)

        constraint = route_constraints.get(name) or global_constraints.get(name) or DEFAULT_CONSTRAINT
        try:
            re.compile(constraint)
        except re.error as exc:
            raise InvalidConstraintRegex(pattern, name, constraint, str(exc)) from exc

        is_optional = m.group("optional") is not None
        if is_optional:
            optional_at = name
        segments.append(Param(name, is_optional, constraint, m.group("field")))

    return from_segments(pattern, tuple(segments))


def from_segments(source: str, segments: tuple[Segment, ...]) -> CompiledPattern:
    """Rebuild a ``CompiledPattern`` from already-parsed segments."""
    try:
        regex = re.compile(build_regex(segments))
    except re.error as exc:
        raise PatternError(source, f"Pattern does not compile: {exc}") from exc
    return CompiledPattern(source=source, segments=segments, regex=regex)

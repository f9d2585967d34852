"""Abstract bot response with a chainable ``.with_*()`` API.

Each transformation returns a new Response. Sending it (``sendMessage``,
``answerCallbackQuery``, ...) is the transport's job, not perch's.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class Response:
    """What a handler wants sent back.

    ``method`` names the Bot API call the transport should make; ``params``
    carries its extra arguments. ``status`` follows HTTP conventions so
    rejections (429, 404) are distinguishable from normal replies.
    """

    text: str = ""
    method: str = "sendMessage"
    params: Mapping[str, Any] = field(default_factory=dict)
    status: int = 200
    headers: tuple[tuple[str, str], ...] = ()

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_empty(self) -> bool:
        return self.status == 204

    def with_status(self, status: int) -> Response:
        return replace(self, status=status)

    def with_text(self, text: str) -> Response:
        return replace(self, text=text)

    def with_params(self, **params: Any) -> Response:
        return replace(self, params={**self.params, **params})

    def with_header(self, name: str, value: str) -> Response:
        return replace(self, headers=(*self.headers, (name, value)))

    def header(self, name: str, default: str | None = None) -> str | None:
        """Return the last value of a header (case-insensitive)."""
        lowered = name.lower()
        for key, value in reversed(self.headers):
            if key.lower() == lowered:
                return value
        return default


def empty() -> Response:
    """A response that tells the transport there is nothing to send."""
    return Response(method="", status=204)


def to_response(result: Any) -> Response:
    """Normalise a handler return value into a Response.

    - ``Response`` passes through
    - ``None`` becomes an empty response
    - ``str`` becomes a ``sendMessage`` reply
    - a mapping with ``text`` becomes a reply with extra params
    """
    if isinstance(result, Response):
        return result
    if result is None:
        return empty()
    if isinstance(result, str):
        return Response(text=result)
    if isinstance(result, Mapping):
        params = dict(result)
        text = str(params.pop("text", ""))
        method = str(params.pop("method", "sendMessage"))
        return Response(text=text, method=method, params=params)
    msg = f"Cannot convert {type(result).__name__} to a Response"
    raise TypeError(msg)

"""Rate limit rules.

A ``Limit`` is one fixed-window rule: at most ``max_attempts`` hits per
``decay_seconds``, counted in the bucket selected by ``key``::

    Limit.per_minute(3).by(request.user_id)
    Limit.per_hour(100).by(f"chat:{request.chat_id}").response(too_busy)
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any


@dataclass(frozen=True, slots=True)
class Limit:
    max_attempts: int
    decay_seconds: int = 60
    key: str = ""
    on_exceeded: Callable[..., Any] | None = None

    # -- Constructors --

    @classmethod
    def per_second(cls, max_attempts: int, decay_seconds: int = 1) -> Limit:
        return cls(max_attempts, decay_seconds)

    @classmethod
    def per_minute(cls, max_attempts: int, decay_minutes: int = 1) -> Limit:
        return cls(max_attempts, 60 * decay_minutes)

    @classmethod
    def per_minutes(cls, decay_minutes: int, max_attempts: int) -> Limit:
        return cls(max_attempts, 60 * decay_minutes)

    @classmethod
    def per_hour(cls, max_attempts: int, decay_hours: int = 1) -> Limit:
        return cls(max_attempts, 3600 * decay_hours)

    @classmethod
    def per_day(cls, max_attempts: int, decay_days: int = 1) -> Limit:
        return cls(max_attempts, 86400 * decay_days)

    @classmethod
    def none(cls) -> Limit:
        """A limit that never triggers."""
        return cls(sys.maxsize)

    # -- Fluent modifiers --

    def by(self, key: object) -> Limit:
        """Segment counts by *key* (user id, chat id, ...)."""
        return replace(self, key=str(key))

    def response(self, callback: Callable[..., Any]) -> Limit:
        """Use ``callback(request, retry_after)`` as the rejection response."""
        return replace(self, on_exceeded=callback)

    @property
    def unlimited(self) -> bool:
        return self.max_attempts >= sys.maxsize

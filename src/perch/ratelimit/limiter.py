"""Named rate limiters.

A named limiter is a function from the request to one or more ``Limit``
rules, evaluated at dispatch time::

    @app.limiter.define("uploads")
    def uploads(request: Request) -> list[Limit]:
        return [
            Limit.per_minute(3).by(f"minute:{request.user_id}"),
            Limit.per_day(50).by(f"day:{request.user_id}"),
        ]

Each rule counts in the bucket ``"<name>:<key>"`` (or ``"<name>"`` when
the rule has no key), so two limiters never share a bucket even when
they use the same raw key. Two rules inside one limiter that share a
key *do* share a bucket; prefix the keys as above to keep them apart.
"""

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from perch._internal.invoke import invoke
from perch.ratelimit.limit import Limit
from perch.ratelimit.store import MemoryStore, RateLimitStore
from perch.request import Request

logger = logging.getLogger("perch.ratelimit")

type LimiterFn = Callable[[Request], Any]


@dataclass(frozen=True, slots=True)
class Allowed:
    attempts: int
    remaining: int


@dataclass(frozen=True, slots=True)
class Exceeded:
    attempts: int
    retry_after: int


type CheckResult = Allowed | Exceeded


class RateLimiter:
    """Registry of named limiters plus bucket bookkeeping on a store."""

    __slots__ = ("_limiters", "store")

    def __init__(self, store: RateLimitStore | None = None) -> None:
        self.store: RateLimitStore = store if store is not None else MemoryStore()
        self._limiters: dict[str, LimiterFn] = {}

    # -- Named limiters --

    def define(self, name: str, fn: LimiterFn | None = None) -> Any:
        """Register limiter *name*; usable as a decorator when *fn* is omitted."""
        if fn is not None:
            self._limiters[name] = fn
            return fn

        def decorator(func: LimiterFn) -> LimiterFn:
            self._limiters[name] = func
            return func

        return decorator

    def has(self, name: str) -> bool:
        return name in self._limiters

    def get(self, name: str) -> LimiterFn | None:
        return self._limiters.get(name)

    async def resolve(self, name: str, request: Request) -> list[Limit]:
        """Evaluate limiter *name* for *request*.

        Raises ``KeyError`` if no limiter has that name.
        """
        fn = self._limiters[name]
        result = await invoke(fn, request)
        if result is None:
            return []
        if isinstance(result, Limit):
            return [result]
        if isinstance(result, Iterable):
            return list(result)
        msg = f"Limiter {name!r} returned {type(result).__name__}, expected Limit or a list of Limit"
        raise TypeError(msg)

    @staticmethod
    def bucket_key(name: str, limit: Limit) -> str:
        return f"{name}:{limit.key}" if limit.key else name

    # -- Checking --

    def check(self, limit: Limit, key: str) -> CheckResult:
        """Count one hit against *key* and report whether it is admitted.

        The hit is counted atomically before the comparison, so concurrent
        callers can never both take the last slot.
        """
        if limit.unlimited:
            return Allowed(attempts=0, remaining=limit.max_attempts)
        attempts = self.store.increment(key, limit.decay_seconds)
        if attempts > limit.max_attempts:
            retry_after = max(1, self.store.available_in(key))
            logger.debug(
                "rate limit %r exceeded (%d/%d), retry in %ds",
                key,
                attempts,
                limit.max_attempts,
                retry_after,
            )
            return Exceeded(attempts=attempts, retry_after=retry_after)
        return Allowed(attempts=attempts, remaining=limit.max_attempts - attempts)

    # -- Manual helpers --

    def hit(self, key: str, decay_seconds: int = 60) -> int:
        return self.store.increment(key, decay_seconds)

    def attempts(self, key: str) -> int:
        return self.store.get(key)

    def remaining(self, key: str, max_attempts: int) -> int:
        return max(0, max_attempts - self.store.get(key))

    def too_many_attempts(self, key: str, max_attempts: int) -> bool:
        return self.store.get(key) >= max_attempts

    def available_in(self, key: str) -> int:
        return self.store.available_in(key)

    def clear(self, key: str) -> None:
        self.store.reset(key)

    async def attempt(
        self,
        key: str,
        max_attempts: int,
        callback: Callable[[], Any],
        decay_seconds: int = 60,
    ) -> Any:
        """Run *callback* if *key* still has attempts left; else return False."""
        result = self.check(Limit(max_attempts, decay_seconds), key)
        if isinstance(result, Exceeded):
            return False
        value = await invoke(callback)
        return True if value is None else value

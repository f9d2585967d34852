"""Throttle middleware (alias ``throttle``).

Two forms::

    "throttle:uploads"        named limiter registered on app.limiter
    "throttle:5,1"            5 hits per 1 minute, per user (or chat)
    "throttle:5,1,search"     same, counted in the "search" bucket

Rules are checked left to right. The first exceeded rule short-circuits:
its ``response`` callback is returned if it has one, otherwise
``RateLimitExceeded`` is raised and rendered by the kernel.
"""

from perch._internal.invoke import invoke
from perch.config import AppConfig
from perch.errors import ConfigurationError, RateLimitExceeded
from perch.middleware.protocol import Next
from perch.ratelimit.limit import Limit
from perch.ratelimit.limiter import Allowed, Exceeded, RateLimiter
from perch.request import Request
from perch.response import Response, to_response


def _is_number(value: str) -> bool:
    try:
        float(value)
    except ValueError:
        return False
    return True


class ThrottleRequests:
    """Rate-limit updates with named or inline limits."""

    __slots__ = ("_config", "_limiter")

    def __init__(self, limiter: RateLimiter, config: AppConfig | None = None) -> None:
        self._limiter = limiter
        self._config = config or AppConfig()

    def signature(self, request: Request) -> str:
        """Default bucket identity: the user, else the chat."""
        user_id = request.user_id
        chat_id = request.chat_id
        if self._config.throttle_key == "chat" and chat_id is not None:
            return f"chat:{chat_id}"
        if user_id is not None:
            return f"user:{user_id}"
        if chat_id is not None:
            return f"chat:{chat_id}"
        return "guest"

    async def limits_for(self, request: Request, *args: str) -> tuple[str, list[Limit]]:
        """Return the bucket name and rules selected by the middleware args."""
        if not args:
            msg = "throttle middleware needs a limiter name or 'max,minutes' arguments"
            raise ConfigurationError(msg)

        first = args[0]
        if self._limiter.has(first):
            return first, await self._limiter.resolve(first, request)

        try:
            max_attempts = int(first)
        except ValueError:
            if _is_number(first):
                msg = f"throttle max attempts must be a whole number, got {first!r}"
            else:
                msg = f"Rate limiter {first!r} is not defined"
            raise ConfigurationError(msg) from None
        try:
            decay_minutes = float(args[1]) if len(args) > 1 else 1.0
        except ValueError:
            msg = f"throttle decay minutes must be a number, got {args[1]!r}"
            raise ConfigurationError(msg) from None
        name = args[2] if len(args) > 2 else "throttle"
        limit = Limit(max_attempts, max(1, int(decay_minutes * 60))).by(self.signature(request))
        return name, [limit]

    async def __call__(self, request: Request, next: Next, *args: str) -> Response:
        name, limits = await self.limits_for(request, *args)

        passed: list[tuple[Limit, Allowed]] = []
        for limit in limits:
            key = self._limiter.bucket_key(name, limit)
            result = self._limiter.check(limit, key)
            if isinstance(result, Exceeded):
                if limit.on_exceeded is not None:
                    rejection = to_response(await invoke(limit.on_exceeded, request, result.retry_after))
                    return rejection.with_header("Retry-After", str(result.retry_after))
                raise RateLimitExceeded(
                    key=key,
                    max_attempts=limit.max_attempts,
                    retry_after=result.retry_after,
                )
            if not limit.unlimited:
                passed.append((limit, result))

        response = await next(request)
        for limit, allowed in passed:
            response = response.with_header("X-RateLimit-Limit", str(limit.max_attempts))
            response = response.with_header("X-RateLimit-Remaining", str(allowed.remaining))
        return response

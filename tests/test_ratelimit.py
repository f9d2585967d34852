"""Tests for perch.ratelimit: limits, store, limiter, and throttle middleware."""

import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from perch.app import App
from perch.config import AppConfig
from perch.errors import ConfigurationError, RateLimitExceeded
from perch.middleware.throttle import ThrottleRequests
from perch.ratelimit import Allowed, Exceeded, Limit, MemoryStore, RateLimiter
from perch.request import Request
from perch.response import Response
from perch.updates import Chat, Message, User


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _request(user_id: int | None = 1, chat_id: int | None = 10) -> Request:
    user = User(id=user_id) if user_id is not None else None
    chat = Chat(id=chat_id) if chat_id is not None else None
    return Request(Message(text="hi", user=user, chat=chat))


async def _ok(request: Request) -> Response:
    return Response(text="ok")


class TestLimit:
    def test_constructors(self) -> None:
        assert Limit.per_second(2) == Limit(2, 1)
        assert Limit.per_minute(3) == Limit(3, 60)
        assert Limit.per_minutes(5, 10) == Limit(10, 300)
        assert Limit.per_hour(100) == Limit(100, 3600)
        assert Limit.per_day(1) == Limit(1, 86400)

    def test_by_stringifies_key(self) -> None:
        assert Limit.per_minute(3).by(42).key == "42"

    def test_none_is_unlimited(self) -> None:
        assert Limit.none().unlimited
        assert not Limit.per_minute(3).unlimited


class TestMemoryStore:
    def test_fixed_window(self) -> None:
        clock = FakeClock()
        store = MemoryStore(clock)
        assert store.increment("k", 60) == 1
        assert store.increment("k", 60) == 2
        clock.now += 30
        assert store.get("k") == 2
        assert store.available_in("k") == 30
        clock.now += 30
        assert store.get("k") == 0
        assert store.increment("k", 60) == 1

    def test_reset(self) -> None:
        store = MemoryStore()
        store.increment("k", 60)
        store.reset("k")
        assert store.get("k") == 0
        assert store.available_in("k") == 0


class TestRateLimiter:
    def test_three_pass_then_exceeded(self) -> None:
        limiter = RateLimiter(MemoryStore(FakeClock()))
        limit = Limit.per_minute(3)
        results = [limiter.check(limit, "user:1") for _ in range(4)]
        assert [type(r) for r in results] == [Allowed, Allowed, Allowed, Exceeded]
        assert results[2] == Allowed(attempts=3, remaining=0)
        assert results[3].retry_after == 60

    def test_keys_are_independent(self) -> None:
        limiter = RateLimiter()
        limit = Limit.per_minute(1)
        assert isinstance(limiter.check(limit, "a"), Allowed)
        assert isinstance(limiter.check(limit, "b"), Allowed)
        assert isinstance(limiter.check(limit, "a"), Exceeded)

    def test_unlimited_never_counts(self) -> None:
        limiter = RateLimiter()
        for _ in range(5):
            assert isinstance(limiter.check(Limit.none(), "k"), Allowed)
        assert limiter.attempts("k") == 0

    def test_bucket_key(self) -> None:
        assert RateLimiter.bucket_key("uploads", Limit(1).by("7")) == "uploads:7"
        assert RateLimiter.bucket_key("uploads", Limit(1)) == "uploads"

    def test_manual_helpers(self) -> None:
        limiter = RateLimiter(MemoryStore(FakeClock()))
        limiter.hit("k", 60)
        limiter.hit("k", 60)
        assert limiter.attempts("k") == 2
        assert limiter.remaining("k", 5) == 3
        assert limiter.too_many_attempts("k", 2)
        assert limiter.available_in("k") == 60
        limiter.clear("k")
        assert limiter.attempts("k") == 0

    def test_define_decorator_and_lookup(self) -> None:
        limiter = RateLimiter()

        @limiter.define("uploads")
        def uploads(request: Request) -> Limit:
            return Limit.per_minute(3)

        assert limiter.has("uploads")
        assert limiter.get("uploads") is uploads
        assert not limiter.has("other")

    @pytest.mark.anyio
    async def test_resolve_normalises_to_list(self) -> None:
        limiter = RateLimiter()
        limiter.define("one", lambda request: Limit.per_minute(1))
        limiter.define("many", lambda request: [Limit.per_minute(1), Limit.per_hour(5)])
        assert await limiter.resolve("one", _request()) == [Limit.per_minute(1)]
        assert len(await limiter.resolve("many", _request())) == 2

    @pytest.mark.anyio
    async def test_attempt(self) -> None:
        limiter = RateLimiter()
        calls: list[int] = []
        assert await limiter.attempt("send", 1, lambda: calls.append(1)) is True
        assert await limiter.attempt("send", 1, lambda: calls.append(1)) is False
        assert calls == [1]


class TestConcurrency:
    def test_store_hands_out_each_count_once(self) -> None:
        store = MemoryStore()
        barrier = threading.Barrier(8)

        def hit(_: int) -> int:
            barrier.wait()
            return store.increment("k", 60)

        with ThreadPoolExecutor(max_workers=8) as pool:
            counts = list(pool.map(hit, range(200)))
        assert sorted(counts) == list(range(1, 201))

    def test_last_slot_admits_exactly_max(self) -> None:
        limiter = RateLimiter()
        limit = Limit.per_minute(5)
        barrier = threading.Barrier(16)

        def attempt(_: int) -> bool:
            barrier.wait()
            return isinstance(limiter.check(limit, "user:1"), Allowed)

        with ThreadPoolExecutor(max_workers=16) as pool:
            admitted = list(pool.map(attempt, range(16)))
        assert admitted.count(True) == 5

    @pytest.mark.anyio
    async def test_concurrent_updates_against_throttle(self) -> None:
        app = App()
        app.text("ping", lambda: "pong", middleware="throttle:5,1")

        updates = [Message(text="ping", user=User(id=1)) for _ in range(20)]
        results = await app.process_many(updates)

        statuses = [d.response.status for d in results]
        assert statuses.count(200) == 5
        assert statuses.count(429) == 15


class TestThrottle:
    def test_signature(self) -> None:
        throttle = ThrottleRequests(RateLimiter())
        assert throttle.signature(_request(1, 10)) == "user:1"
        assert throttle.signature(_request(None, 10)) == "chat:10"
        assert throttle.signature(_request(None, None)) == "guest"

    def test_signature_by_chat(self) -> None:
        throttle = ThrottleRequests(RateLimiter(), AppConfig(throttle_key="chat"))
        assert throttle.signature(_request(1, 10)) == "chat:10"

    @pytest.mark.anyio
    async def test_inline_limit_per_user(self) -> None:
        """Per-key rate limit: three pass, the fourth is rejected."""
        throttle = ThrottleRequests(RateLimiter())
        for _ in range(3):
            response = await throttle(_request(), _ok, "3", "1")
            assert response.text == "ok"
        with pytest.raises(RateLimitExceeded) as exc_info:
            await throttle(_request(), _ok, "3", "1")
        assert exc_info.value.max_attempts == 3
        assert exc_info.value.key == "throttle:user:1"
        # A different user has their own bucket
        assert (await throttle(_request(user_id=2), _ok, "3", "1")).text == "ok"

    @pytest.mark.anyio
    async def test_rate_limit_headers(self) -> None:
        throttle = ThrottleRequests(RateLimiter())
        response = await throttle(_request(), _ok, "5", "1")
        assert response.header("X-RateLimit-Limit") == "5"
        assert response.header("X-RateLimit-Remaining") == "4"

    @pytest.mark.anyio
    async def test_named_limiter_with_custom_response(self) -> None:
        limiter = RateLimiter()
        limiter.define(
            "uploads",
            lambda request: Limit.per_minute(1).by(request.user_id).response(
                lambda request, retry_after: f"Slow down ({retry_after}s)"
            ),
        )
        throttle = ThrottleRequests(limiter)
        assert (await throttle(_request(), _ok, "uploads")).text == "ok"
        rejected = await throttle(_request(), _ok, "uploads")
        assert rejected.text == "Slow down (60s)"
        assert rejected.header("Retry-After") == "60"

    @pytest.mark.anyio
    async def test_named_bucket_prefix(self) -> None:
        limiter = RateLimiter()
        throttle = ThrottleRequests(limiter)
        await throttle(_request(), _ok, "1", "1", "search")
        assert limiter.attempts("search:user:1") == 1

    @pytest.mark.anyio
    async def test_first_exceeded_rule_wins(self) -> None:
        limiter = RateLimiter()
        limiter.define("two", lambda request: [Limit.per_minute(1).by("a"), Limit.per_minute(5).by("b")])
        throttle = ThrottleRequests(limiter)
        await throttle(_request(), _ok, "two")
        with pytest.raises(RateLimitExceeded) as exc_info:
            await throttle(_request(), _ok, "two")
        assert exc_info.value.key == "two:a"

    @pytest.mark.anyio
    async def test_unknown_limiter(self) -> None:
        throttle = ThrottleRequests(RateLimiter())
        with pytest.raises(ConfigurationError, match="not defined"):
            await throttle(_request(), _ok, "nope")

    @pytest.mark.anyio
    async def test_missing_arguments(self) -> None:
        with pytest.raises(ConfigurationError):
            await ThrottleRequests(RateLimiter())(_request(), _ok)

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        ("args", "message"),
        [(("1.5", "1"), "whole number"), (("3", "soon"), "decay minutes")],
    )
    async def test_malformed_inline_limit(self, args: tuple[str, ...], message: str) -> None:
        throttle = ThrottleRequests(RateLimiter())
        with pytest.raises(ConfigurationError, match=message):
            await throttle(_request(), _ok, *args)

"""Rate limiting: named limiters, fixed-window buckets, pluggable storage."""

from perch.ratelimit.limit import Limit
from perch.ratelimit.limiter import Allowed, CheckResult, Exceeded, RateLimiter
from perch.ratelimit.store import MemoryStore, RateLimitStore

__all__ = [
    "Allowed",
    "CheckResult",
    "Exceeded",
    "Limit",
    "MemoryStore",
    "RateLimitStore",
    "RateLimiter",
]

"""
Async Utilities for Provider Calls and Crawl Control.

Provides:
- Token bucket rate limiting, one shared limiter per provider
- Settled gathering (wait for every coroutine, keep failures as values)
- Per-key locking for serialized upserts
- Cancellation token with optional deadline
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, TypeVar

from .exceptions import CrawlCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


# =============================================================================
# Rate Limiter (Token Bucket Algorithm)
# =============================================================================


@dataclass
class RateLimiter:
    """
    Token bucket rate limiter for API calls.

    Calls beyond the ceiling wait inside the lock, so excess callers are
    served one at a time.

    Example:
        limiter = RateLimiter(rate=10, per=1.0)
        async with limiter:
            await make_api_call()
    """

    rate: float = 3.0  # requests per period
    per: float = 1.0  # period in seconds
    _tokens: float = field(init=False)
    _last_update: float = field(init=False)
    _lock: asyncio.Lock = field(init=False, default_factory=asyncio.Lock)

    def __post_init__(self) -> None:
        self._tokens = self.rate
        self._last_update = time.monotonic()

    async def acquire(self) -> None:
        """Acquire a token, waiting if necessary."""
        async with self._lock:
            now = time.monotonic()
            elapsed = now - self._last_update
            self._tokens = min(self.rate, self._tokens + elapsed * (self.rate / self.per))
            self._last_update = now

            if self._tokens < 1:
                wait_time = (1 - self._tokens) * (self.per / self.rate)
                logger.debug(f"Rate limit: waiting {wait_time:.2f}s")
                await asyncio.sleep(wait_time)
                self._tokens = 0
                self._last_update = time.monotonic()
            else:
                self._tokens -= 1

    async def __aenter__(self) -> RateLimiter:
        await self.acquire()
        return self

    async def __aexit__(self, *args: Any) -> None:
        pass


# Process-wide limiters, one per provider
_rate_limiters: dict[str, RateLimiter] = {}


def get_rate_limiter(api_name: str, rate: float = 3.0) -> RateLimiter:
    """Get or create the shared rate limiter for a provider."""
    if api_name not in _rate_limiters:
        _rate_limiters[api_name] = RateLimiter(rate=rate)
    return _rate_limiters[api_name]


def reset_rate_limiters() -> None:
    """Forget all shared limiters (used by tests and on reconfiguration)."""
    _rate_limiters.clear()


# =============================================================================
# Settled Gathering
# =============================================================================


async def gather_settled(*coros: Awaitable[T]) -> list[T | BaseException]:
    """
    Run coroutines concurrently and wait for all of them to settle.

    Results come back in argument order regardless of completion order;
    a failed coroutine contributes its exception instead of a value.
    """
    return list(await asyncio.gather(*coros, return_exceptions=True))


# =============================================================================
# Keyed Lock
# =============================================================================


class KeyedLock:
    """
    One asyncio.Lock per key, created on demand.

    Two tasks holding different keys never block each other; two tasks
    holding the same key run one after the other.

    Example:
        locks = KeyedLock()
        async with locks.hold("doi:10.1/abc"):
            ...
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._waiters: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._waiters[key] = self._waiters.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[key] -= 1
            if self._waiters[key] == 0:
                del self._waiters[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# =============================================================================
# Cancellation
# =============================================================================


class CancellationToken:
    """
    Cooperative cancellation with an optional deadline.

    The crawl checks the token between phases, BFS levels and reference
    fetches. `raise_if_cancelled` raises CrawlCancelledError once the
    token is cancelled or the deadline has passed.

    Example:
        token = CancellationToken(timeout=300)
        await crawler.crawl(query, token=token)
        # elsewhere: token.cancel("user aborted")
    """

    def __init__(self, timeout: float | None = None) -> None:
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._reason: str | None = None

    def cancel(self, reason: str = "crawl cancelled") -> None:
        if self._reason is None:
            self._reason = reason

    @property
    def cancelled(self) -> bool:
        if self._reason is not None:
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._reason = "crawl deadline exceeded"
            return True
        return False

    @property
    def reason(self) -> str | None:
        return self._reason

    def raise_if_cancelled(self, phase: str | None = None) -> None:
        if self.cancelled:
            raise CrawlCancelledError(self._reason or "crawl cancelled", phase=phase)

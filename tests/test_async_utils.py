"""Tests for async_utils.py: RateLimiter, gather_settled, KeyedLock, CancellationToken."""

import asyncio
from unittest.mock import patch

import pytest

from paper_crawler.core.async_utils import (
    CancellationToken,
    KeyedLock,
    RateLimiter,
    gather_settled,
    get_rate_limiter,
    reset_rate_limiters,
)
from paper_crawler.core.exceptions import CrawlCancelledError

# ============================================================
# RateLimiter
# ============================================================


class TestRateLimiter:
    async def test_acquire_fast(self):
        rl = RateLimiter(rate=10.0, per=1.0)
        await rl.acquire()  # Should not block

    async def test_context_manager(self):
        rl = RateLimiter(rate=10.0)
        async with rl:
            pass

    async def test_waits_when_bucket_empty(self):
        rl = RateLimiter(rate=2.0, per=1.0)
        with patch("paper_crawler.core.async_utils.asyncio.sleep") as mock_sleep:
            mock_sleep.return_value = None
            for _ in range(3):
                await rl.acquire()
        # Third call exceeds the 2-per-second ceiling
        assert mock_sleep.await_count == 1
        assert mock_sleep.await_args.args[0] > 0


class TestGetRateLimiter:
    def test_creates_new(self):
        rl = get_rate_limiter("test_unique_abc", rate=5.0)
        assert isinstance(rl, RateLimiter)
        assert rl.rate == 5.0

    def test_reuses_existing(self):
        rl1 = get_rate_limiter("test_reuse_xyz", rate=5.0)
        rl2 = get_rate_limiter("test_reuse_xyz", rate=50.0)
        assert rl1 is rl2

    def test_reset(self):
        rl1 = get_rate_limiter("test_reset", rate=5.0)
        reset_rate_limiters()
        assert get_rate_limiter("test_reset") is not rl1


# ============================================================
# gather_settled
# ============================================================


class TestGatherSettled:
    async def test_keeps_argument_order(self):
        async def delayed(value, delay):
            await asyncio.sleep(delay)
            return value

        results = await gather_settled(delayed("slow", 0.02), delayed("fast", 0))
        assert results == ["slow", "fast"]

    async def test_failures_become_values(self):
        async def ok():
            return 1

        async def boom():
            raise RuntimeError("boom")

        results = await gather_settled(boom(), ok())
        assert isinstance(results[0], RuntimeError)
        assert results[1] == 1


# ============================================================
# KeyedLock
# ============================================================


class TestKeyedLock:
    async def test_same_key_serializes(self):
        locks = KeyedLock()
        events = []

        async def worker(name):
            async with locks.hold("doi:10.1/abc"):
                events.append(f"{name}-in")
                await asyncio.sleep(0.01)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert events in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])

    async def test_different_keys_overlap(self):
        locks = KeyedLock()
        inside = []

        async def worker(key):
            async with locks.hold(key):
                inside.append(key)
                await asyncio.sleep(0.01)
                assert len(inside) == 2
                await asyncio.sleep(0)

        await asyncio.gather(worker("k1"), worker("k2"))

    async def test_locks_are_released(self):
        locks = KeyedLock()
        async with locks.hold("k"):
            assert len(locks) == 1
        assert len(locks) == 0


# ============================================================
# CancellationToken
# ============================================================


class TestCancellationToken:
    def test_not_cancelled_by_default(self):
        token = CancellationToken()
        assert not token.cancelled
        token.raise_if_cancelled()

    def test_cancel_raises_with_reason(self):
        token = CancellationToken()
        token.cancel("user aborted")
        with pytest.raises(CrawlCancelledError, match="user aborted") as exc_info:
            token.raise_if_cancelled("search")
        assert exc_info.value.phase == "search"

    def test_first_reason_wins(self):
        token = CancellationToken()
        token.cancel("first")
        token.cancel("second")
        assert token.reason == "first"

    def test_deadline(self):
        token = CancellationToken(timeout=0)
        assert token.cancelled
        assert token.reason == "crawl deadline exceeded"

"""Sliding-window rate limiter tests"""
import asyncio
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import AsyncMock

import pytest

from stockchef.services.rate_limiter import (
    RECIPE_GENERATE_SCOPE,
    InMemoryWindowStore,
    RateLimiter,
    RatePolicy,
    RedisWindowStore,
    auth_scope,
    window_key,
)


class FakeClock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> RateLimiter:
    return RateLimiter(store=InMemoryWindowStore(), clock=clock)


async def test_five_per_minute_then_denied(limiter: RateLimiter, clock: FakeClock):
    for _ in range(5):
        assert (await limiter.admit("auth:login", "10.0.0.1", 5, 60)).allowed
        clock.advance(1)

    denied = await limiter.admit("auth:login", "10.0.0.1", 5, 60)

    assert denied.allowed is False
    # oldest admission was 5s ago
    assert denied.retry_after == pytest.approx(55.0)


async def test_admission_resumes_when_oldest_leaves_window(limiter: RateLimiter, clock: FakeClock):
    start = clock.now
    for _ in range(5):
        assert (await limiter.admit("auth:login", "10.0.0.1", 5, 60)).allowed
        clock.advance(10)

    clock.now = start + 59.9
    assert not (await limiter.admit("auth:login", "10.0.0.1", 5, 60)).allowed

    clock.now = start + 60
    assert (await limiter.admit("auth:login", "10.0.0.1", 5, 60)).allowed
    # only one slot freed (second admission was at +10s)
    assert not (await limiter.admit("auth:login", "10.0.0.1", 5, 60)).allowed


async def test_window_is_rolling_not_fixed_bucket(limiter: RateLimiter, clock: FakeClock):
    assert (await limiter.admit("s", "id", 2, 60)).allowed
    clock.advance(50)
    assert (await limiter.admit("s", "id", 2, 60)).allowed
    clock.advance(20)  # t=70: first admission expired, second still inside
    assert (await limiter.admit("s", "id", 2, 60)).allowed
    assert not (await limiter.admit("s", "id", 2, 60)).allowed


async def test_denied_requests_do_not_consume_quota(limiter: RateLimiter, clock: FakeClock):
    assert (await limiter.admit("s", "id", 1, 60)).allowed
    for _ in range(3):
        clock.advance(10)
        assert not (await limiter.admit("s", "id", 1, 60)).allowed

    clock.advance(30)  # t=60 from the only admission
    assert (await limiter.admit("s", "id", 1, 60)).allowed


async def test_keys_are_isolated(limiter: RateLimiter):
    assert (await limiter.admit(auth_scope("login"), "1.1.1.1", 1, 60)).allowed
    assert (await limiter.admit(auth_scope("login"), "2.2.2.2", 1, 60)).allowed
    assert (await limiter.admit(auth_scope("signup"), "1.1.1.1", 1, 60)).allowed
    assert not (await limiter.admit(auth_scope("login"), "1.1.1.1", 1, 60)).allowed


async def test_recipe_policy_one_per_hour(limiter: RateLimiter, clock: FakeClock):
    policy = RatePolicy("recipe", limit=1, window=3600)

    assert (await limiter.admit_policy(policy, RECIPE_GENERATE_SCOPE, 42)).allowed
    clock.advance(600)
    denied = await limiter.admit_policy(policy, RECIPE_GENERATE_SCOPE, 42)

    assert not denied.allowed
    assert denied.retry_after == pytest.approx(3000.0)
    clock.advance(3000)
    assert (await limiter.admit_policy(policy, RECIPE_GENERATE_SCOPE, 42)).allowed


async def test_test_mode_bypasses_before_touching_store():
    store = AsyncMock()
    limiter = RateLimiter(store=store, test_mode=True)

    for _ in range(10):
        assert (await limiter.admit("s", "id", 1, 60)).allowed

    store.check_and_record.assert_not_awaited()


async def test_concurrent_requests_cannot_share_last_slot(limiter: RateLimiter):
    results = await asyncio.gather(*(limiter.admit("s", "id", 1, 60) for _ in range(20)))
    assert sum(result.allowed for result in results) == 1


def test_threads_cannot_share_last_slot(clock: FakeClock):
    limiter = RateLimiter(store=InMemoryWindowStore(), clock=clock)

    def _admit(_):
        return asyncio.run(limiter.admit("s", "id", 3, 60)).allowed

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(_admit, range(40)))

    assert sum(results) == 3


async def test_redis_store_allowed():
    client = AsyncMock()
    client.eval.return_value = [1, "0"]
    limiter = RateLimiter(store=RedisWindowStore(client), clock=FakeClock(50.0))

    admission = await limiter.admit(RECIPE_GENERATE_SCOPE, 42, 1, 3600)

    assert admission.allowed
    args = client.eval.await_args.args
    assert args[1] == 1
    assert args[2] == "ratelimit:recipe:generate|42"
    assert args[3:6] == ("50.0", "3600", "1")


async def test_redis_store_denied_reports_retry_after():
    client = AsyncMock()
    client.eval.return_value = [0, "12.5"]
    limiter = RateLimiter(store=RedisWindowStore(client))

    admission = await limiter.admit("auth:login", "10.0.0.1", 5, 60)

    assert not admission.allowed
    assert admission.retry_after == pytest.approx(12.5)


def test_window_keys_cannot_collide():
    assert window_key("a:b", "c") != window_key("a", "b:c")
    assert window_key(auth_scope("login"), "10.0.0.1") == "auth:login|10.0.0.1"
    with pytest.raises(ValueError):
        window_key("auth|login", "10.0.0.1")


async def test_scopes_sharing_a_prefix_have_separate_windows(limiter: RateLimiter):
    assert (await limiter.admit("a:b", "c", 1, 60)).allowed
    assert (await limiter.admit("a", "b:c", 1, 60)).allowed


async def test_idle_windows_are_evicted():
    store = InMemoryWindowStore(sweep_interval=10)
    clock = FakeClock(0.0)
    limiter = RateLimiter(store=store, clock=clock)

    for index in range(1000):
        assert (await limiter.admit(auth_scope("login"), f"10.0.{index // 256}.{index % 256}", 5, 60)).allowed
    assert len(store) == 1000

    clock.now = 100.0
    results = [(await limiter.admit(RECIPE_GENERATE_SCOPE, 7, 1, 3600)).allowed for _ in range(10)]

    # the tenth check sweeps: every login window has expired, the recipe one has not
    assert results == [True] + [False] * 9
    assert len(store) == 1


async def test_sweep_keeps_windows_still_in_use():
    store = InMemoryWindowStore()
    await store.check_and_record("old", 1, 60, now=0.0)
    await store.check_and_record("recent", 1, 60, now=50.0)

    assert store.sweep(now=100.0) == 1
    assert len(store) == 1
    # the surviving window still counts its admission
    assert not (await store.check_and_record("recent", 1, 60, now=100.0)).allowed
    # the evicted key starts over
    assert (await store.check_and_record("old", 1, 60, now=100.0)).allowed

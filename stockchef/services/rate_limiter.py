"""Sliding-window rate limiting.

A key is ``(scope, identity)``, e.g. ``("auth:login", "10.0.0.7")`` or
``("recipe:generate", "42")``. A request is admitted when fewer than ``limit``
admitted timestamps fall inside the trailing ``window``. Checking and recording
happen as one atomic step per key, so two racing requests never share the last
slot.

The in-memory store keeps its windows in the process only: they are lost on
restart and are not shared between workers. Configure ``REDIS_URL`` to share
them through Redis. Idle in-memory windows are evicted periodically.
"""
from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Protocol

from stockchef.core.config import get_settings

logger = logging.getLogger(__name__)

AUTH_SCOPE_PREFIX = "auth"
RECIPE_GENERATE_SCOPE = "recipe:generate"
# scopes never contain it, so the first one in a key ends the scope
KEY_SEPARATOR = "|"


@dataclass(frozen=True)
class Admission:
    allowed: bool
    retry_after: float = 0.0  # seconds


@dataclass(frozen=True)
class RatePolicy:
    """Named limiter configuration."""

    name: str
    limit: int
    window: float  # seconds


class WindowStore(Protocol):
    async def check_and_record(self, key: str, limit: int, window: float, now: float) -> Admission:
        ...


class InMemoryWindowStore:
    """
    Per-key deques of admitted timestamps guarded by per-key locks.

    A key whose last admission has left its window is idle. Idle keys are
    evicted every ``sweep_interval`` admission checks, so the map only holds
    keys seen within their window plus at most one interval of stragglers.
    """

    def __init__(self, sweep_interval: int = 1000) -> None:
        self.sweep_interval = sweep_interval
        self._windows: dict[str, deque[float]] = {}
        self._expires: dict[str, float] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._checks = 0

    def __len__(self) -> int:
        return len(self._windows)

    def _lock_for(self, key: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _acquire(self, key: str) -> threading.Lock:
        while True:
            lock = self._lock_for(key)
            lock.acquire()
            # a sweep may have evicted the key between lookup and acquire
            if self._locks.get(key) is lock:
                return lock
            lock.release()

    async def check_and_record(self, key: str, limit: int, window: float, now: float) -> Admission:
        lock = self._acquire(key)
        try:
            timestamps = self._windows.setdefault(key, deque())
            # lazy purge of this key
            while timestamps and timestamps[0] <= now - window:
                timestamps.popleft()

            if len(timestamps) >= limit:
                retry_after = max(0.0, timestamps[0] + window - now)
                return Admission(allowed=False, retry_after=retry_after)

            timestamps.append(now)
            self._expires[key] = max(self._expires.get(key, now), now + window)
            return Admission(allowed=True)
        finally:
            lock.release()
            self._maybe_sweep(now)

    def _maybe_sweep(self, now: float) -> None:
        with self._registry_lock:
            self._checks += 1
            if self._checks < self.sweep_interval:
                return
            self._checks = 0
        self.sweep(now)

    def sweep(self, now: float) -> int:
        """Evict keys whose every timestamp has left the window; returns how many."""
        with self._registry_lock:
            idle = [key for key in self._windows if self._expires.get(key, now) <= now]

        evicted = 0
        for key in idle:
            lock = self._locks.get(key)
            # a busy key is in use right now; leave it for the next sweep
            if lock is None or not lock.acquire(blocking=False):
                continue
            try:
                if self._expires.get(key, now) <= now:
                    with self._registry_lock:
                        self._windows.pop(key, None)
                        self._expires.pop(key, None)
                        self._locks.pop(key, None)
                    evicted += 1
            finally:
                lock.release()
        if evicted:
            logger.debug("Evicted %d idle rate-limit windows", evicted)
        return evicted

    def reset(self) -> None:
        with self._registry_lock:
            self._windows.clear()
            self._expires.clear()
            self._locks.clear()
            self._checks = 0


# KEYS[1] = window key; ARGV = now, window, limit, member
_SLIDING_WINDOW_LUA = """
redis.call('ZREMRANGEBYSCORE', KEYS[1], '-inf', tonumber(ARGV[1]) - tonumber(ARGV[2]))
local count = redis.call('ZCARD', KEYS[1])
if count >= tonumber(ARGV[3]) then
    local oldest = redis.call('ZRANGE', KEYS[1], 0, 0, 'WITHSCORES')
    return {0, tostring(tonumber(oldest[2]) + tonumber(ARGV[2]) - tonumber(ARGV[1]))}
end
redis.call('ZADD', KEYS[1], ARGV[1], ARGV[4])
redis.call('PEXPIRE', KEYS[1], math.ceil(tonumber(ARGV[2]) * 1000))
return {1, '0'}
"""


class RedisWindowStore:
    """Sorted-set windows evaluated by a single Lua script per admission."""

    def __init__(self, client: Any, prefix: str = "ratelimit") -> None:
        self._client = client
        self._prefix = prefix

    async def check_and_record(self, key: str, limit: int, window: float, now: float) -> Admission:
        member = f"{now:.6f}:{uuid.uuid4().hex}"
        allowed, retry_after = await self._client.eval(
            _SLIDING_WINDOW_LUA,
            1,
            f"{self._prefix}:{key}",
            repr(now),
            repr(window),
            str(limit),
            member,
        )
        return Admission(allowed=bool(int(allowed)), retry_after=max(0.0, float(retry_after)))


def window_key(scope: str, identity: str | int) -> str:
    """Store key for (scope, identity); distinct pairs never share a key."""
    if KEY_SEPARATOR in scope:
        raise ValueError(f"rate-limit scope may not contain {KEY_SEPARATOR!r}: {scope!r}")
    return f"{scope}{KEY_SEPARATOR}{identity}"

class RateLimiter:
    """Admission controller over a pluggable window store."""

    def __init__(
        self,
        store: WindowStore | None = None,
        clock: Callable[[], float] = time.time,
        test_mode: bool = False,
    ) -> None:
        self.store = store or InMemoryWindowStore()
        self.clock = clock
        self.test_mode = test_mode

    async def admit(self, scope: str, identity: str | int, limit: int, window: float) -> Admission:
        """
        Admit or deny one request for ``(scope, identity)``.

        Args:
            scope: logical route or feature, e.g. "auth:login"
            identity: client IP or user id
            limit: admissions allowed inside the window
            window: trailing window length in seconds

        Returns:
            Admission with ``retry_after`` set when denied
        """
        if self.test_mode:
            return Admission(allowed=True)

        key = window_key(scope, identity)
        admission = await self.store.check_and_record(key, limit, window, self.clock())
        if not admission.allowed:
            logger.warning("Rate limit hit: key=%s limit=%s window=%ss retry_after=%.1fs", key, limit, window, admission.retry_after)
        return admission

    async def admit_policy(self, policy: RatePolicy, scope: str, identity: str | int) -> Admission:
        return await self.admit(scope, identity, policy.limit, policy.window)


def auth_policy() -> RatePolicy:
    settings = get_settings()
    return RatePolicy("auth", settings.auth_rate_limit, settings.auth_rate_window_seconds)


def recipe_policy() -> RatePolicy:
    settings = get_settings()
    return RatePolicy("recipe", settings.recipe_rate_limit, settings.recipe_rate_window_seconds)


def auth_scope(route: str) -> str:
    return f"{AUTH_SCOPE_PREFIX}:{route}"


@lru_cache
def get_rate_limiter() -> RateLimiter:
    """Process-wide limiter; Redis-backed when REDIS_URL is configured."""
    from stockchef.db.redis_session import get_redis_client

    settings = get_settings()
    client = get_redis_client()
    store: WindowStore = RedisWindowStore(client) if client is not None else InMemoryWindowStore()
    return RateLimiter(store=store, test_mode=settings.rate_limit_test_mode)

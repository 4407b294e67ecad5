from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from threading import Lock
from typing import Protocol

import redis

from app.core.config import settings

_LOG = logging.getLogger("app.rate_limit")

KEY_PREFIX = "snapform:submit"
# In-memory windows are pruned once the table grows past this many keys.
_MAX_TRACKED_KEYS = 10_000


@dataclass
class RateLimitResult:
    allowed: bool
    retry_after_seconds: int
    current_value: int


class RateLimiter(Protocol):
    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        ...


class InMemoryRateLimiter:
    """Fixed-window counter for a single process."""

    def __init__(self):
        self._windows: dict[str, tuple[float, int]] = {}
        self._lock = Lock()

    def _prune(self, now: float) -> None:
        expired = [key for key, (ends_at, _) in self._windows.items() if ends_at <= now]
        for key in expired:
            del self._windows[key]

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        window = max(int(window_seconds), 1)
        now = time.monotonic()
        with self._lock:
            if len(self._windows) > _MAX_TRACKED_KEYS:
                self._prune(now)
            ends_at, count = self._windows.get(key, (0.0, 0))
            if ends_at <= now:
                ends_at, count = now + window, 0
            count += 1
            self._windows[key] = (ends_at, count)
        return RateLimitResult(
            allowed=count <= limit,
            retry_after_seconds=max(1, int(ends_at - now)),
            current_value=count,
        )


class RedisRateLimiter:
    """Fixed-window counter shared by every API worker."""

    def __init__(self, client: redis.Redis):
        self.client = client

    def hit(self, key: str, *, limit: int, window_seconds: int) -> RateLimitResult:
        window = max(int(window_seconds), 1)
        pipe = self.client.pipeline(transaction=True)
        pipe.incr(key)
        pipe.expire(key, window, nx=True)
        pipe.ttl(key)
        count, _, ttl = pipe.execute()
        ttl = int(ttl) if int(ttl) > 0 else window
        return RateLimitResult(allowed=int(count) <= limit, retry_after_seconds=ttl, current_value=int(count))


_cached_limiter: RateLimiter | None = None
_fallback_limiter = InMemoryRateLimiter()


def _build_limiter() -> RateLimiter:
    try:
        client = redis.Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            socket_timeout=0.4,
            socket_connect_timeout=0.4,
        )
        client.ping()
        return RedisRateLimiter(client)
    except redis.RedisError:
        _LOG.warning("Redis limiter unavailable; fallback to in-memory limiter")
        return _fallback_limiter


def get_rate_limiter() -> RateLimiter:
    global _cached_limiter
    if _cached_limiter is None:
        _cached_limiter = _build_limiter()
    return _cached_limiter


def submission_rate_key(client_ip: str | None, form_id: str) -> str:
    return f"{KEY_PREFIX}:{client_ip or 'unknown'}:{form_id}"


def hit_submission_limit(client_ip: str | None, form_id: str) -> RateLimitResult:
    key = submission_rate_key(client_ip, form_id)
    limit = int(settings.SUBMISSION_RATE_LIMIT)
    window = int(settings.SUBMISSION_RATE_WINDOW_SECONDS)
    try:
        return get_rate_limiter().hit(key, limit=limit, window_seconds=window)
    except redis.RedisError as exc:
        _LOG.warning("Redis limiter failed (%s); counting in-process", exc.__class__.__name__)
        return _fallback_limiter.hit(key, limit=limit, window_seconds=window)

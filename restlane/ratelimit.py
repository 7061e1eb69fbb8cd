"""Per-route rate-limit buckets fed from response headers."""
from __future__ import annotations

import asyncio
import logging
import time
from collections import deque
from typing import Callable, Deque, Dict, Mapping, Optional

from .attempt import ExecutionAttempt

MAJOR_PARAMETERS = {"channels", "guilds", "webhooks"}
REACTION_WINDOW_SEC = 0.25


def bucket_key(route: str) -> str:
    """Collapse a route to the key of the bucket it is accounted under."""

    parts = route.split("?", 1)[0].strip("/").split("/")
    key = []
    for index, part in enumerate(parts):
        if part == "reactions":
            key.append(part)
            break
        if part.isdigit() and not (index > 0 and parts[index - 1] in MAJOR_PARAMETERS):
            key.append(":id")
        else:
            key.append(part)
    return "/".join(key)


def _header_float(headers: Mapping[str, str], name: str) -> Optional[float]:
    value = headers.get(name)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        logging.warning(f"[ratelimit] Ignoring malformed {name} header: {value!r}")
        return None


def _header_int(headers: Mapping[str, str], name: str) -> Optional[int]:
    value = _header_float(headers, name)
    return int(value) if value is not None else None


class RateLimitBucket:
    """Tracks limit/remaining/reset for one bucket key and holds its waiting attempts."""

    def __init__(self, key: str, registry: Optional["RateLimiter"] = None, clock: Callable[[], float] = time.time) -> None:
        self.key = key
        self.limit: Optional[int] = None
        self.remaining: Optional[int] = None
        self.reset_at: Optional[float] = None
        self._registry = registry
        self._clock = clock
        self._queue: Deque[ExecutionAttempt] = deque()
        self._lock = asyncio.Lock()
        # one in-flight request per bucket
        self.busy = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._queue)

    def __repr__(self) -> str:
        return (
            f"RateLimitBucket({self.key!r}, limit={self.limit}, remaining={self.remaining}, "
            f"reset_at={self.reset_at}, queued={len(self._queue)})"
        )

    async def observe(self, headers: Mapping[str, str], reaction: bool = False) -> None:
        async with self._lock:
            self.update(headers, reaction)

    def update(self, headers: Mapping[str, str], reaction: bool = False) -> None:
        now = self._clock()
        limit = _header_int(headers, "X-RateLimit-Limit")
        remaining = _header_int(headers, "X-RateLimit-Remaining")
        reset = _header_float(headers, "X-RateLimit-Reset")
        reset_after = _header_float(headers, "X-RateLimit-Reset-After")
        retry_after = _header_float(headers, "Retry-After")
        is_global = str(headers.get("X-RateLimit-Global", "")).lower() == "true"

        if is_global and retry_after is not None:
            if self._registry is not None:
                self._registry.hold_global(now + retry_after)
            return

        if limit is not None:
            self.limit = limit
        if remaining is not None:
            self.remaining = remaining

        if reset is not None:
            reset_at = reset
        elif reset_after is not None:
            reset_at = now + reset_after
        else:
            reset_at = self.reset_at

        if retry_after is not None:
            self.remaining = 0
            reset_at = max(reset_at or 0.0, now + retry_after)

        if reaction and reset_at is not None:
            reset_at = min(reset_at, now + REACTION_WINDOW_SEC)

        self.reset_at = reset_at

    def wait_time(self, now: Optional[float] = None) -> float:
        """Seconds until this bucket may send again."""

        if self.remaining is None or self.remaining > 0 or self.reset_at is None:
            return 0.0
        now = self._clock() if now is None else now
        return max(self.reset_at - now, 0.0)

    def push(self, attempt: ExecutionAttempt) -> "RateLimitBucket":
        self._queue.append(attempt)
        return self

    async def unshift(self, attempt: ExecutionAttempt) -> "RateLimitBucket":
        async with self._lock:
            self._queue.appendleft(attempt)
        return self

    async def take(self) -> Optional[ExecutionAttempt]:
        """Wait out any hold on this bucket, then pop its front attempt."""

        while True:
            async with self._lock:
                while self._queue and self._queue[0].done:
                    self._queue.popleft()
                if not self._queue:
                    return None

                now = self._clock()
                delay = self.wait_time(now)
                if self._registry is not None:
                    delay = max(delay, self._registry.global_wait(now))

                if delay <= 0:
                    if self.reset_at is not None and now >= self.reset_at:
                        self.remaining = self.limit
                        self.reset_at = None
                    if self.remaining is not None and self.remaining > 0:
                        self.remaining -= 1
                    return self._queue.popleft()

            logging.debug(f'[ratelimit] Bucket "{self.key}" limited, holding for {delay:.3f}s')
            await asyncio.sleep(delay)


class RateLimiter:
    """Registry of buckets plus the global hold shared by all of them."""

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._buckets: Dict[str, RateLimitBucket] = {}
        self.global_reset_at: Optional[float] = None

    def __len__(self) -> int:
        return len(self._buckets)

    def __contains__(self, key: str) -> bool:
        return key in self._buckets

    def get(self, key: str) -> RateLimitBucket:
        bucket = self._buckets.get(key)
        if bucket is None:
            bucket = RateLimitBucket(key, registry=self, clock=self._clock)
            self._buckets[key] = bucket
        return bucket

    def for_route(self, route: str) -> RateLimitBucket:
        return self.get(bucket_key(route))

    def hold_global(self, until: float) -> None:
        if self.global_reset_at is None or until > self.global_reset_at:
            logging.debug(f"[ratelimit] Global rate limit hit, holding until {until:.3f}")
            self.global_reset_at = until

    def global_wait(self, now: Optional[float] = None) -> float:
        if self.global_reset_at is None:
            return 0.0
        now = self._clock() if now is None else now
        remaining = self.global_reset_at - now
        if remaining <= 0:
            self.global_reset_at = None
            return 0.0
        return remaining

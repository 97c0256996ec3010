"""In-memory fixed-window rate limiter keyed by client identity.

State lives for the lifetime of the process and is not shared between
instances, so under horizontal scaling the limit is approximate. Buckets are
read and written without awaiting in between, which keeps a single event
loop free of interleaved updates without a lock.
"""
from __future__ import annotations

import math
import time
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Protocol

from insight_proxy.core.config import RateConfig
from insight_proxy.core.errors import RateLimited

SWEEP_INTERVAL_SECONDS = 60.0


@dataclass(slots=True)
class RateLimitBucket:
    count: int
    expires_at: float

    def expired(self, now: float) -> bool:
        return self.expires_at <= now


class BucketStore(Protocol):
    def get(self, key: str) -> Optional[RateLimitBucket]: ...

    def set(self, key: str, bucket: RateLimitBucket) -> None: ...

    def sweep(self, now: float) -> int: ...

    def clear(self) -> None: ...

    def __len__(self) -> int: ...


class InMemoryBucketStore:
    def __init__(self) -> None:
        self._buckets: Dict[str, RateLimitBucket] = {}

    def get(self, key: str) -> Optional[RateLimitBucket]:
        return self._buckets.get(key)

    def set(self, key: str, bucket: RateLimitBucket) -> None:
        self._buckets[key] = bucket

    def sweep(self, now: float) -> int:
        expired = [key for key, bucket in self._buckets.items() if bucket.expired(now)]
        for key in expired:
            del self._buckets[key]
        return len(expired)

    def clear(self) -> None:
        self._buckets.clear()

    def __len__(self) -> int:
        return len(self._buckets)


@dataclass(frozen=True, slots=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0


class RateLimiter:
    def __init__(
        self,
        *,
        store: BucketStore | None = None,
        clock: Callable[[], float] = time.time,
        sweep_interval: float = SWEEP_INTERVAL_SECONDS,
    ) -> None:
        self._store: BucketStore = store if store is not None else InMemoryBucketStore()
        self._clock = clock
        self._sweep_interval = sweep_interval
        self._last_sweep_at = 0.0

    def check(self, key: str, config: RateConfig) -> RateDecision:
        """Count one request for ``key`` and report whether it may proceed."""

        if not config.enabled:
            return RateDecision(allowed=True)

        now = self._clock()
        self._maybe_sweep(now)

        window = config.window_seconds
        bucket = self._store.get(key)
        if bucket is None or bucket.expired(now):
            # expired buckets are replaced, not merged
            self._store.set(key, RateLimitBucket(count=1, expires_at=now + window))
            return RateDecision(allowed=True)

        if bucket.count < config.max_requests:
            bucket.count += 1
            self._store.set(key, bucket)
            return RateDecision(allowed=True)

        retry_after = max(0, math.ceil(bucket.expires_at - now))
        if retry_after == 0:
            retry_after = math.ceil(window)
        return RateDecision(allowed=False, retry_after=retry_after)

    def enforce(self, key: str, config: RateConfig) -> None:
        decision = self.check(key, config)
        if not decision.allowed:
            raise RateLimited(
                decision.retry_after,
                detail=f"rate limit of {config.max_requests} per {config.window_ms}ms exceeded",
            )

    def snapshot(self) -> dict[str, int]:
        return {"size": len(self._store)}

    def reset(self) -> None:
        self._store.clear()
        self._last_sweep_at = 0.0

    def _maybe_sweep(self, now: float) -> None:
        if now - self._last_sweep_at < self._sweep_interval:
            return
        self._last_sweep_at = now
        self._store.sweep(now)


__all__ = [
    "BucketStore",
    "InMemoryBucketStore",
    "RateDecision",
    "RateLimitBucket",
    "RateLimiter",
]

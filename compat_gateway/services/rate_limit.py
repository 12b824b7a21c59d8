"""Rate limiting.

Two strategies decide whether a credential may proceed:

- LedgerRateLimiter counts usage records in the trailing window on every
  call. Durable and multi-process safe, one query per request.
- SlidingWindowRateLimiter keeps the trailing window in memory, seeded
  from the ledger the first time a (credential, endpoint class) pair is
  seen. The check and the append happen without an await in between, so
  two concurrent requests can never both take the last slot.

AddressRateLimiter applies a fixed window per origin address to requests
that carry no credential.
"""

from __future__ import annotations

import asyncio
import math
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

import structlog

from compat_gateway.config import RateLimitConfig, RateLimitTier
from compat_gateway.errors import RateLimitExceededError
from compat_gateway.stores.usage import UsageLedger
from compat_gateway.utils.datetime import isoformat_z, utcnow

logger = structlog.get_logger()

Clock = Callable[[], datetime]

_EPOCH = datetime(1970, 1, 1)


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a rate limit check.

    ``current_count`` is the number of attempts already in the window
    before this one was counted.
    """

    allowed: bool
    current_count: int
    limit: int
    window: timedelta
    resets_at: datetime
    checked_at: datetime

    @property
    def retry_after_seconds(self) -> int:
        return max(1, math.ceil((self.resets_at - self.checked_at).total_seconds()))

    def to_error(self) -> RateLimitExceededError:
        return RateLimitExceededError(
            limit=self.limit,
            window_seconds=int(self.window.total_seconds()),
            usage=self.current_count,
            reset_time=isoformat_z(self.resets_at),
            retry_after=self.retry_after_seconds,
        )


class RateLimiter(Protocol):
    async def check_and_count(
        self,
        credential_id: int,
        endpoint_class: str,
        tier: RateLimitTier,
    ) -> RateLimitDecision: ...

    def prune(self) -> int: ...


class LedgerRateLimiter:
    """Count-query strategy.

    Counting is done by the usage recorder writing the attempt after the
    response, so a burst of concurrent requests can overshoot the limit
    by the number of in-flight requests.
    """

    def __init__(self, ledger: UsageLedger, *, clock: Clock = utcnow) -> None:
        self._ledger = ledger
        self._clock = clock

    async def check_and_count(
        self,
        credential_id: int,
        endpoint_class: str,
        tier: RateLimitTier,
    ) -> RateLimitDecision:
        now = self._clock()
        window = tier.window
        since = now - window
        count = await self._ledger.count_since(
            credential_id, since, endpoint_class=endpoint_class
        )
        oldest = None
        if count:
            oldest = await self._ledger.oldest_since(
                credential_id, since, endpoint_class=endpoint_class
            )
        resets_at = (oldest or now) + window
        return RateLimitDecision(
            allowed=count < tier.max_requests,
            current_count=count,
            limit=tier.max_requests,
            window=window,
            resets_at=resets_at,
            checked_at=now,
        )

    def prune(self) -> int:
        return 0


class SlidingWindowRateLimiter:
    """In-memory sliding window strategy."""

    def __init__(self, ledger: UsageLedger | None = None, *, clock: Clock = utcnow) -> None:
        self._ledger = ledger
        self._clock = clock
        self._windows: dict[tuple[int, str], deque[datetime]] = {}
        self._window_length: dict[tuple[int, str], timedelta] = {}
        self._seed_locks: dict[tuple[int, str], asyncio.Lock] = {}

    async def _seed(self, key: tuple[int, str], tier: RateLimitTier) -> None:
        if key in self._windows:
            return
        lock = self._seed_locks.setdefault(key, asyncio.Lock())
        async with lock:
            if key in self._windows:
                return
            history: list[datetime] = []
            if self._ledger is not None:
                credential_id, endpoint_class = key
                history = await self._ledger.timestamps_since(
                    credential_id,
                    self._clock() - tier.window,
                    endpoint_class=endpoint_class,
                    limit=tier.max_requests,
                )
            self._windows[key] = deque(history, maxlen=tier.max_requests)
            self._window_length[key] = tier.window
            logger.debug(
                "rate_limit.seeded",
                credential_id=key[0],
                endpoint_class=key[1],
                seeded=len(history),
            )
        self._seed_locks.pop(key, None)

    async def check_and_count(
        self,
        credential_id: int,
        endpoint_class: str,
        tier: RateLimitTier,
    ) -> RateLimitDecision:
        key = (credential_id, endpoint_class)
        await self._seed(key, tier)

        # No await below this point
        now = self._clock()
        window = tier.window
        timestamps = self._windows[key]
        if timestamps.maxlen != tier.max_requests:
            # Tier changed since seeding
            timestamps = deque(timestamps, maxlen=tier.max_requests)
            self._windows[key] = timestamps
        self._window_length[key] = window

        cutoff = now - window
        while timestamps and timestamps[0] <= cutoff:
            timestamps.popleft()

        count = len(timestamps)
        resets_at = (timestamps[0] if timestamps else now) + window
        timestamps.append(now)

        return RateLimitDecision(
            allowed=count < tier.max_requests,
            current_count=count,
            limit=tier.max_requests,
            window=window,
            resets_at=resets_at,
            checked_at=now,
        )

    def prune(self) -> int:
        """Drop windows that have gone quiet. Returns how many were dropped."""
        now = self._clock()
        stale = [
            key
            for key, timestamps in self._windows.items()
            if not timestamps or timestamps[-1] <= now - self._window_length[key]
        ]
        for key in stale:
            del self._windows[key]
            del self._window_length[key]
        return len(stale)


class AddressRateLimiter:
    """Fixed window per origin address."""

    def __init__(self, tier: RateLimitTier, *, clock: Clock = utcnow) -> None:
        self._tier = tier
        self._clock = clock
        self._buckets: dict[str, tuple[int, int]] = {}  # address -> (bucket, count)

    def _bucket(self, now: datetime) -> int:
        return int((now - _EPOCH).total_seconds()) // self._tier.window_seconds

    def check_and_count(self, address: str) -> RateLimitDecision:
        now = self._clock()
        bucket = self._bucket(now)
        current_bucket, count = self._buckets.get(address, (bucket, 0))
        if current_bucket != bucket:
            count = 0
        self._buckets[address] = (bucket, count + 1)

        resets_at = _EPOCH + timedelta(seconds=(bucket + 1) * self._tier.window_seconds)
        return RateLimitDecision(
            allowed=count < self._tier.max_requests,
            current_count=count,
            limit=self._tier.max_requests,
            window=self._tier.window,
            resets_at=resets_at,
            checked_at=now,
        )

    def prune(self) -> int:
        bucket = self._bucket(self._clock())
        stale = [addr for addr, (b, _) in self._buckets.items() if b != bucket]
        for addr in stale:
            del self._buckets[addr]
        return len(stale)


def build_rate_limiter(
    config: RateLimitConfig,
    ledger: UsageLedger,
    *,
    clock: Clock = utcnow,
) -> RateLimiter:
    if config.strategy == "ledger":
        return LedgerRateLimiter(ledger, clock=clock)
    return SlidingWindowRateLimiter(ledger, clock=clock)

"""Cache-aside gateway for expensive upstream lookups.

Flow for ``get_or_compute``:
1. Read the store. A read failure is logged and treated as a miss.
2. On a miss, run ``compute`` under the configured timeout.
3. Persist the fresh value. A write failure is logged, the value is
   still returned.

Failures of ``compute`` are never written to the store.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Generic, TypeVar

import structlog

from compat_gateway.errors import GatewayError, UpstreamFailureError, UpstreamTimeoutError
from compat_gateway.stores.cache import CacheStore
from compat_gateway.utils.datetime import utcnow

logger = structlog.get_logger()

V = TypeVar("V")


class _ComputeAbandoned(Exception):
    """The request computing an in-flight key was cancelled."""


@dataclass(frozen=True)
class CacheResult(Generic[V]):
    value: V
    cached: bool
    key: str


class CacheGateway:
    """Read-through cache over a CacheStore."""

    def __init__(
        self,
        store: CacheStore,
        *,
        compute_timeout: float = 15.0,
        dedupe_inflight: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._compute_timeout = compute_timeout
        self._dedupe_inflight = dedupe_inflight
        self._clock = clock
        self._inflight: dict[str, asyncio.Future] = {}

    async def get_or_compute(
        self,
        key: str,
        ttl: timedelta,
        compute: Callable[[], Awaitable[V]],
        *,
        kind: str = "generic",
    ) -> CacheResult[V]:
        """Return the cached value for ``key`` or compute and store it.

        Raises:
            UpstreamTimeoutError: compute exceeded the timeout
            UpstreamFailureError: compute raised a non-gateway error
            GatewayError: compute raised one, propagated unchanged
        """
        log = logger.bind(cache_key=key, kind=kind)

        try:
            entry = await self._store.get(key, self._clock())
        except Exception as exc:
            log.warning("cache.read_failed", error=str(exc))
            entry = None

        if entry is not None:
            log.debug("cache.hit")
            return CacheResult(value=entry.payload, cached=True, key=key)

        log.debug("cache.miss")

        if self._dedupe_inflight:
            while True:
                pending = self._inflight.get(key)
                if pending is None:
                    break
                log.debug("cache.inflight_join")
                try:
                    value = await asyncio.shield(pending)
                except _ComputeAbandoned:
                    # Owner was cancelled; the first waiter to resume takes over
                    continue
                return CacheResult(value=value, cached=False, key=key)

            future: asyncio.Future = asyncio.get_running_loop().create_future()
            self._inflight[key] = future
            try:
                value = await self._compute_and_store(key, ttl, compute, kind, log)
            except asyncio.CancelledError:
                future.set_exception(_ComputeAbandoned())
                future.exception()
                raise
            except Exception as exc:
                future.set_exception(exc)
                # Retrieved so an unawaited future does not warn
                future.exception()
                raise
            else:
                future.set_result(value)
            finally:
                self._inflight.pop(key, None)
            return CacheResult(value=value, cached=False, key=key)

        value = await self._compute_and_store(key, ttl, compute, kind, log)
        return CacheResult(value=value, cached=False, key=key)

    async def _compute_and_store(
        self,
        key: str,
        ttl: timedelta,
        compute: Callable[[], Awaitable[Any]],
        kind: str,
        log: Any,
    ) -> Any:
        try:
            async with asyncio.timeout(self._compute_timeout):
                value = await compute()
        except TimeoutError:
            log.warning("cache.compute_timeout", timeout=self._compute_timeout)
            raise UpstreamTimeoutError(
                f"{kind} lookup timed out after {self._compute_timeout:g}s"
            ) from None
        except GatewayError:
            raise
        except Exception as exc:
            log.warning("cache.compute_failed", error=str(exc))
            raise UpstreamFailureError(f"{kind} lookup failed: {exc}") from exc

        try:
            await self._store.upsert(key, kind, value, ttl=ttl, now=self._clock())
        except Exception as exc:
            log.warning("cache.write_failed", error=str(exc))

        return value

    async def invalidate(self, key: str) -> bool:
        return await self._store.delete(key)

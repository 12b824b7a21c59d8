"""Lookup handlers behind the gateway.

Each lookup goes through the shared CacheGateway with its own kind and
TTL. Upstream failures are mapped to fallback answers here where a
sensible default exists.
"""

from __future__ import annotations

import ipaddress
from typing import Any

import structlog

from compat_gateway.errors import UpstreamError, UpstreamFailureError
from compat_gateway.gateway.outcome import HandlerResult
from compat_gateway.services.cache import (
    CacheGateway,
    CacheKinds,
    carriers_key,
    extract_country,
    isp_key,
    pricing_key,
    voice_key,
)
from compat_gateway.services.upstream import Collaborators
from compat_gateway.services.upstream.static import UNKNOWN_ISP, fallback_carriers

logger = structlog.get_logger()


def is_public_address(address: str) -> bool:
    """False for private, loopback, link-local and unparseable addresses."""
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False
    return not (ip.is_private or ip.is_loopback or ip.is_link_local or ip.is_unspecified)


class LookupService:
    """Business handlers for the public lookup endpoints."""

    def __init__(
        self,
        cache: CacheGateway,
        collaborators: Collaborators,
        kinds: CacheKinds,
    ) -> None:
        self._cache = cache
        self._collaborators = collaborators
        self._kinds = kinds

    async def carriers(self, location: str) -> HandlerResult:
        kind = self._kinds.carriers
        try:
            result = await self._cache.get_or_compute(
                carriers_key(location),
                kind.ttl,
                lambda: self._collaborators.carriers.top_carriers(location),
                kind=kind.name,
            )
        except UpstreamError as e:
            logger.warning("lookup.carriers.fallback", error=e.code)
            return HandlerResult(
                status_code=e.status_code,
                body={
                    "success": False,
                    "error": e.code,
                    "message": "Failed to fetch carriers",
                    **fallback_carriers(),
                    "cached": False,
                },
            )
        return HandlerResult(body={"success": True, **result.value, "cached": result.cached})

    async def pricing(self, country: str, carriers: list[str] | None = None) -> HandlerResult:
        kind = self._kinds.pricing
        canonical = extract_country(country)
        result = await self._cache.get_or_compute(
            pricing_key(country),
            kind.ttl,
            lambda: self._collaborators.pricing.pricing(canonical, carriers),
            kind=kind.name,
        )
        return HandlerResult(body={**result.value, "cached": result.cached})

    async def isp(self, address: str) -> HandlerResult:
        body: dict[str, Any] = {
            "ip": address,
            "isp": UNKNOWN_ISP,
            "city": None,
            "region": None,
            "country": None,
            "cached": False,
        }
        if not is_public_address(address):
            return HandlerResult(body=body)

        kind = self._kinds.isp
        try:
            result = await self._cache.get_or_compute(
                isp_key(address),
                kind.ttl,
                lambda: self._locate(address),
                kind=kind.name,
            )
        except UpstreamError as e:
            logger.info("lookup.isp.unknown", error=e.code)
            return HandlerResult(body=body)

        data = result.value
        body.update(
            isp=data.get("isp") or UNKNOWN_ISP,
            city=data.get("city"),
            region=data.get("region"),
            country=data.get("country"),
            cached=result.cached,
        )
        return HandlerResult(body=body)

    async def _locate(self, address: str) -> dict[str, Any]:
        data = await self._collaborators.isp.locate(address)
        if not data.get("isp") or data["isp"] == UNKNOWN_ISP:
            # Nothing worth caching
            raise UpstreamFailureError("ISP lookup returned no provider")
        return data

    async def voice(self, text: str, voice: str, language: str = "en") -> HandlerResult:
        synthesizer = self._collaborators.voice
        if synthesizer is None:
            raise UpstreamFailureError("Voice synthesis is not configured")

        kind = self._kinds.voice
        result = await self._cache.get_or_compute(
            voice_key(text, voice, language),
            kind.ttl,
            lambda: synthesizer.synthesize(text, voice, language),
            kind=kind.name,
        )
        return HandlerResult(
            body={
                "voice": voice,
                "language": language,
                **result.value,
                "cached": result.cached,
            }
        )

    async def check_device(
        self,
        imei: str,
        *,
        location: str | None = None,
        network: str | None = None,
    ) -> HandlerResult:
        network = network or "AT&T"
        try:
            device = await self._collaborators.devices.inspect(imei, network)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamFailureError(f"Device analysis failed: {e}") from e

        return HandlerResult(
            body={
                "success": True,
                "device": {
                    "imei": imei,
                    "make": device.get("make"),
                    "model": device.get("model"),
                    "year": device.get("year"),
                    "tac": device.get("tac"),
                },
                "esimSupport": device.get("esimSupport", False),
                "capabilities": device.get("networkCapabilities", {}),
                "network": network,
                "location": location or "unknown",
            }
        )

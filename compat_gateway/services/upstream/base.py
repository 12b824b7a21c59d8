"""Upstream collaborator interfaces.

Every lookup returns a JSON-serializable dict so results can be cached
as-is. Implementations raise on failure; the cache gateway turns
unexpected exceptions into UpstreamFailureError.
"""

from __future__ import annotations

from typing import Any, Protocol


class CarrierDirectory(Protocol):
    async def top_carriers(self, location: str) -> dict[str, Any]:
        """Return ``{"country": str, "carriers": [{name, marketShare, description}]}``."""
        ...


class PricingDirectory(Protocol):
    async def pricing(self, country: str, carriers: list[str] | None) -> dict[str, Any]:
        """Return ``{"country", "currency", "plans", "lastUpdated"}``."""
        ...


class IspLocator(Protocol):
    async def locate(self, address: str) -> dict[str, Any]:
        """Return ``{"isp", "org", "city", "region", "country"}``."""
        ...


class VoiceSynthesizer(Protocol):
    async def synthesize(self, text: str, voice: str, language: str) -> dict[str, Any]:
        """Return ``{"audio": base64 str, "contentType": str}``."""
        ...


class DeviceInspector(Protocol):
    async def inspect(self, imei: str, network: str) -> dict[str, Any]:
        """Return device make/model/capabilities for an IMEI."""
        ...

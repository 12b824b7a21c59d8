"""HTTP-backed upstream collaborators.

All share one HTTPClientManager. Non-2xx answers raise
UpstreamFailureError; timeouts surface as httpx.TimeoutException and
are mapped by the cache gateway's own deadline or here.
"""

from __future__ import annotations

import base64
from typing import Any

import httpx
import structlog

from compat_gateway.errors import UpstreamFailureError, UpstreamTimeoutError
from compat_gateway.services.http.client import HTTPClientManager
from compat_gateway.services.upstream.static import UNKNOWN_ISP

logger = structlog.get_logger()


class _HttpCollaborator:
    name = "upstream"

    def __init__(self, http: HTTPClientManager, base_url: str) -> None:
        self._http = http
        self._base_url = base_url.rstrip("/")

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            response = await self._http.client.request(method, url, **kwargs)
        except httpx.TimeoutException as exc:
            raise UpstreamTimeoutError(f"{self.name} timed out") from exc
        except httpx.HTTPError as exc:
            raise UpstreamFailureError(f"{self.name} request failed: {exc}") from exc

        if response.status_code >= 400:
            logger.warning(
                "upstream.error_response",
                collaborator=self.name,
                status=response.status_code,
            )
            raise UpstreamFailureError(
                f"{self.name} returned {response.status_code}",
                details={"status": response.status_code},
            )
        return response

    async def _json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, path, **kwargs)
        try:
            data = response.json()
        except ValueError as exc:
            raise UpstreamFailureError(f"{self.name} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise UpstreamFailureError(f"{self.name} returned unexpected payload")
        return data


class HttpCarrierDirectory(_HttpCollaborator):
    name = "carriers"

    async def top_carriers(self, location: str) -> dict[str, Any]:
        data = await self._json("POST", "/carriers", json={"location": location})
        if not isinstance(data.get("carriers"), list):
            raise UpstreamFailureError("carriers returned no carrier list")
        return {"country": data.get("country", ""), "carriers": data["carriers"]}


class HttpPricingDirectory(_HttpCollaborator):
    name = "pricing"

    async def pricing(self, country: str, carriers: list[str] | None) -> dict[str, Any]:
        return await self._json(
            "POST", "/pricing", json={"country": country, "carriers": carriers or []}
        )


class HttpIspLocator(_HttpCollaborator):
    """ip-api.com style locator: GET {base}/{address}."""

    name = "isp"

    async def locate(self, address: str) -> dict[str, Any]:
        data = await self._json("GET", f"/{address}")
        if data.get("status") == "fail":
            raise UpstreamFailureError(f"isp lookup failed: {data.get('message', 'unknown')}")
        return {
            "isp": data.get("isp") or data.get("org") or data.get("as") or UNKNOWN_ISP,
            "org": data.get("org"),
            "city": data.get("city"),
            "region": data.get("regionName") or data.get("region"),
            "country": data.get("country"),
        }


class HttpVoiceSynthesizer(_HttpCollaborator):
    name = "voice"

    async def synthesize(self, text: str, voice: str, language: str) -> dict[str, Any]:
        response = await self._request(
            "POST",
            "/synthesize",
            json={"text": text, "voice": voice, "language": language},
        )
        return {
            "audio": base64.b64encode(response.content).decode(),
            "contentType": response.headers.get("content-type", "audio/mpeg"),
        }


class HttpDeviceInspector(_HttpCollaborator):
    name = "device"

    async def inspect(self, imei: str, network: str) -> dict[str, Any]:
        return await self._json("POST", "/inspect", json={"imei": imei, "network": network})

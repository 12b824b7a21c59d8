"""Upstream lookup collaborators."""

from __future__ import annotations

from dataclasses import dataclass

from compat_gateway.config import UpstreamConfig
from compat_gateway.services.http.client import HTTPClientManager
from compat_gateway.services.upstream.base import (
    CarrierDirectory,
    DeviceInspector,
    IspLocator,
    PricingDirectory,
    VoiceSynthesizer,
)
from compat_gateway.services.upstream.http import (
    HttpCarrierDirectory,
    HttpDeviceInspector,
    HttpIspLocator,
    HttpPricingDirectory,
    HttpVoiceSynthesizer,
)
from compat_gateway.services.upstream.static import (
    StaticCarrierDirectory,
    StaticDeviceInspector,
    StaticIspLocator,
    StaticPricingDirectory,
)


@dataclass
class Collaborators:
    carriers: CarrierDirectory
    pricing: PricingDirectory
    isp: IspLocator
    voice: VoiceSynthesizer | None
    devices: DeviceInspector


def build_collaborators(config: UpstreamConfig, http: HTTPClientManager) -> Collaborators:
    """Pick the HTTP implementation where a URL is configured, static otherwise.

    Voice has no static form; without a URL the endpoint answers 502.
    """
    return Collaborators(
        carriers=(
            HttpCarrierDirectory(http, config.carriers_url)
            if config.carriers_url
            else StaticCarrierDirectory()
        ),
        pricing=(
            HttpPricingDirectory(http, config.pricing_url)
            if config.pricing_url
            else StaticPricingDirectory()
        ),
        isp=HttpIspLocator(http, config.isp_url) if config.isp_url else StaticIspLocator(),
        voice=HttpVoiceSynthesizer(http, config.voice_url) if config.voice_url else None,
        devices=(
            HttpDeviceInspector(http, config.device_url)
            if config.device_url
            else StaticDeviceInspector()
        ),
    )


__all__ = [
    "CarrierDirectory",
    "Collaborators",
    "DeviceInspector",
    "IspLocator",
    "PricingDirectory",
    "VoiceSynthesizer",
    "build_collaborators",
]

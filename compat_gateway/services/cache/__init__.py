"""Lookup caching."""

from compat_gateway.services.cache.gateway import CacheGateway, CacheResult
from compat_gateway.services.cache.keys import (
    CacheKind,
    CacheKinds,
    carriers_key,
    derive_key,
    extract_country,
    isp_key,
    pricing_key,
    voice_key,
)

__all__ = [
    "CacheGateway",
    "CacheKind",
    "CacheKinds",
    "CacheResult",
    "carriers_key",
    "derive_key",
    "extract_country",
    "isp_key",
    "pricing_key",
    "voice_key",
]

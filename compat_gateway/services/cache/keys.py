"""Cache key derivation.

Equivalent requests must land on the same entry: inputs are normalized
(case, whitespace, country aliases) before hashing, so "USA", "usa"
and "United States" share one key.
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from datetime import timedelta

from compat_gateway.config import CacheConfig

COUNTRY_ALIASES: dict[str, str] = {
    "united states": "United States",
    "united states of america": "United States",
    "usa": "United States",
    "us": "United States",
    "canada": "Canada",
    "ca": "Canada",
    "united kingdom": "United Kingdom",
    "uk": "United Kingdom",
    "gb": "United Kingdom",
    "great britain": "United Kingdom",
    "australia": "Australia",
    "au": "Australia",
    "germany": "Germany",
    "de": "Germany",
    "france": "France",
    "fr": "France",
    "japan": "Japan",
    "jp": "Japan",
    "mexico": "Mexico",
    "mx": "Mexico",
    "brazil": "Brazil",
    "br": "Brazil",
    "india": "India",
    "in": "India",
    "china": "China",
    "cn": "China",
}

# Only full names are matched as substrings of a longer location
_COUNTRY_NAMES = sorted(
    (alias for alias in COUNTRY_ALIASES if len(alias) > 3),
    key=len,
    reverse=True,
)

# Two-letter codes that are also US state abbreviations ("San Francisco, CA")
_STATE_CODES = frozenset(
    {
        "al", "ak", "az", "ar", "ca", "co", "ct", "de", "fl", "ga", "hi", "id", "il",
        "in", "ia", "ks", "ky", "la", "me", "md", "ma", "mi", "mn", "ms", "mo", "mt",
        "ne", "nv", "nh", "nj", "nm", "ny", "nc", "nd", "oh", "ok", "or", "pa", "ri",
        "sc", "sd", "tn", "tx", "ut", "vt", "va", "wa", "wv", "wi", "wy", "dc",
    }
)

_COORDINATES = re.compile(r"^(-?\d+(?:\.\d+)?)\s*,\s*(-?\d+(?:\.\d+)?)$")
_SEPARATOR = "\x1f"


@dataclass(frozen=True)
class CacheKind:
    """A family of cache entries sharing one TTL."""

    name: str
    ttl: timedelta


@dataclass(frozen=True)
class CacheKinds:
    carriers: CacheKind
    pricing: CacheKind
    isp: CacheKind
    voice: CacheKind

    @classmethod
    def from_config(cls, config: CacheConfig) -> CacheKinds:
        return cls(
            carriers=CacheKind("carriers", timedelta(hours=config.carriers_ttl_hours)),
            pricing=CacheKind("pricing", timedelta(hours=config.pricing_ttl_hours)),
            isp=CacheKind("isp", timedelta(hours=config.isp_ttl_hours)),
            voice=CacheKind("voice", timedelta(hours=config.voice_ttl_hours)),
        )


def normalize_text(value: str) -> str:
    """Lowercase and collapse whitespace."""
    return " ".join(value.lower().split())


def extract_country(location: str) -> str:
    """Map a free-form location to a canonical country bucket.

    GPS coordinates fall into a one-degree grid cell. Unrecognized
    locations keep their normalized text as their own bucket.
    """
    normalized = normalize_text(location)

    match = _COORDINATES.match(normalized)
    if match:
        lat, lon = (round(float(part)) for part in match.groups())
        return f"gps:{lat},{lon}"

    if normalized in COUNTRY_ALIASES:
        return COUNTRY_ALIASES[normalized]

    # "Austin, TX, USA" -> try each comma-separated part, last first.
    # Ambiguous two-letter parts only count when they are the whole input.
    for part in reversed([p.strip() for p in normalized.split(",")]):
        if part in COUNTRY_ALIASES and part not in _STATE_CODES:
            return COUNTRY_ALIASES[part]

    for name in _COUNTRY_NAMES:
        if re.search(rf"\b{re.escape(name)}\b", normalized):
            return COUNTRY_ALIASES[name]

    return normalized


def derive_key(kind: str, *parts: str) -> str:
    """Deterministic key: kind prefix plus a digest of the normalized parts."""
    digest = hashlib.sha256(_SEPARATOR.join(parts).encode()).hexdigest()
    return f"{kind}:{digest}"


def carriers_key(location: str) -> str:
    return derive_key("carriers", extract_country(location))


def pricing_key(country: str) -> str:
    return derive_key("pricing", extract_country(country))


def isp_key(address: str) -> str:
    return derive_key("isp", address.strip().lower())


def voice_key(text: str, voice: str, language: str) -> str:
    return derive_key("voice", normalize_text(text), voice.lower(), language.lower())

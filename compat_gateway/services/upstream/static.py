"""Static collaborators used when no upstream URL is configured.

Also the source of the fallback answers returned when an upstream
lookup fails.
"""

from __future__ import annotations

from typing import Any

from compat_gateway.services.cache.keys import extract_country
from compat_gateway.utils.datetime import isoformat_z, utcnow
from compat_gateway.utils.imei import tac

DEFAULT_COUNTRY = "United States"

DEFAULT_CARRIERS: list[dict[str, str]] = [
    {
        "name": "AT&T",
        "marketShare": "45.4%",
        "description": "Default carrier for compatibility testing",
    },
]

US_CARRIERS: list[dict[str, str]] = [
    {"name": "AT&T", "marketShare": "45.4%", "description": "Largest US carrier with nationwide 5G coverage"},
    {"name": "Verizon", "marketShare": "32.8%", "description": "Premium network with strong rural coverage"},
    {"name": "T-Mobile", "marketShare": "16.7%", "description": "Un-carrier with competitive pricing"},
    {"name": "US Cellular", "marketShare": "1.2%", "description": "Regional carrier serving rural areas"},
    {"name": "Dish Network", "marketShare": "0.9%", "description": "New 5G network provider"},
]

UNKNOWN_ISP = "Unknown ISP"

_CURRENCIES = {
    "Canada": "CAD",
    "United Kingdom": "GBP",
    "Germany": "EUR",
    "France": "EUR",
    "Japan": "JPY",
    "Mexico": "MXN",
    "Brazil": "BRL",
    "India": "INR",
    "China": "CNY",
    "Australia": "AUD",
}

# TAC (first 8 IMEI digits) -> (make, model, year, esim)
_DEVICES: dict[str, tuple[str, str, int, bool]] = {
    "01326600": ("Apple", "iPhone 14 Pro", 2022, True),
    "01040000": ("Apple", "iPhone 15", 2023, True),
    "35940110": ("Apple", "iPhone 15 Pro", 2023, True),
    "35940210": ("Apple", "iPhone 16 Pro", 2024, True),
    "35216411": ("Samsung", "Galaxy S23", 2023, True),
    "35932811": ("Samsung", "Galaxy S24", 2024, True),
    "35596524": ("Google", "Pixel 8", 2023, True),
    "35596523": ("Google", "Pixel 8 Pro", 2023, True),
    "35448766": ("Google", "Pixel 10", 2025, True),
    "86178305": ("OnePlus", "OnePlus 11", 2023, False),
}


def fallback_carriers() -> dict[str, Any]:
    return {"country": DEFAULT_COUNTRY, "carriers": [dict(c) for c in DEFAULT_CARRIERS]}


def currency_for(country: str) -> str:
    return _CURRENCIES.get(extract_country(country), "USD")


class StaticCarrierDirectory:
    async def top_carriers(self, location: str) -> dict[str, Any]:
        if extract_country(location) == DEFAULT_COUNTRY:
            return {"country": DEFAULT_COUNTRY, "carriers": [dict(c) for c in US_CARRIERS]}
        return fallback_carriers()


class StaticPricingDirectory:
    async def pricing(self, country: str, carriers: list[str] | None) -> dict[str, Any]:
        return {
            "country": country,
            "currency": currency_for(country),
            "plans": [
                {
                    "carrier": "DOTM",
                    "name": "Unlimited",
                    "price": 25.0,
                    "data": "Unlimited",
                    "type": "postpaid",
                }
            ],
            "lastUpdated": isoformat_z(utcnow()),
        }


class StaticIspLocator:
    async def locate(self, address: str) -> dict[str, Any]:
        return {"isp": UNKNOWN_ISP, "org": None, "city": None, "region": None, "country": None}


class StaticDeviceInspector:
    async def inspect(self, imei: str, network: str) -> dict[str, Any]:
        device = _DEVICES.get(tac(imei))
        if device is None:
            return {
                "make": "Unknown",
                "model": "Unknown",
                "year": None,
                "tac": tac(imei),
                "esimSupport": False,
                "network": network,
                "networkCapabilities": {},
            }
        make, model, year, esim = device
        return {
            "make": make,
            "model": model,
            "year": year,
            "tac": tac(imei),
            "esimSupport": esim,
            "network": network,
            "networkCapabilities": {"fourG": True, "fiveG": year >= 2021, "volte": True},
        }

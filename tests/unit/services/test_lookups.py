"""Unit tests for LookupService fallbacks and caching."""

from __future__ import annotations

import pytest

from compat_gateway.config import CacheConfig
from compat_gateway.errors import UpstreamFailureError, UpstreamTimeoutError
from compat_gateway.services.cache import CacheGateway, CacheKinds
from compat_gateway.services.lookups import LookupService, is_public_address
from compat_gateway.services.upstream.static import (
    StaticCarrierDirectory,
    StaticDeviceInspector,
    currency_for,
)
from tests.fakes import (
    FakeCarrierDirectory,
    FakeDeviceInspector,
    FakeIspLocator,
    fake_collaborators,
)


def _service(cache_store, clock, **overrides) -> LookupService:
    return LookupService(
        CacheGateway(cache_store, compute_timeout=0.05, clock=clock),
        fake_collaborators(**overrides),
        CacheKinds.from_config(CacheConfig()),
    )


class TestCarriers:
    async def test_cached_per_country(self, cache_store, clock):
        directory = FakeCarrierDirectory()
        service = _service(cache_store, clock, carriers=directory)

        first = await service.carriers("USA")
        second = await service.carriers("United States")

        assert first.status_code == 200
        assert first.body["success"] is True
        assert first.body["cached"] is False
        assert second.body["cached"] is True
        assert directory.calls == ["USA"]

    async def test_upstream_failure_returns_default_carrier(self, cache_store, clock):
        directory = FakeCarrierDirectory(error=UpstreamFailureError("down"))
        service = _service(cache_store, clock, carriers=directory)

        result = await service.carriers("USA")

        assert result.status_code == 502
        assert result.body["success"] is False
        assert [c["name"] for c in result.body["carriers"]] == ["AT&T"]
        assert await cache_store.count() == 0

    async def test_timeout_returns_default_carrier(self, cache_store, clock):
        service = _service(cache_store, clock, carriers=FakeCarrierDirectory(delay=1.0))

        result = await service.carriers("USA")

        assert result.status_code == 502
        assert result.body["error"] == "upstream_timeout"


class TestIsp:
    @pytest.mark.parametrize("address", ["127.0.0.1", "10.0.0.8", "192.168.1.1", "::1", "bogus"])
    async def test_private_addresses_skip_lookup(self, cache_store, clock, address):
        locator = FakeIspLocator()
        service = _service(cache_store, clock, isp=locator)

        result = await service.isp(address)

        assert result.body["isp"] == "Unknown ISP"
        assert locator.calls == []

    async def test_public_address_cached(self, cache_store, clock):
        locator = FakeIspLocator("Example Fiber")
        service = _service(cache_store, clock, isp=locator)

        first = await service.isp("8.8.8.8")
        second = await service.isp("8.8.8.8")

        assert first.body["isp"] == "Example Fiber"
        assert first.body["city"] == "Austin"
        assert second.body["cached"] is True
        assert len(locator.calls) == 1

    async def test_unknown_provider_not_cached(self, cache_store, clock):
        locator = FakeIspLocator("Unknown ISP")
        service = _service(cache_store, clock, isp=locator)

        await service.isp("8.8.8.8")
        result = await service.isp("8.8.8.8")

        assert result.body["isp"] == "Unknown ISP"
        assert len(locator.calls) == 2
        assert await cache_store.count() == 0

    async def test_failure_degrades_to_unknown(self, cache_store, clock):
        service = _service(
            cache_store, clock, isp=FakeIspLocator(error=UpstreamTimeoutError())
        )

        result = await service.isp("8.8.8.8")

        assert result.status_code == 200
        assert result.body["isp"] == "Unknown ISP"


class TestVoiceAndDevices:
    async def test_voice_cached(self, cache_store, clock):
        service = _service(cache_store, clock)

        first = await service.voice("Hello there", "alloy")
        second = await service.voice("hello  there", "alloy")

        assert first.body["contentType"] == "audio/wav"
        assert second.body["cached"] is True

    async def test_voice_unconfigured(self, cache_store, clock):
        service = _service(cache_store, clock, voice=None)

        with pytest.raises(UpstreamFailureError):
            await service.voice("Hello", "alloy")

    async def test_check_device_defaults_network(self, cache_store, clock):
        service = _service(cache_store, clock)

        result = await service.check_device("356938035643809")

        assert result.body["network"] == "AT&T"
        assert result.body["location"] == "unknown"
        assert result.body["device"]["make"] == "Google"
        assert result.body["esimSupport"] is True

    async def test_check_device_unexpected_error(self, cache_store, clock):
        service = _service(
            cache_store, clock, devices=FakeDeviceInspector(error=KeyError("tac"))
        )

        with pytest.raises(UpstreamFailureError):
            await service.check_device("356938035643809")


class TestStaticCollaborators:
    async def test_static_carriers_by_country(self):
        directory = StaticCarrierDirectory()

        us = await directory.top_carriers("Austin, TX, USA")
        elsewhere = await directory.top_carriers("Atlantis")

        assert len(us["carriers"]) > 1
        assert [c["name"] for c in elsewhere["carriers"]] == ["AT&T"]

    async def test_static_device_by_tac(self):
        device = await StaticDeviceInspector().inspect("355965240000000", "Verizon")

        assert device["model"] == "Pixel 8"
        assert device["tac"] == "35596524"

    def test_currency_for(self):
        assert currency_for("uk") == "GBP"
        assert currency_for("Atlantis") == "USD"


def test_is_public_address():
    assert is_public_address("8.8.8.8")
    assert not is_public_address("172.16.0.1")

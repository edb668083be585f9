import pytest

from common.errors import ConfigurationError, ProviderError
from monitoring.models import Location
from providers.fake_providers import FakeRouteProvider
from providers.real_providers import GoogleDirectionsProvider
from providers.registry import get_providers, load_providers, reload_providers

WESTSIDE = Location(34.0689, -118.4452)
DOWNTOWN_LA = Location(34.0522, -118.2437)
CAPITOL_HILL = Location(47.6253, -122.3222)
BALLARD = Location(47.6677, -122.3847)


@pytest.fixture(autouse=True)
def _demo_mode(monkeypatch):
    monkeypatch.setenv("COMMUTE_MODE", "demo")
    reload_providers()
    yield
    reload_providers("demo")


def test_demo_mode_uses_fakes():
    providers = get_providers()
    assert isinstance(providers.routes, FakeRouteProvider)


def test_cached_until_reload():
    assert get_providers() is get_providers()
    assert reload_providers() is not None


@pytest.mark.asyncio
async def test_fixture_profile_cycles():
    routes = FakeRouteProvider()
    readings = [(await routes.query(WESTSIDE, DOWNTOWN_LA)).live_duration for _ in range(5)]
    assert readings == [1550, 1950, 2100, 1600, 1550]


@pytest.mark.asyncio
async def test_routes_matched_by_coordinates():
    routes = FakeRouteProvider()
    result = await routes.query(CAPITOL_HILL, BALLARD)
    assert result.free_flow_duration == 1020
    assert result.distance == 9800
    assert result.live_duration == 1061


@pytest.mark.asyncio
async def test_unknown_route_falls_back_to_first_fixture():
    routes = FakeRouteProvider()
    result = await routes.query(Location(0.0, 0.0), Location(1.0, 1.0))
    assert result.free_flow_duration == 1500


@pytest.mark.asyncio
async def test_empty_fixture_raises():
    routes = FakeRouteProvider()
    routes.data = {"routes": []}
    with pytest.raises(ProviderError):
        await routes.query(WESTSIDE, DOWNTOWN_LA)


def test_prod_mode_switch(monkeypatch):
    monkeypatch.setenv("COMMUTE_MODE", "prod")
    monkeypatch.setenv("GOOGLE_MAPS_API_KEY", "test-key")
    reload_providers()
    providers = get_providers()
    assert isinstance(providers.routes, GoogleDirectionsProvider)
    assert providers.routes.api_key == "test-key"


def test_prod_mode_requires_api_key(monkeypatch):
    monkeypatch.setenv("COMMUTE_MODE", "prod")
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    with pytest.raises(ConfigurationError):
        reload_providers()


def test_explicit_mode_overrides_environment(monkeypatch):
    monkeypatch.setenv("COMMUTE_MODE", "prod")
    assert isinstance(load_providers("test").routes, FakeRouteProvider)


def test_configured_api_key_used_without_environment(monkeypatch):
    monkeypatch.delenv("GOOGLE_MAPS_API_KEY", raising=False)
    providers = load_providers("prod", api_key="from-settings")
    assert isinstance(providers.routes, GoogleDirectionsProvider)
    assert providers.routes.api_key == "from-settings"


@pytest.mark.asyncio
async def test_each_origin_gets_its_own_cycle():
    routes = FakeRouteProvider()
    elsewhere = Location(34.1000, -118.3000)

    westside = [(await routes.query(WESTSIDE, DOWNTOWN_LA)).live_duration for _ in range(2)]
    fallback = [(await routes.query(elsewhere, DOWNTOWN_LA)).live_duration for _ in range(2)]

    assert westside == [1550, 1950]
    assert fallback == [1550, 1950]

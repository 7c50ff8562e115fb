"""Tests for current location acquisition."""

import pytest
import respx
from conftest import NOMINATIM_REVERSE, FakeClock, StubGeolocator
from httpx import Response

from meteo_cache.config import Settings
from meteo_cache.services.cache import MemoryDurableStore, TTLStore
from meteo_cache.services.engine import WeatherEngine
from meteo_cache.services.errors import LocationsExhausted


class TestLocationService:
    """Tests for LocationService."""

    @pytest.mark.asyncio
    async def test_denied_falls_back_to_most_recent(self, engine: WeatherEngine) -> None:
        """Test a denied fix returns the most recent saved location."""
        location = await engine.get_current_location()

        assert location.name == "San Jose, Nueva Ecija"
        assert location.is_current_location is False

    @respx.mock
    @pytest.mark.asyncio
    async def test_fix_is_resolved_and_saved(
        self, engine: WeatherEngine, settings: Settings, geolocator: StubGeolocator
    ) -> None:
        """Test a fix is named, flagged current and saved first."""
        geolocator.fix = (15.4235, 120.9391)
        respx.get(settings.nominatim_url).mock(return_value=Response(200, json=NOMINATIM_REVERSE))

        location = await engine.get_current_location()

        assert location.name == "Santa Rosa, Nueva Ecija, Philippines"
        assert location.is_current_location is True
        assert (location.lat, location.lon) == (15.4235, 120.9391)
        assert engine.get_saved_locations_list()[0] == location

    @respx.mock
    @pytest.mark.asyncio
    async def test_fresh_current_location_is_reused(
        self,
        engine: WeatherEngine,
        settings: Settings,
        geolocator: StubGeolocator,
        clock: FakeClock,
    ) -> None:
        """Test a current location younger than five minutes skips geolocation."""
        geolocator.fix = (15.4235, 120.9391)
        respx.get(settings.nominatim_url).mock(return_value=Response(200, json=NOMINATIM_REVERSE))

        await engine.get_current_location()
        clock.advance(minutes=4)
        await engine.get_current_location()
        assert geolocator.calls == 1

        clock.advance(minutes=2)
        await engine.get_current_location()
        assert geolocator.calls == 2

    @respx.mock
    @pytest.mark.asyncio
    async def test_use_cache_false_always_locates(
        self, engine: WeatherEngine, settings: Settings, geolocator: StubGeolocator
    ) -> None:
        """Test bypassing the saved current location."""
        geolocator.fix = (15.4235, 120.9391)
        respx.get(settings.nominatim_url).mock(return_value=Response(200, json=NOMINATIM_REVERSE))

        await engine.get_current_location()
        await engine.get_current_location(use_cache=False)

        assert geolocator.calls == 2

    @pytest.mark.asyncio
    async def test_total_acquisition_without_cache(
        self, settings: Settings, clock: FakeClock
    ) -> None:
        """Test a failing geolocator on a fresh store still yields the first default."""
        geolocator = StubGeolocator(fix=None)
        store = TTLStore(settings, MemoryDurableStore(), clock)
        engine = WeatherEngine.build(settings, store=store, geolocator=geolocator)

        location = await engine.get_current_location(use_cache=False)

        assert geolocator.calls == 1
        assert location.name == settings.default_locations[0].name
        assert (location.lat, location.lon) == (
            settings.default_locations[0].lat,
            settings.default_locations[0].lon,
        )
        assert location.is_current_location is False

    @pytest.mark.asyncio
    async def test_timeout_falls_back(
        self, settings: Settings, store: TTLStore, clock: FakeClock
    ) -> None:
        """Test a hanging geolocator is abandoned after the timeout."""
        geolocator = StubGeolocator(fix=(15.4235, 120.9391), delay=5.0, clock=clock)
        engine = WeatherEngine.build(settings, store=store, geolocator=geolocator)

        location = await engine.get_current_location()

        assert location.name == "San Jose, Nueva Ecija"
        assert location.is_current_location is False

    @respx.mock
    @pytest.mark.asyncio
    async def test_fallback_clears_current_flag(
        self,
        engine: WeatherEngine,
        settings: Settings,
        geolocator: StubGeolocator,
        clock: FakeClock,
    ) -> None:
        """Test the last live fix is returned as not current once geolocation fails."""
        geolocator.fix = (15.4235, 120.9391)
        respx.get(settings.nominatim_url).mock(return_value=Response(200, json=NOMINATIM_REVERSE))
        await engine.get_current_location()

        geolocator.fix = None
        clock.advance(minutes=10)
        location = await engine.get_current_location()

        assert location.name == "Santa Rosa, Nueva Ecija, Philippines"
        assert location.is_current_location is False

    @pytest.mark.asyncio
    async def test_no_locations_left(
        self, store: TTLStore, geolocator: StubGeolocator
    ) -> None:
        """Test exhaustion when geolocation fails and nothing is saved."""
        settings = Settings(cache_dir=None, geolocation_url="", default_locations=[])
        engine = WeatherEngine.build(settings, store=store, geolocator=geolocator)

        with pytest.raises(LocationsExhausted):
            await engine.get_current_location()

    @respx.mock
    @pytest.mark.asyncio
    async def test_add_new_location(self, engine: WeatherEngine, settings: Settings) -> None:
        """Test saving a location with and without a name override."""
        respx.get(settings.nominatim_url).mock(return_value=Response(200, json=NOMINATIM_REVERSE))

        added = await engine.add_new_location(15.4235, 120.9391)
        renamed = await engine.add_new_location(15.4236, 120.9391, "Rice field")

        assert added.name == "Santa Rosa, Nueva Ecija, Philippines"
        assert renamed.name == "Rice field"
        assert (renamed.lat, renamed.lon) == (15.4235, 120.9391)
        assert len(engine.get_saved_locations_list()) == 4

    @respx.mock
    @pytest.mark.asyncio
    async def test_remove_location(self, engine: WeatherEngine, settings: Settings) -> None:
        """Test removing a saved location by index."""
        respx.get(settings.nominatim_url).mock(return_value=Response(200, json=NOMINATIM_REVERSE))
        await engine.add_new_location(15.4235, 120.9391)

        assert engine.remove_location(0) is True
        assert engine.remove_location(0) is False
        assert len(engine.get_saved_locations_list()) == 3

"""Test fixtures."""

import asyncio
import random
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from meteo_cache.api.schemas import LocationRecord, LocationRef, Source, WeatherSnapshot
from meteo_cache.config import Settings
from meteo_cache.main import create_app
from meteo_cache.services.cache import MemoryDurableStore, TTLStore
from meteo_cache.services.conditions import Condition
from meteo_cache.services.engine import WeatherEngine
from meteo_cache.services.geolocation import GeoFix, GeolocationError
from meteo_cache.services.registry import LocationRegistry

# 10:00 in Manila, dry season
START = datetime(2024, 3, 10, 2, 0, tzinfo=UTC)

OPEN_METEO_CURRENT = {
    "latitude": 15.0,
    "longitude": 120.0,
    "timezone": "Asia/Manila",
    "current": {
        "temperature_2m": 30.0,
        "weather_code": 0,
        "wind_speed_10m": 10.0,
    },
}

NOMINATIM_REVERSE = {
    "display_name": "Santa Rosa, Nueva Ecija, Central Luzon, Philippines",
    "address": {
        "town": "Santa Rosa",
        "state": "Nueva Ecija",
        "region": "Central Luzon",
        "country": "Philippines",
    },
}


class FakeClock:
    """Manually advanced clock returning aware UTC datetimes."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class StubGeolocator:
    """Geolocator returning a fixed fix, raising, or hanging."""

    def __init__(
        self,
        fix: tuple[float, float] | None = None,
        delay: float = 0.0,
        clock: FakeClock | None = None,
    ) -> None:
        self.fix = fix
        self.delay = delay
        self.clock = clock or FakeClock()
        self.calls = 0

    async def locate(self, maximum_age: timedelta) -> GeoFix:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fix is None:
            raise GeolocationError("Permission denied")
        return GeoFix(lat=self.fix[0], lon=self.fix[1], accuracy_m=10.0, timestamp=self.clock())


def make_snapshot(clock: FakeClock, **overrides: object) -> WeatherSnapshot:
    """Build a weather snapshot for cache tests."""
    fields: dict[str, object] = {
        "temperature": 30,
        "feels_like": 33,
        "condition": Condition.CLEAR,
        "condition_label": "Clear",
        "description": "Clear skies, perfect for farm work",
        "humidity": 65,
        "wind_speed": 12,
        "wind_direction": 90,
        "pressure": 1013,
        "precipitation": 0.0,
        "cloud_cover": 10,
        "visibility": 10.0,
        "sunrise": "06:00",
        "sunset": "18:00",
        "uv_index": 5.0,
        "location": LocationRef(
            name="Santa Rosa, Nueva Ecija, Philippines",
            lat=15.42,
            lon=120.94,
            country="Philippines",
            timezone="Asia/Manila",
        ),
        "timestamp": clock(),
        "source": Source.PRIMARY,
    }
    fields.update(overrides)
    return WeatherSnapshot(**fields)


def make_record(name: str, lat: float, lon: float, clock: FakeClock) -> LocationRecord:
    """Build a saved location record."""
    return LocationRecord(
        name=name,
        lat=lat,
        lon=lon,
        country="Philippines",
        timezone="Asia/Manila",
        last_used=clock(),
    )


@pytest.fixture
def settings() -> Settings:
    """Create test settings."""
    return Settings(
        upstream_timeout_seconds=1.0,
        cache_dir=None,
        geolocation_url="",
        geolocation_timeout_seconds=0.2,
        precache_on_startup=False,
        precache_stagger_seconds=0.0,
        log_level="DEBUG",
        log_format="text",
    )


@pytest.fixture
def clock() -> FakeClock:
    """Create a fake clock."""
    return FakeClock()


@pytest.fixture
def durable() -> MemoryDurableStore:
    """Create an in-memory durable layer."""
    return MemoryDurableStore()


@pytest.fixture
def store(settings: Settings, durable: MemoryDurableStore, clock: FakeClock) -> TTLStore:
    """Create test TTL store."""
    return TTLStore(settings, durable, clock)


@pytest.fixture
def registry(store: TTLStore, settings: Settings) -> LocationRegistry:
    """Create test location registry."""
    return LocationRegistry(store, settings)


@pytest.fixture
def geolocator(clock: FakeClock) -> StubGeolocator:
    """Create a geolocator that is denied by default."""
    return StubGeolocator(clock=clock)


@pytest.fixture
def engine(settings: Settings, store: TTLStore, geolocator: StubGeolocator) -> WeatherEngine:
    """Create test engine."""
    return WeatherEngine.build(settings, store=store, geolocator=geolocator, rng=random.Random(7))


@pytest.fixture
def app(settings: Settings, engine: WeatherEngine):
    """Create test application."""
    return create_app(settings, engine)


@pytest.fixture
def client(app) -> TestClient:
    """Create test client."""
    return TestClient(app)

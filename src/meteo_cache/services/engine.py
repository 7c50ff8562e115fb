"""Engine facade wiring the store and services together."""

from __future__ import annotations

import random

from meteo_cache.api.schemas import (
    FarmRecommendations,
    ForecastSeries,
    LocationRecord,
    WeatherSnapshot,
)
from meteo_cache.config import Settings
from meteo_cache.services.advisory import farm_recommendations
from meteo_cache.services.cache import Clock, TTLStore, utcnow
from meteo_cache.services.conditions import ColorScheme, Condition, color_scheme, weather_icon
from meteo_cache.services.forecast import ForecastService
from meteo_cache.services.geocoder import ReverseGeocoder
from meteo_cache.services.geolocation import Geolocator, create_geolocator
from meteo_cache.services.location import LocationService
from meteo_cache.services.open_meteo import OpenMeteoClient
from meteo_cache.services.openweather import OpenWeatherClient
from meteo_cache.services.precache import PreCacheScheduler
from meteo_cache.services.registry import LocationRegistry
from meteo_cache.services.synthetic import SyntheticWeather
from meteo_cache.services.weather import WeatherService


class WeatherEngine:
    """Single entry point for weather, forecast and location operations.

    Build one per process with :meth:`build` and pass it to consumers.
    """

    def __init__(
        self,
        settings: Settings,
        store: TTLStore,
        registry: LocationRegistry,
        geocoder: ReverseGeocoder,
        weather: WeatherService,
        forecast: ForecastService,
        location: LocationService,
        scheduler: PreCacheScheduler,
    ) -> None:
        self.settings = settings
        self.store = store
        self.registry = registry
        self.geocoder = geocoder
        self.weather = weather
        self.forecast = forecast
        self.location = location
        self.scheduler = scheduler

    @classmethod
    def build(
        cls,
        settings: Settings,
        store: TTLStore | None = None,
        geolocator: Geolocator | None = None,
        clock: Clock = utcnow,
        rng: random.Random | None = None,
    ) -> WeatherEngine:
        """Construct the store and every service from settings."""
        if store is None:
            store = TTLStore.from_settings(settings, clock)
        clock = store.clock
        registry = LocationRegistry(store, settings)
        geocoder = ReverseGeocoder(store, settings)
        primary = OpenMeteoClient(settings)
        secondary = OpenWeatherClient(settings)
        synthetic = SyntheticWeather(settings, clock, rng)

        weather = WeatherService(
            store, geocoder, registry, primary, synthetic, settings, secondary=secondary
        )
        forecast = ForecastService(store, primary, synthetic, settings)
        location = LocationService(
            registry,
            geocoder,
            geolocator if geolocator is not None else create_geolocator(settings, clock),
            settings,
        )
        scheduler = PreCacheScheduler(
            weather, settings.default_locations, settings.precache_stagger_seconds
        )
        return cls(settings, store, registry, geocoder, weather, forecast, location, scheduler)

    async def get_weather_for_coordinates(
        self, lat: float, lon: float, force_refresh: bool = False
    ) -> WeatherSnapshot:
        return await self.weather.get_weather(lat, lon, force_refresh)

    async def get_forecast_for_coordinates(
        self, lat: float, lon: float, days: int | None = None
    ) -> ForecastSeries:
        return await self.forecast.get_forecast(
            lat, lon, days if days is not None else self.settings.default_forecast_days
        )

    async def get_current_location(self, use_cache: bool = True) -> LocationRecord:
        return await self.location.acquire(use_cache)

    async def get_weather_for_current_location(
        self, force_refresh: bool = False
    ) -> WeatherSnapshot:
        location = await self.location.acquire()
        return await self.weather.get_weather_for_location(location, force_refresh)

    async def get_forecast_for_current_location(self, days: int | None = None) -> ForecastSeries:
        location = await self.location.acquire()
        return await self.get_forecast_for_coordinates(location.lat, location.lon, days)

    async def get_weather_for_saved_location(
        self, index: int = 0, force_refresh: bool = False
    ) -> WeatherSnapshot:
        """Weather for a saved location; out-of-range indexes use the most recent one."""
        locations = self.registry.list()
        if not locations:
            return await self.get_weather_for_current_location(force_refresh)
        if not 0 <= index < len(locations):
            index = 0
        location = locations[index]
        return await self.weather.get_weather(location.lat, location.lon, force_refresh)

    def get_saved_locations_list(self) -> list[LocationRecord]:
        return self.registry.list()

    async def add_new_location(
        self, lat: float, lon: float, name: str | None = None
    ) -> LocationRecord:
        """Resolve and save a location, optionally overriding its display name."""
        place = await self.geocoder.resolve(lat, lon)
        record = LocationRecord(
            name=name or place.name,
            lat=lat,
            lon=lon,
            city=place.city,
            province=place.province,
            region=place.region,
            country=place.country,
            timezone=self.settings.home_timezone,
            is_current_location=False,
            last_used=self.store.clock(),
        )
        return self.registry.upsert(record)

    def remove_location(self, index: int) -> bool:
        return self.registry.remove(index)

    def pre_cache_default_locations(self) -> None:
        """Start background warm-up fetches without waiting for them."""
        self.scheduler.start()

    @staticmethod
    def get_weather_icon(condition: Condition | int | str) -> str:
        return weather_icon(condition)

    @staticmethod
    def get_weather_color_scheme(condition: Condition | int | str) -> ColorScheme:
        return color_scheme(condition)

    @staticmethod
    def get_farm_recommendations(weather: WeatherSnapshot) -> FarmRecommendations:
        return farm_recommendations(weather)

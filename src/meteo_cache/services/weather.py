"""Weather service orchestrating cache, providers and fallbacks."""

import structlog
from prometheus_client import Counter

from meteo_cache.api.schemas import (
    LocationRecord,
    LocationRef,
    PlaceDescription,
    Source,
    WeatherSnapshot,
)
from meteo_cache.config import Settings
from meteo_cache.services.cache import Category, TTLStore
from meteo_cache.services.conditions import estimate_cloud_cover
from meteo_cache.services.derived import (
    DEFAULT_HUMIDITY,
    DEFAULT_PRESSURE_HPA,
    DEFAULT_SUNRISE,
    DEFAULT_SUNSET,
    DEFAULT_UV_INDEX,
    DEFAULT_VISIBILITY_KM,
    CurrentConditions,
    feels_like,
    round_half_up,
)
from meteo_cache.services.errors import ProviderUnavailable
from meteo_cache.services.geo import location_key
from meteo_cache.services.geocoder import ReverseGeocoder
from meteo_cache.services.open_meteo import OpenMeteoClient
from meteo_cache.services.openweather import OpenWeatherClient
from meteo_cache.services.registry import LocationRegistry
from meteo_cache.services.synthetic import SyntheticWeather

logger = structlog.get_logger()

synthetic_fallbacks = Counter(
    "synthetic_fallbacks_total",
    "Results synthesized after every provider failed",
    ["kind"],
)


class WeatherService:
    """Service for fetching current weather with caching and fallbacks.

    Lookup order is the weather cache, the primary provider, the secondary
    provider when one is configured, and finally a synthetic snapshot. Each
    provider gets a single attempt per call; callers retry with
    ``force_refresh``.
    """

    def __init__(
        self,
        store: TTLStore,
        geocoder: ReverseGeocoder,
        registry: LocationRegistry,
        primary: OpenMeteoClient,
        synthetic: SyntheticWeather,
        settings: Settings,
        secondary: OpenWeatherClient | None = None,
    ) -> None:
        """Initialize service with its collaborators."""
        self._store = store
        self._geocoder = geocoder
        self._registry = registry
        self._primary = primary
        self._secondary = secondary
        self._synthetic = synthetic
        self._clock = store.clock
        self._home_timezone = settings.home_timezone

    async def get_weather(
        self, lat: float, lon: float, force_refresh: bool = False
    ) -> WeatherSnapshot:
        """Get current weather for coordinates.

        Args:
            lat: Latitude
            lon: Longitude
            force_refresh: Skip the cache and query providers

        Returns:
            Weather snapshot tagged with its source
        """
        key = location_key(lat, lon)
        if not force_refresh:
            cached = self._cached(key, lat, lon)
            if cached is not None:
                return cached

        place = await self._place(key, lat, lon)
        return await self._fetch(key, lat, lon, place, is_current=False)

    async def get_weather_for_location(
        self, location: LocationRecord, force_refresh: bool = False
    ) -> WeatherSnapshot:
        """Get current weather for an already resolved location.

        Provider results for a live current-location fix are tagged
        ``geolocation-derived``.
        """
        key = location_key(location.lat, location.lon)
        if not force_refresh:
            cached = self._cached(key, location.lat, location.lon)
            if cached is not None:
                return cached

        place = PlaceDescription(
            name=location.name,
            city=location.city,
            province=location.province,
            region=location.region,
            country=location.country,
        )
        return await self._fetch(
            key,
            location.lat,
            location.lon,
            place,
            is_current=location.is_current_location,
            timezone=location.timezone,
        )

    def has_cached(self, lat: float, lon: float) -> bool:
        return self._store.get(Category.WEATHER, location_key(lat, lon)) is not None

    def _cached(self, key: str, lat: float, lon: float) -> WeatherSnapshot | None:
        cached: WeatherSnapshot | None = self._store.get(Category.WEATHER, key)
        if cached is not None:
            logger.info("Cache hit for weather request", lat=lat, lon=lon, cache_hit=True)
        return cached

    async def _place(self, key: str, lat: float, lon: float) -> PlaceDescription:
        cached: PlaceDescription | None = self._store.get(Category.LOCATION, key)
        if cached is not None:
            return cached
        place = await self._geocoder.resolve(lat, lon)
        if place.resolved:
            self._store.put(Category.LOCATION, key, place)
        return place

    async def _fetch(
        self,
        key: str,
        lat: float,
        lon: float,
        place: PlaceDescription,
        is_current: bool,
        timezone: str | None = None,
    ) -> WeatherSnapshot:
        logger.info("Cache miss, fetching from upstream", lat=lat, lon=lon, cache_hit=False)

        reading, source = await self._query_providers(lat, lon)

        if reading is None:
            logger.warning("All weather providers failed, using synthetic data", lat=lat, lon=lon)
            synthetic_fallbacks.labels(kind="weather").inc()
            location = self._location_ref(place, lat, lon, timezone)
            snapshot = self._synthetic.snapshot(lat, lon, location)
            self._store.put(Category.WEATHER, key, snapshot)
            return snapshot

        if is_current and source is Source.PRIMARY:
            source = Source.GEOLOCATION

        location = self._location_ref(place, lat, lon, timezone or reading.timezone)
        snapshot = self._build_snapshot(reading, location, source)
        self._store.put(Category.WEATHER, key, snapshot)

        self._registry.upsert(
            LocationRecord(
                **location.model_dump(),
                is_current_location=is_current,
                last_used=self._clock(),
            )
        )
        return snapshot

    async def _query_providers(
        self, lat: float, lon: float
    ) -> tuple[CurrentConditions | None, Source]:
        try:
            return await self._primary.get_current_conditions(lat, lon), Source.PRIMARY
        except ProviderUnavailable as e:
            logger.warning("Primary weather provider failed", lat=lat, lon=lon, error=str(e))

        if self._secondary is not None and self._secondary.enabled:
            try:
                return await self._secondary.get_current_conditions(lat, lon), Source.SECONDARY
            except ProviderUnavailable as e:
                logger.warning("Secondary weather provider failed", lat=lat, lon=lon, error=str(e))

        return None, Source.SYNTHETIC

    def _location_ref(
        self, place: PlaceDescription, lat: float, lon: float, timezone: str | None
    ) -> LocationRef:
        return LocationRef(
            name=place.name,
            lat=lat,
            lon=lon,
            city=place.city,
            province=place.province,
            region=place.region,
            country=place.country,
            timezone=timezone or self._home_timezone,
        )

    def _build_snapshot(
        self, reading: CurrentConditions, location: LocationRef, source: Source
    ) -> WeatherSnapshot:
        apparent = feels_like(reading.temperature_c, reading.humidity_pct, reading.wind_speed_ms)
        humidity = reading.humidity_pct if reading.humidity_pct is not None else DEFAULT_HUMIDITY
        cloud_cover = (
            reading.cloud_cover_pct
            if reading.cloud_cover_pct is not None
            else estimate_cloud_cover(reading.condition)
        )

        return WeatherSnapshot(
            temperature=round_half_up(reading.temperature_c),
            feels_like=round_half_up(apparent),
            condition=reading.condition,
            condition_label=reading.condition.label,
            description=reading.condition.info.description,
            humidity=round_half_up(humidity),
            wind_speed=round_half_up(reading.wind_speed_kmh),
            wind_direction=round_half_up(reading.wind_direction_deg or 0),
            pressure=round_half_up(reading.pressure_hpa or DEFAULT_PRESSURE_HPA),
            precipitation=reading.precipitation_mm or 0.0,
            cloud_cover=round_half_up(cloud_cover),
            visibility=(
                reading.visibility_km
                if reading.visibility_km is not None
                else DEFAULT_VISIBILITY_KM
            ),
            sunrise=reading.sunrise or DEFAULT_SUNRISE,
            sunset=reading.sunset or DEFAULT_SUNSET,
            uv_index=reading.uv_index if reading.uv_index is not None else DEFAULT_UV_INDEX,
            location=location,
            timestamp=self._clock(),
            source=source,
        )

"""Forecast service orchestrating cache, provider and synthetic fallback."""

from datetime import timedelta

import structlog

from meteo_cache.api.schemas import ForecastDay, ForecastSeries, Source
from meteo_cache.config import Settings
from meteo_cache.services.cache import Category, TTLStore
from meteo_cache.services.derived import (
    DEFAULT_HUMIDITY,
    DEFAULT_SUNRISE,
    DEFAULT_SUNSET,
    DEFAULT_UV_INDEX,
    DailyForecast,
    round_half_up,
)
from meteo_cache.services.errors import ProviderUnavailable
from meteo_cache.services.geo import location_key
from meteo_cache.services.open_meteo import OpenMeteoClient
from meteo_cache.services.synthetic import SyntheticWeather
from meteo_cache.services.weather import synthetic_fallbacks

logger = structlog.get_logger()


class ForecastService:
    """Service for fetching daily forecasts with caching."""

    def __init__(
        self,
        store: TTLStore,
        primary: OpenMeteoClient,
        synthetic: SyntheticWeather,
        settings: Settings,
    ) -> None:
        """Initialize service with its collaborators."""
        self._store = store
        self._primary = primary
        self._synthetic = synthetic
        self._clock = store.clock
        self._max_days = settings.max_forecast_days

    async def get_forecast(self, lat: float, lon: float, days: int = 7) -> ForecastSeries:
        """Get a daily forecast of exactly ``days`` consecutive dates.

        Raises:
            ValueError: If ``days`` is outside 1..max_forecast_days
        """
        if not 1 <= days <= self._max_days:
            raise ValueError(f"days must be between 1 and {self._max_days}, got {days}")

        key = f"{location_key(lat, lon)}_{days}d"
        cached: ForecastSeries | None = self._store.get(Category.FORECAST, key)
        if cached is not None:
            logger.info("Cache hit for forecast request", lat=lat, lon=lon, days=days)
            return cached

        logger.info("Cache miss, fetching forecast from upstream", lat=lat, lon=lon, days=days)
        try:
            daily = await self._primary.get_daily_forecast(lat, lon, days)
            series = ForecastSeries(
                days=self._to_days(daily, days),
                source=Source.PRIMARY,
                timestamp=self._clock(),
            )
        except ProviderUnavailable as e:
            logger.warning(
                "Forecast provider failed, using synthetic data", lat=lat, lon=lon, error=str(e)
            )
            synthetic_fallbacks.labels(kind="forecast").inc()
            series = self._synthetic.forecast(days)

        self._store.put(Category.FORECAST, key, series)
        return series

    def _to_days(self, daily: list[DailyForecast], days: int) -> list[ForecastDay]:
        """Convert provider days, rejecting short or gapped series.

        Raises:
            ProviderUnavailable: If the series does not cover ``days`` consecutive dates
        """
        if len(daily) < days:
            raise ProviderUnavailable(f"Forecast has {len(daily)} days, expected {days}")
        daily = daily[:days]
        for previous, current in zip(daily, daily[1:]):
            if current.day - previous.day != timedelta(days=1):
                raise ProviderUnavailable(f"Forecast dates are not contiguous at {current.day}")

        return [
            ForecastDay(
                date=day.day,
                max_temp=round_half_up(day.max_temp_c),
                min_temp=round_half_up(day.min_temp_c),
                condition=day.condition,
                condition_label=day.condition.label,
                precipitation=day.precipitation_mm,
                precipitation_probability=round_half_up(day.precipitation_probability),
                sunrise=day.sunrise or DEFAULT_SUNRISE,
                sunset=day.sunset or DEFAULT_SUNSET,
                uv_index=day.uv_index if day.uv_index is not None else DEFAULT_UV_INDEX,
                wind_speed=round(day.wind_speed_kmh, 1),
                humidity=round_half_up(
                    day.humidity_pct if day.humidity_pct is not None else DEFAULT_HUMIDITY
                ),
            )
            for day in daily
        ]

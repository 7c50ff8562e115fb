"""Synthetic weather used when every provider has failed."""

import math
import random
from datetime import timedelta
from zoneinfo import ZoneInfo

from meteo_cache.api.schemas import (
    ForecastDay,
    ForecastSeries,
    LocationRef,
    Source,
    WeatherSnapshot,
)
from meteo_cache.config import Settings
from meteo_cache.services.cache import Clock, utcnow
from meteo_cache.services.conditions import Condition, estimate_cloud_cover
from meteo_cache.services.derived import (
    DEFAULT_PRESSURE_HPA,
    DEFAULT_SUNRISE,
    DEFAULT_SUNSET,
    MS_TO_KMH,
    feels_like,
    round_half_up,
)
from meteo_cache.services.geo import location_key

RAINY_SEASON_MONTHS = range(6, 12)
RAIN_PROBABILITY = 0.3
_FORECAST_CYCLE = (Condition.CLEAR, Condition.PARTLY_CLOUDY, Condition.OVERCAST)


class SyntheticWeather:
    """Plausible weather for the home region.

    Snapshots are deterministic for a location cell and local hour. Forecasts
    draw rain from ``rng`` so tests can stub the draw.
    """

    def __init__(
        self, settings: Settings, clock: Clock = utcnow, rng: random.Random | None = None
    ) -> None:
        self._tz = ZoneInfo(settings.home_timezone)
        self._lat_min = settings.home_lat_min
        self._lat_max = settings.home_lat_max
        self._clock = clock
        self._rng = rng or random.Random()

    def _in_home_region(self, lat: float) -> bool:
        return self._lat_min <= lat <= self._lat_max

    def snapshot(self, lat: float, lon: float, location: LocationRef) -> WeatherSnapshot:
        """Time-of-day and season aware reading for a coordinate."""
        now = self._clock()
        local = now.astimezone(self._tz)
        rng = random.Random(f"{location_key(lat, lon)}:{local:%Y-%m-%dT%H}")
        hour = local.hour
        daytime = 6 <= hour < 18

        if daytime:
            temperature = 28 + math.sin((hour - 6) / 12 * math.pi) * 5
            condition = Condition.PARTLY_CLOUDY if 11 < hour < 15 else Condition.CLEAR
        else:
            temperature = 23 + math.sin(((hour - 18) % 24) / 12 * math.pi) * 2
            condition = Condition.CLEAR

        precipitation = 0.0
        if self._in_home_region(lat) and local.month in RAINY_SEASON_MONTHS:
            if rng.random() > 0.6:
                condition = Condition.RAIN
                precipitation = round(0.5 + rng.random() * 5, 1)
                temperature -= 3
        elif rng.random() > 0.8:
            condition = Condition.PARTLY_CLOUDY

        if self._in_home_region(lat):
            if lat > 16:
                temperature -= 2
            elif lat < 14:
                temperature += 2

        humidity = 65 + round(rng.random() * 20)
        wind_kmh = 5 + round(rng.random() * 15)

        return WeatherSnapshot(
            temperature=round_half_up(temperature),
            feels_like=round_half_up(feels_like(temperature, humidity, wind_kmh / MS_TO_KMH)),
            condition=condition,
            condition_label=condition.label,
            description=condition.info.description,
            humidity=humidity,
            wind_speed=wind_kmh,
            wind_direction=90 + round(rng.random() * 180),
            pressure=DEFAULT_PRESSURE_HPA - 3 + round(rng.random() * 10),
            precipitation=precipitation,
            cloud_cover=estimate_cloud_cover(condition),
            visibility=float(8 + round(rng.random() * 12)),
            sunrise=DEFAULT_SUNRISE,
            sunset=DEFAULT_SUNSET,
            uv_index=float(5 + round(rng.random() * 5)) if daytime else 0.0,
            location=location,
            timestamp=now,
            source=Source.SYNTHETIC,
        )

    def forecast(self, days: int) -> ForecastSeries:
        """Smooth series starting today with an independent rain draw per day."""
        now = self._clock()
        today = now.astimezone(self._tz).date()
        forecast: list[ForecastDay] = []

        for i in range(days):
            variation = math.sin(i * 0.5) * 3
            will_rain = self._rng.random() < RAIN_PROBABILITY
            condition = Condition.RAIN if will_rain else _FORECAST_CYCLE[i % 3]
            max_temp = 28 + variation

            forecast.append(
                ForecastDay(
                    date=today + timedelta(days=i),
                    max_temp=round_half_up(max_temp),
                    min_temp=round_half_up(max_temp - 5),
                    condition=condition,
                    condition_label=condition.label,
                    precipitation=round(5.2 + self._rng.random() * 10, 1) if will_rain else 0.0,
                    precipitation_probability=(
                        70 + round(self._rng.random() * 30) if will_rain else 10
                    ),
                    sunrise=DEFAULT_SUNRISE,
                    sunset=DEFAULT_SUNSET,
                    uv_index=float(min(5 + i, 11)),
                    wind_speed=round(5 + self._rng.random() * 15, 1),
                    humidity=60 + round(self._rng.random() * 30),
                )
            )

        return ForecastSeries(days=forecast, source=Source.SYNTHETIC, timestamp=now)

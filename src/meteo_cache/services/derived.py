"""Provider-neutral readings and the fields derived from them."""

import math
from dataclasses import dataclass
from datetime import date

from meteo_cache.services.conditions import Condition

MS_TO_KMH = 3.6

HEAT_INDEX_MIN_C = 27.0
WIND_CHILL_MAX_C = 10.0
WIND_CHILL_MIN_MS = 1.34

DEFAULT_HUMIDITY = 65
DEFAULT_PRESSURE_HPA = 1013
DEFAULT_VISIBILITY_KM = 10.0
DEFAULT_UV_INDEX = 5.0
DEFAULT_SUNRISE = "06:00"
DEFAULT_SUNSET = "18:00"

# Heat index regression with Celsius coefficients
_HI = (
    -8.78469475556,
    1.61139411,
    2.33854883889,
    -0.14611605,
    -0.012308094,
    -0.0164248277778,
    0.002211732,
    0.00072546,
    -0.000003582,
)


@dataclass
class CurrentConditions:
    """Current conditions as reported by a provider, in metric units."""

    temperature_c: float
    condition: Condition
    wind_speed_ms: float
    wind_direction_deg: float | None = None
    humidity_pct: float | None = None
    precipitation_mm: float | None = None
    cloud_cover_pct: float | None = None
    pressure_hpa: float | None = None
    visibility_km: float | None = None
    sunrise: str | None = None
    sunset: str | None = None
    uv_index: float | None = None
    timezone: str | None = None

    @property
    def wind_speed_kmh(self) -> float:
        return self.wind_speed_ms * MS_TO_KMH


@dataclass
class DailyForecast:
    """One day of a provider forecast, in metric units."""

    day: date
    condition: Condition
    max_temp_c: float
    min_temp_c: float
    precipitation_mm: float
    precipitation_probability: float
    sunrise: str | None
    sunset: str | None
    uv_index: float | None
    wind_speed_kmh: float
    humidity_pct: float | None


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def clock_time(timestamp: str | None) -> str | None:
    """Extract ``HH:MM`` from an ISO local timestamp such as ``2024-06-01T05:27``."""
    if not timestamp or "T" not in timestamp:
        return None
    clock = timestamp.split("T", 1)[1][:5]
    return clock if len(clock) == 5 else None


def heat_index(temperature_c: float, humidity_pct: float) -> float:
    """Apparent temperature in hot, humid air."""
    t, r = temperature_c, humidity_pct
    c1, c2, c3, c4, c5, c6, c7, c8, c9 = _HI
    return (
        c1
        + c2 * t
        + c3 * r
        + c4 * t * r
        + c5 * t * t
        + c6 * r * r
        + c7 * t * t * r
        + c8 * t * r * r
        + c9 * t * t * r * r
    )


def wind_chill(temperature_c: float, wind_speed_kmh: float) -> float:
    """Apparent temperature in cold, windy air."""
    v = wind_speed_kmh**0.16
    return 13.12 + 0.6215 * temperature_c - 11.37 * v + 0.3965 * temperature_c * v


def feels_like(temperature_c: float, humidity_pct: float | None, wind_speed_ms: float) -> float:
    """Feels-like temperature from unrounded inputs.

    Heat index applies from 27 degC when humidity was measured, wind chill at
    or below 10 degC with wind above 1.34 m/s. Otherwise the air temperature.
    """
    if temperature_c >= HEAT_INDEX_MIN_C:
        if humidity_pct is None:
            return temperature_c
        return max(temperature_c, heat_index(temperature_c, humidity_pct))
    if temperature_c <= WIND_CHILL_MAX_C and wind_speed_ms > WIND_CHILL_MIN_MS:
        return min(temperature_c, wind_chill(temperature_c, wind_speed_ms * MS_TO_KMH))
    return temperature_c

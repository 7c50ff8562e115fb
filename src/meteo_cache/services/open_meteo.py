"""Open-Meteo API client."""

from datetime import date
from typing import Any

import httpx
from prometheus_client import Counter, Histogram

from meteo_cache.config import Settings
from meteo_cache.services.conditions import Condition
from meteo_cache.services.derived import CurrentConditions, DailyForecast, MS_TO_KMH, clock_time
from meteo_cache.services.errors import ProviderUnavailable


class OpenMeteoError(ProviderUnavailable):
    """Base exception for Open-Meteo client errors."""


class OpenMeteoTimeoutError(OpenMeteoError):
    """Raised when upstream request times out."""


class OpenMeteoAPIError(OpenMeteoError):
    """Raised when upstream returns an error."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


# Metrics
upstream_requests = Counter(
    "upstream_requests_total",
    "Total upstream API requests",
    ["endpoint", "status"],
)
upstream_duration = Histogram(
    "upstream_request_duration_seconds",
    "Upstream request duration in seconds",
    ["endpoint"],
    buckets=[0.05, 0.1, 0.25, 0.5, 0.75, 1.0, 2.5, 5.0],
)

CURRENT_FIELDS = (
    "temperature_2m",
    "relative_humidity_2m",
    "precipitation",
    "weather_code",
    "cloud_cover",
    "pressure_msl",
    "wind_speed_10m",
    "wind_direction_10m",
    "visibility",
)
CURRENT_DAILY_FIELDS = ("sunrise", "sunset", "uv_index_max", "precipitation_sum")
FORECAST_DAILY_FIELDS = (
    "weather_code",
    "temperature_2m_max",
    "temperature_2m_min",
    "precipitation_sum",
    "precipitation_probability_max",
    "sunrise",
    "sunset",
    "uv_index_max",
    "wind_speed_10m_max",
    "relative_humidity_2m_max",
)


def _first(values: Any) -> Any:
    if isinstance(values, list) and values:
        return values[0]
    return None


def _at(values: Any, index: int) -> Any:
    if not isinstance(values, list) or index >= len(values):
        return None
    return values[index]


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _number(series: dict[str, Any], field: str, index: int) -> float | None:
    return _optional_float(_at(series.get(field), index))


def _text(series: dict[str, Any], field: str, index: int) -> str | None:
    return _optional_str(_at(series.get(field), index))


class OpenMeteoClient:
    """HTTP client for Open-Meteo Forecast API.

    All wind speeds are requested in m/s and normalized to km/h where the
    returned readings expose them.
    """

    def __init__(self, settings: Settings) -> None:
        """Initialize client with settings."""
        self._base_url = settings.open_meteo_url
        self._timeout = settings.upstream_timeout_seconds

    async def get_current_conditions(self, lat: float, lon: float) -> CurrentConditions:
        """Fetch current conditions plus today's sunrise, sunset and UV maximum.

        Args:
            lat: Latitude (-90 to 90)
            lon: Longitude (-180 to 180)

        Returns:
            Parsed current conditions

        Raises:
            OpenMeteoTimeoutError: If request times out
            OpenMeteoAPIError: If upstream returns an error
            OpenMeteoError: If the payload is missing required fields
        """
        params: dict[str, str | float | int] = {
            "latitude": lat,
            "longitude": lon,
            "current": ",".join(CURRENT_FIELDS),
            "daily": ",".join(CURRENT_DAILY_FIELDS),
            "wind_speed_unit": "ms",
            "timezone": "auto",
            "forecast_days": 1,
        }
        data = await self._get("current", params)
        return self._parse_current(data)

    async def get_daily_forecast(self, lat: float, lon: float, days: int) -> list[DailyForecast]:
        """Fetch a daily forecast starting today.

        Raises:
            OpenMeteoTimeoutError: If request times out
            OpenMeteoAPIError: If upstream returns an error
            OpenMeteoError: If the payload is missing required fields
        """
        params: dict[str, str | float | int] = {
            "latitude": lat,
            "longitude": lon,
            "daily": ",".join(FORECAST_DAILY_FIELDS),
            "wind_speed_unit": "ms",
            "timezone": "auto",
            "forecast_days": days,
        }
        data = await self._get("forecast", params)
        return self._parse_forecast(data)

    async def _get(self, endpoint: str, params: dict[str, str | float | int]) -> dict[str, Any]:
        with upstream_duration.labels(endpoint=endpoint).time():
            try:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(self._base_url, params=params)

                if response.status_code != 200:
                    upstream_requests.labels(endpoint=endpoint, status="error").inc()
                    raise OpenMeteoAPIError(
                        f"Open-Meteo API returned {response.status_code}: {response.text}",
                        response.status_code,
                    )

                data = response.json()

            except httpx.TimeoutException as e:
                upstream_requests.labels(endpoint=endpoint, status="timeout").inc()
                raise OpenMeteoTimeoutError(
                    f"Open-Meteo API request timed out after {self._timeout}s"
                ) from e

            except httpx.RequestError as e:
                upstream_requests.labels(endpoint=endpoint, status="error").inc()
                raise OpenMeteoError(f"Open-Meteo API request failed: {e}") from e

            except ValueError as e:
                upstream_requests.labels(endpoint=endpoint, status="error").inc()
                raise OpenMeteoError("Open-Meteo API returned invalid JSON") from e

        if not isinstance(data, dict):
            upstream_requests.labels(endpoint=endpoint, status="error").inc()
            raise OpenMeteoError("Open-Meteo API returned an unexpected payload")

        upstream_requests.labels(endpoint=endpoint, status="success").inc()
        return data

    def _parse_current(self, data: dict[str, Any]) -> CurrentConditions:
        """Parse a current conditions response.

        Raises:
            OpenMeteoError: If required fields are missing from response
        """
        current = data.get("current")
        if not isinstance(current, dict):
            raise OpenMeteoError("Missing 'current' field in response")

        required = ("temperature_2m", "weather_code", "wind_speed_10m")
        if any(current.get(field) is None for field in required):
            raise OpenMeteoError("Missing required weather data in 'current' field")

        daily = data.get("daily")
        if daily is None:
            daily = {}
        elif not isinstance(daily, dict):
            raise OpenMeteoError("Malformed 'daily' field in response")

        try:
            visibility_m = _optional_float(current.get("visibility"))
            return CurrentConditions(
                temperature_c=float(current["temperature_2m"]),
                condition=Condition.from_code(current["weather_code"]),
                wind_speed_ms=float(current["wind_speed_10m"]),
                wind_direction_deg=_optional_float(current.get("wind_direction_10m")),
                humidity_pct=_optional_float(current.get("relative_humidity_2m")),
                precipitation_mm=_optional_float(current.get("precipitation")),
                cloud_cover_pct=_optional_float(current.get("cloud_cover")),
                pressure_hpa=_optional_float(current.get("pressure_msl")),
                visibility_km=visibility_m / 1000 if visibility_m is not None else None,
                sunrise=clock_time(_optional_str(_first(daily.get("sunrise")))),
                sunset=clock_time(_optional_str(_first(daily.get("sunset")))),
                uv_index=_optional_float(_first(daily.get("uv_index_max"))),
                timezone=_optional_str(data.get("timezone")),
            )
        except (TypeError, ValueError) as e:
            raise OpenMeteoError(f"Malformed 'current' field in response: {e}") from e

    def _parse_forecast(self, data: dict[str, Any]) -> list[DailyForecast]:
        """Parse a daily forecast response.

        Raises:
            OpenMeteoError: If the daily series is missing or ragged
        """
        daily = data.get("daily")
        if not isinstance(daily, dict):
            raise OpenMeteoError("Missing 'daily' field in response")

        times = daily.get("time")
        if not isinstance(times, list) or not times:
            raise OpenMeteoError("Missing daily dates in response")
        for field in ("weather_code", "temperature_2m_max", "temperature_2m_min"):
            values = daily.get(field)
            if not isinstance(values, list) or len(values) != len(times):
                raise OpenMeteoError(f"Missing or ragged daily field '{field}'")

        forecast: list[DailyForecast] = []
        try:
            for i, day in enumerate(times):
                wind_ms = _number(daily, "wind_speed_10m_max", i)
                forecast.append(
                    DailyForecast(
                        day=date.fromisoformat(day),
                        condition=Condition.from_code(daily["weather_code"][i]),
                        max_temp_c=float(daily["temperature_2m_max"][i]),
                        min_temp_c=float(daily["temperature_2m_min"][i]),
                        precipitation_mm=_number(daily, "precipitation_sum", i) or 0.0,
                        precipitation_probability=(
                            _number(daily, "precipitation_probability_max", i) or 0.0
                        ),
                        sunrise=clock_time(_text(daily, "sunrise", i)),
                        sunset=clock_time(_text(daily, "sunset", i)),
                        uv_index=_number(daily, "uv_index_max", i),
                        wind_speed_kmh=(wind_ms or 0.0) * MS_TO_KMH,
                        humidity_pct=_number(daily, "relative_humidity_2m_max", i),
                    )
                )
        except (TypeError, ValueError) as e:
            raise OpenMeteoError(f"Malformed daily forecast in response: {e}") from e

        return forecast

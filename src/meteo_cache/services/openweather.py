"""OpenWeatherMap current weather client (secondary provider)."""

from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
from prometheus_client import Counter

from meteo_cache.config import Settings
from meteo_cache.services.conditions import Condition
from meteo_cache.services.derived import CurrentConditions
from meteo_cache.services.errors import ProviderUnavailable

openweather_requests = Counter(
    "openweather_requests_total",
    "Total OpenWeatherMap API requests",
    ["status"],
)


class OpenWeatherError(ProviderUnavailable):
    """Raised when the OpenWeatherMap request fails."""


def condition_from_openweather(code: int) -> Condition:
    """Map an OpenWeatherMap condition id to the closest WMO condition."""
    group = code // 100
    if group == 2:
        return Condition.THUNDERSTORM
    if group == 3:
        return Condition.DRIZZLE
    if group == 5:
        if code == 500:
            return Condition.LIGHT_RAIN
        if code == 501:
            return Condition.RAIN
        if code == 511:
            return Condition.FREEZING_RAIN
        if code in (520, 521):
            return Condition.SHOWERS
        if code in (522, 531):
            return Condition.HEAVY_SHOWERS
        return Condition.HEAVY_RAIN
    if group == 6:
        return Condition.SNOW
    if group == 7:
        return Condition.FOG
    if code == 800:
        return Condition.CLEAR
    if code == 801:
        return Condition.MAINLY_CLEAR
    if code == 802:
        return Condition.PARTLY_CLOUDY
    return Condition.OVERCAST


def _block(data: dict[str, Any], name: str) -> dict[str, Any]:
    """Optional nested object; absent or wrongly shaped blocks read as empty."""
    block = data.get(name)
    return block if isinstance(block, dict) else {}


def _optional_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def _local_clock(unix_ts: Any, offset_seconds: int) -> str | None:
    if unix_ts is None:
        return None
    moment = datetime.fromtimestamp(int(unix_ts), UTC) + timedelta(seconds=offset_seconds)
    return moment.strftime("%H:%M")


class OpenWeatherClient:
    """HTTP client for the OpenWeatherMap Current Weather API."""

    def __init__(self, settings: Settings) -> None:
        """Initialize client with settings."""
        self._url = settings.openweather_url
        self._api_key = settings.openweather_api_key
        self._timeout = settings.upstream_timeout_seconds

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def get_current_conditions(self, lat: float, lon: float) -> CurrentConditions:
        """Fetch current conditions in metric units.

        Raises:
            OpenWeatherError: If the client is disabled, the request fails
                or the payload is missing required fields
        """
        if not self.enabled:
            raise OpenWeatherError("OpenWeatherMap API key is not configured")

        params: dict[str, str | float] = {
            "lat": lat,
            "lon": lon,
            "appid": self._api_key or "",
            "units": "metric",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._url, params=params)
        except httpx.TimeoutException as e:
            openweather_requests.labels(status="timeout").inc()
            raise OpenWeatherError(
                f"OpenWeatherMap request timed out after {self._timeout}s"
            ) from e
        except httpx.RequestError as e:
            openweather_requests.labels(status="error").inc()
            raise OpenWeatherError(f"OpenWeatherMap request failed: {e}") from e

        if response.status_code != 200:
            openweather_requests.labels(status="error").inc()
            raise OpenWeatherError(f"OpenWeatherMap returned {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            openweather_requests.labels(status="error").inc()
            raise OpenWeatherError("OpenWeatherMap returned invalid JSON") from e

        try:
            conditions = self._parse_response(data)
        except OpenWeatherError:
            openweather_requests.labels(status="error").inc()
            raise
        openweather_requests.labels(status="success").inc()
        return conditions

    def _parse_response(self, data: Any) -> CurrentConditions:
        if not isinstance(data, dict):
            raise OpenWeatherError("OpenWeatherMap returned an unexpected payload")

        weather_list = data.get("weather")
        weather = weather_list[0] if isinstance(weather_list, list) and weather_list else None
        main = data.get("main")
        if not isinstance(weather, dict) or not isinstance(main, dict) or main.get("temp") is None:
            raise OpenWeatherError("Response missing 'weather' or 'main' block")

        wind = _block(data, "wind")
        rain = _block(data, "rain")
        snow = _block(data, "snow")
        clouds = _block(data, "clouds")
        sys = _block(data, "sys")

        try:
            offset = int(data.get("timezone") or 0)
            visibility_m = _optional_float(data.get("visibility"))
            return CurrentConditions(
                temperature_c=float(main["temp"]),
                condition=condition_from_openweather(int(weather.get("id", 800))),
                wind_speed_ms=float(wind.get("speed") or 0.0),
                wind_direction_deg=_optional_float(wind.get("deg")),
                humidity_pct=_optional_float(main.get("humidity")),
                precipitation_mm=float(rain.get("1h", snow.get("1h", 0.0))),
                cloud_cover_pct=_optional_float(clouds.get("all")),
                pressure_hpa=_optional_float(main.get("pressure")),
                visibility_km=visibility_m / 1000 if visibility_m is not None else None,
                sunrise=_local_clock(sys.get("sunrise"), offset),
                sunset=_local_clock(sys.get("sunset"), offset),
            )
        except (TypeError, ValueError, OverflowError, OSError) as e:
            raise OpenWeatherError(f"Malformed OpenWeatherMap response: {e}") from e

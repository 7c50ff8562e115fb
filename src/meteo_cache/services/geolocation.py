"""Platform geolocation adapters."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Protocol

import httpx
import structlog

from meteo_cache.config import Settings
from meteo_cache.services.cache import Clock, utcnow
from meteo_cache.services.errors import HardwareUnavailable

logger = structlog.get_logger()


class GeolocationError(HardwareUnavailable):
    """Raised when a position fix cannot be obtained."""


@dataclass
class GeoFix:
    """A position fix."""

    lat: float
    lon: float
    accuracy_m: float | None
    timestamp: datetime


class Geolocator(Protocol):
    """Best-effort source of the device position."""

    async def locate(self, maximum_age: timedelta) -> GeoFix:
        """Return a fix no older than ``maximum_age``.

        Raises:
            GeolocationError: If no position is available
        """
        ...


class NullGeolocator:
    """Geolocator for platforms without a position source."""

    async def locate(self, maximum_age: timedelta) -> GeoFix:
        raise GeolocationError("Geolocation is not available on this platform")


class IpGeolocator:
    """Estimate the position from the public IP address (ip-api.com format).

    City-level accuracy only. The last fix is reused while it is younger than
    the requested maximum age.
    """

    # ip-api does not report accuracy; city-level lookups are within a few km
    ACCURACY_M = 5000.0

    def __init__(self, settings: Settings, clock: Clock = utcnow) -> None:
        """Initialize geolocator with settings and clock."""
        self._url = settings.geolocation_url
        self._timeout = settings.geolocation_timeout_seconds
        self._clock = clock
        self._last_fix: GeoFix | None = None

    async def locate(self, maximum_age: timedelta) -> GeoFix:
        if self._last_fix and self._clock() - self._last_fix.timestamp <= maximum_age:
            return self._last_fix

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._url, params={"fields": "status,message,lat,lon"})
        except httpx.RequestError as e:
            raise GeolocationError(f"IP geolocation request failed: {e}") from e

        if response.status_code != 200:
            raise GeolocationError(f"IP geolocation returned {response.status_code}")

        try:
            data = response.json()
            if data.get("status", "success") != "success":
                raise GeolocationError(f"IP geolocation failed: {data.get('message', 'unknown')}")
            fix = GeoFix(
                lat=float(data["lat"]),
                lon=float(data["lon"]),
                accuracy_m=self.ACCURACY_M,
                timestamp=self._clock(),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise GeolocationError("IP geolocation returned an unusable payload") from e

        logger.debug("Obtained IP geolocation fix", lat=fix.lat, lon=fix.lon)
        self._last_fix = fix
        return fix


def create_geolocator(settings: Settings, clock: Clock = utcnow) -> Geolocator:
    """Geolocator configured by ``settings.geolocation_url``."""
    if not settings.geolocation_url:
        return NullGeolocator()
    return IpGeolocator(settings, clock)

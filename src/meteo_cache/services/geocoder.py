"""Reverse geocoding through Nominatim with a long-lived cache."""

from typing import Any

import httpx
import structlog
from prometheus_client import Counter
from pydantic import ValidationError

from meteo_cache.api.schemas import PlaceDescription
from meteo_cache.config import Settings
from meteo_cache.services.cache import Category, TTLStore
from meteo_cache.services.errors import ProviderUnavailable
from meteo_cache.services.geo import coordinate_label, geocode_key

logger = structlog.get_logger()

geocoder_requests = Counter(
    "geocoder_requests_total",
    "Total reverse geocoding requests",
    ["status"],
)

_LOCALITY_FIELDS = ("city", "town", "village", "municipality")


class GeocodingError(ProviderUnavailable):
    """Raised when the reverse geocoding provider fails."""


class ReverseGeocoder:
    """Resolve coordinates to place names, never failing the caller."""

    def __init__(self, store: TTLStore, settings: Settings) -> None:
        """Initialize geocoder with cache and settings."""
        self._store = store
        self._url = settings.nominatim_url
        self._timeout = settings.upstream_timeout_seconds
        self._user_agent = settings.geocoder_user_agent
        self._home_country = settings.home_country

    async def resolve(self, lat: float, lon: float) -> PlaceDescription:
        """Describe a coordinate.

        Cached results are keyed at ~11 m precision. When the provider fails
        the description is ``Location (lat, lon)`` in the home country and
        ``resolved`` is False; such fallbacks are not cached.
        """
        key = geocode_key(lat, lon)
        cached = self._store.get(Category.GEOCODE, key)
        if cached is not None:
            return cached

        try:
            place = await self.lookup(lat, lon)
        except GeocodingError as e:
            logger.warning("Reverse geocoding failed", lat=lat, lon=lon, error=str(e))
            return self.fallback(lat, lon)

        self._store.put(Category.GEOCODE, key, place)
        return place

    def fallback(self, lat: float, lon: float) -> PlaceDescription:
        return PlaceDescription(
            name=coordinate_label(lat, lon),
            country=self._home_country,
            resolved=False,
        )

    async def lookup(self, lat: float, lon: float) -> PlaceDescription:
        """Query Nominatim without touching the cache.

        Raises:
            GeocodingError: If the request fails or the payload is unusable
        """
        params: dict[str, str | float | int] = {
            "format": "json",
            "lat": lat,
            "lon": lon,
            "zoom": 10,
            "addressdetails": 1,
        }
        headers = {"User-Agent": self._user_agent}

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.get(self._url, params=params, headers=headers)
        except httpx.TimeoutException as e:
            geocoder_requests.labels(status="timeout").inc()
            raise GeocodingError(f"Reverse geocoding timed out after {self._timeout}s") from e
        except httpx.RequestError as e:
            geocoder_requests.labels(status="error").inc()
            raise GeocodingError(f"Reverse geocoding request failed: {e}") from e

        if response.status_code != 200:
            geocoder_requests.labels(status="error").inc()
            raise GeocodingError(f"Nominatim returned {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            geocoder_requests.labels(status="error").inc()
            raise GeocodingError("Nominatim returned invalid JSON") from e

        if not isinstance(data, dict) or "error" in data:
            geocoder_requests.labels(status="error").inc()
            raise GeocodingError(f"Nominatim could not resolve {lat}, {lon}")

        try:
            place = self._parse_response(data, lat, lon)
        except GeocodingError:
            geocoder_requests.labels(status="error").inc()
            raise
        geocoder_requests.labels(status="success").inc()
        return place

    def _parse_response(self, data: dict[str, Any], lat: float, lon: float) -> PlaceDescription:
        address = data.get("address")
        if address is None:
            address = {}
        elif not isinstance(address, dict):
            raise GeocodingError("Nominatim returned a malformed address")

        city = next((address[f] for f in _LOCALITY_FIELDS if address.get(f)), None)
        province = address.get("state")
        region = address.get("region")
        country = address.get("country")

        parts = [part for part in (city, province, country) if isinstance(part, str) and part]
        if parts:
            name = ", ".join(parts)
        else:
            display = data.get("display_name")
            display = display.split(",")[0].strip() if isinstance(display, str) else ""
            name = display or coordinate_label(lat, lon)

        try:
            return PlaceDescription(
                name=name,
                city=city,
                province=province,
                region=region,
                country=country or self._home_country,
            )
        except ValidationError as e:
            raise GeocodingError(f"Nominatim returned a malformed address: {e}") from e

"""Current location acquisition with cached and fallback paths."""

import asyncio
from datetime import timedelta

import structlog

from meteo_cache.api.schemas import LocationRecord
from meteo_cache.config import Settings
from meteo_cache.services.errors import HardwareUnavailable, LocationsExhausted
from meteo_cache.services.geocoder import ReverseGeocoder
from meteo_cache.services.geolocation import Geolocator
from meteo_cache.services.registry import LocationRegistry

logger = structlog.get_logger()


class LocationService:
    """Answers "where is the user now".

    A fresh saved current location is returned directly. Otherwise the
    geolocator is asked for a fix; when that fails the most recently used
    saved location (or the first default) is returned with
    ``is_current_location`` cleared.
    """

    def __init__(
        self,
        registry: LocationRegistry,
        geocoder: ReverseGeocoder,
        geolocator: Geolocator,
        settings: Settings,
    ) -> None:
        """Initialize service with its collaborators."""
        self._registry = registry
        self._geocoder = geocoder
        self._geolocator = geolocator
        self._clock = registry.clock
        self._home_timezone = settings.home_timezone
        self._timeout = settings.geolocation_timeout_seconds
        self._max_age = timedelta(seconds=settings.geolocation_max_age_seconds)
        self._fresh_for = timedelta(seconds=settings.current_location_fresh_seconds)

    async def acquire(self, use_cache: bool = True) -> LocationRecord:
        """Resolve the current location.

        Raises:
            LocationsExhausted: If geolocation failed and there is no saved
                or default location to fall back to
        """
        if use_cache:
            recent = self._registry.most_recent()
            if (
                recent is not None
                and recent.is_current_location
                and self._clock() - recent.last_used < self._fresh_for
            ):
                logger.debug("Using cached current location", name=recent.name)
                return recent

        try:
            fix = await asyncio.wait_for(
                self._geolocator.locate(self._max_age), timeout=self._timeout
            )
        except TimeoutError:
            logger.warning("Geolocation timed out", timeout=self._timeout)
            return self.fallback()
        except HardwareUnavailable as e:
            logger.warning("Geolocation unavailable", error=str(e))
            return self.fallback()

        place = await self._geocoder.resolve(fix.lat, fix.lon)
        record = LocationRecord(
            name=place.name,
            lat=fix.lat,
            lon=fix.lon,
            city=place.city,
            province=place.province,
            region=place.region,
            country=place.country,
            timezone=self._home_timezone,
            is_current_location=True,
            last_used=self._clock(),
        )
        stored = self._registry.upsert(record)
        logger.info("Acquired current location", name=stored.name, lat=fix.lat, lon=fix.lon)
        return stored

    def fallback(self) -> LocationRecord:
        """Last known location, marked as not current."""
        recent = self._registry.most_recent()
        if recent is not None:
            return recent.model_copy(update={"is_current_location": False})

        defaults = self._registry.defaults
        if defaults:
            return LocationRecord(
                **defaults[0].model_dump(),
                is_current_location=False,
                last_used=self._clock(),
            )

        raise LocationsExhausted("No saved or default locations are available")

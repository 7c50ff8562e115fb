"""Bounded, recency-ordered registry of saved locations."""

from __future__ import annotations

import threading

import structlog

from meteo_cache.api.schemas import LocationRecord, LocationRef
from meteo_cache.config import Settings
from meteo_cache.services.cache import Category, Clock, TTLStore
from meteo_cache.services.geo import haversine

logger = structlog.get_logger()

REGISTRY_KEY = "all"


class LocationRegistry:
    """Saved locations with geographic deduplication.

    Records closer than ``dedup_radius_km`` are the same place: upserting a
    nearby record merges into the existing one. The list is kept sorted by
    ``last_used`` (newest first) and capped at ``max_saved_locations``.
    Records near a default location are never evicted or removed; when the
    defaults alone exceed the cap, all of them are kept.
    """

    def __init__(self, store: TTLStore, settings: Settings) -> None:
        """Initialize registry backed by the saved-locations cache category."""
        self._store = store
        self._clock = store.clock
        self._defaults = list(settings.default_locations)
        self._max_size = settings.max_saved_locations
        self._radius_km = settings.dedup_radius_km
        self._lock = threading.Lock()

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def defaults(self) -> list[LocationRef]:
        return list(self._defaults)

    def is_default(self, lat: float, lon: float) -> bool:
        """Check whether a position coincides with a default location."""
        return any(
            haversine(default.lat, default.lon, lat, lon) < self._radius_km
            for default in self._defaults
        )

    def list(self) -> list[LocationRecord]:
        """Saved locations, most recently used first."""
        with self._lock:
            return [record.model_copy() for record in self._load()]

    def most_recent(self) -> LocationRecord | None:
        """Most recently used location, if any."""
        records = self.list()
        return records[0] if records else None

    def upsert(self, record: LocationRecord) -> LocationRecord:
        """Insert a location or merge it into a saved one within the dedup radius.

        Returns the stored record.
        """
        now = self._clock()
        with self._lock:
            records = self._load()
            index = self._nearest(records, record.lat, record.lon)

            if index is None:
                stored = record.model_copy(update={"last_used": now})
                logger.debug("Saved new location", name=stored.name)
            else:
                existing = records.pop(index)
                changes = record.model_dump(exclude_none=True, exclude={"lat", "lon"})
                changes["last_used"] = now
                stored = existing.model_copy(update=changes)
                logger.debug("Merged location", name=stored.name, into=existing.name)

            # front of the list so it wins ties on last_used
            records.insert(0, stored)
            records.sort(key=lambda r: r.last_used, reverse=True)
            self._truncate(records)
            self._save(records)
            return stored.model_copy()

    def remove(self, index: int) -> bool:
        """Remove a saved location by list position.

        Out-of-range indexes and default locations are left alone.
        """
        with self._lock:
            records = self._load()
            if not 0 <= index < len(records):
                return False
            target = records[index]
            if self.is_default(target.lat, target.lon):
                logger.info("Refusing to remove default location", name=target.name)
                return False
            del records[index]
            self._save(records)
            logger.info("Removed location", name=target.name)
            return True

    def _nearest(self, records: list[LocationRecord], lat: float, lon: float) -> int | None:
        best: int | None = None
        best_distance = self._radius_km
        for i, existing in enumerate(records):
            distance = haversine(existing.lat, existing.lon, lat, lon)
            if distance < best_distance:
                best, best_distance = i, distance
        return best

    def _truncate(self, records: list[LocationRecord]) -> None:
        # records are newest first, so scan from the end for the oldest evictable
        i = len(records) - 1
        while len(records) > self._max_size and i >= 0:
            if not self.is_default(records[i].lat, records[i].lon):
                evicted = records.pop(i)
                logger.debug("Evicted location", name=evicted.name)
            i -= 1

    def _seed(self) -> list[LocationRecord]:
        now = self._clock()
        return [
            LocationRecord(**default.model_dump(), is_current_location=False, last_used=now)
            for default in self._defaults
        ]

    def _load(self) -> list[LocationRecord]:
        records = self._store.get(Category.SAVED_LOCATIONS, REGISTRY_KEY)
        if not records:
            return self._seed()
        return sorted(records, key=lambda r: r.last_used, reverse=True)

    def _save(self, records: list[LocationRecord]) -> None:
        self._store.put(Category.SAVED_LOCATIONS, REGISTRY_KEY, records)

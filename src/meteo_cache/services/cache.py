"""Two-layer TTL store for weather, forecast and location data."""

from __future__ import annotations

import os
import re
import tempfile
import threading
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from enum import StrEnum
from pathlib import Path
from typing import Any, Protocol

import structlog
from cachetools import Cache, LRUCache, TTLCache
from prometheus_client import Counter, Gauge
from pydantic import BaseModel, ValidationError

from meteo_cache.api.schemas import (
    CacheEntry,
    ForecastSeries,
    LocationRecord,
    PlaceDescription,
    WeatherSnapshot,
)
from meteo_cache.config import Settings
from meteo_cache.services.errors import CacheCorruption

logger = structlog.get_logger()

Clock = Callable[[], datetime]

# Metrics
cache_hits = Counter("cache_hits_total", "Total cache hits", ["category", "layer"])
cache_misses = Counter("cache_misses_total", "Total cache misses", ["category"])
cache_corrupted = Counter(
    "cache_corrupted_total", "Corrupted durable entries discarded", ["category"]
)
cache_size_gauge = Gauge("cache_size", "Current number of in-process cache entries")


def detached(value: Any) -> Any:
    """Deep copy of a cached model or list of models."""
    if isinstance(value, BaseModel):
        return value.model_copy(deep=True)
    if isinstance(value, list):
        return [detached(item) for item in value]
    return value


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


class Category(StrEnum):
    """Cache category; each owns a TTL and a value type."""

    WEATHER = "weather"
    FORECAST = "forecast"
    GEOCODE = "reverse"
    LOCATION = "location"
    SAVED_LOCATIONS = "locations"


_ENTRY_TYPES: dict[Category, type[CacheEntry[Any]]] = {
    Category.WEATHER: CacheEntry[WeatherSnapshot],
    Category.FORECAST: CacheEntry[ForecastSeries],
    Category.GEOCODE: CacheEntry[PlaceDescription],
    Category.LOCATION: CacheEntry[PlaceDescription],
    Category.SAVED_LOCATIONS: CacheEntry[list[LocationRecord]],
}


def category_ttls(settings: Settings) -> dict[Category, timedelta | None]:
    """TTL per category. ``None`` means the entry never expires."""
    return {
        Category.WEATHER: timedelta(seconds=settings.weather_ttl_seconds),
        Category.FORECAST: timedelta(seconds=settings.forecast_ttl_seconds),
        Category.GEOCODE: timedelta(seconds=settings.location_ttl_seconds),
        Category.LOCATION: timedelta(seconds=settings.location_ttl_seconds),
        Category.SAVED_LOCATIONS: None,
    }


class DurableStore(Protocol):
    """Slow key-value layer that survives process restarts."""

    def read(self, key: str) -> str | None: ...

    def write(self, key: str, data: str) -> None: ...

    def delete(self, key: str) -> None: ...

    def clear(self) -> None: ...


class MemoryDurableStore:
    """Durable layer stand-in kept in a dict (tests, ephemeral runs)."""

    def __init__(self) -> None:
        self.data: dict[str, str] = {}

    def read(self, key: str) -> str | None:
        return self.data.get(key)

    def write(self, key: str, data: str) -> None:
        self.data[key] = data

    def delete(self, key: str) -> None:
        self.data.pop(key, None)

    def clear(self) -> None:
        self.data.clear()


class FileDurableStore:
    """Durable layer storing one JSON document per key in a directory."""

    _unsafe = re.compile(r"[^A-Za-z0-9._-]")

    def __init__(self, directory: Path) -> None:
        self._directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self._directory / f"{self._unsafe.sub('_', key)}.json"

    def read(self, key: str) -> str | None:
        try:
            return self._path(key).read_text(encoding="utf-8")
        except FileNotFoundError:
            return None

    def write(self, key: str, data: str) -> None:
        self._directory.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(data)
            os.replace(tmp, self._path(key))
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def clear(self) -> None:
        if not self._directory.exists():
            return
        for path in self._directory.glob("*.json"):
            path.unlink(missing_ok=True)


class TTLStore:
    """Timestamped key-value cache with an in-process and a durable layer.

    Reads check the in-process layer first and fall through to the durable
    layer, repopulating the in-process layer on a durable hit. An entry is
    valid while ``now - stored_at`` is below its category TTL; expired and
    corrupted entries are deleted from both layers and reported as misses.
    """

    def __init__(
        self,
        settings: Settings,
        durable: DurableStore | None = None,
        clock: Clock = utcnow,
    ) -> None:
        """Initialize store with settings, durable layer and clock."""
        self._prefix = settings.app_name
        self._ttls = category_ttls(settings)
        self._durable: DurableStore = durable if durable is not None else MemoryDurableStore()
        self._clock = clock
        self._memory: dict[Category, Cache[str, CacheEntry[Any]]] = {}
        for category, ttl in self._ttls.items():
            if ttl is None:
                self._memory[category] = LRUCache(maxsize=settings.memory_cache_max_size)
            else:
                self._memory[category] = TTLCache(
                    maxsize=settings.memory_cache_max_size,
                    ttl=ttl.total_seconds(),
                    timer=self._timer,
                )
        self._locks = {category: threading.Lock() for category in Category}

    @classmethod
    def from_settings(cls, settings: Settings, clock: Clock = utcnow) -> TTLStore:
        """Create a store whose durable layer follows ``settings.cache_dir``."""
        durable: DurableStore
        if settings.cache_dir is not None:
            durable = FileDurableStore(settings.cache_dir)
        else:
            durable = MemoryDurableStore()
        return cls(settings, durable, clock)

    @property
    def clock(self) -> Clock:
        return self._clock

    def _timer(self) -> float:
        return self._clock().timestamp()

    def _durable_key(self, category: Category, key: str) -> str:
        return f"{self._prefix}_{category.value}_{key}"

    def _is_fresh(self, category: Category, entry: CacheEntry[Any]) -> bool:
        ttl = self._ttls[category]
        return ttl is None or self._clock() - entry.stored_at < ttl

    def get(self, category: Category, key: str) -> Any | None:
        """Get a valid cached value, or None on miss or expiry."""
        with self._locks[category]:
            memory = self._memory[category]
            entry = memory.get(key)
            if entry is not None:
                if self._is_fresh(category, entry):
                    cache_hits.labels(category=category.value, layer="memory").inc()
                    return detached(entry.value)
                self._purge(category, key)
                cache_misses.labels(category=category.value).inc()
                return None

            try:
                entry = self._read_durable(category, key)
            except CacheCorruption as e:
                logger.warning(
                    "Discarding corrupted cache entry",
                    category=category.value,
                    key=key,
                    error=str(e),
                )
                cache_corrupted.labels(category=category.value).inc()
                self._purge(category, key)
                entry = None

            if entry is None:
                cache_misses.labels(category=category.value).inc()
                return None

            if not self._is_fresh(category, entry):
                self._purge(category, key)
                cache_misses.labels(category=category.value).inc()
                return None

            memory[key] = entry
            cache_hits.labels(category=category.value, layer="durable").inc()
            return detached(entry.value)

    def put(self, category: Category, key: str, value: Any) -> None:
        """Store a value stamped with the current time in both layers."""
        entry = _ENTRY_TYPES[category](value=detached(value), stored_at=self._clock())
        with self._locks[category]:
            self._memory[category][key] = entry
            self._write_durable(category, key, entry)
        cache_size_gauge.set(self.size)

    def delete(self, category: Category, key: str) -> None:
        """Remove a key from both layers."""
        with self._locks[category]:
            self._purge(category, key)
        cache_size_gauge.set(self.size)

    def clear(self) -> None:
        """Clear all cache entries."""
        for category in Category:
            with self._locks[category]:
                self._memory[category].clear()
        try:
            self._durable.clear()
        except OSError as e:
            logger.warning("Failed to clear durable cache", error=str(e))
        cache_size_gauge.set(0)

    @property
    def size(self) -> int:
        """Return current number of in-process entries."""
        return sum(len(memory) for memory in self._memory.values())

    def is_healthy(self) -> bool:
        """Check if cache is operational."""
        return all(isinstance(len(memory), int) for memory in self._memory.values())

    def _purge(self, category: Category, key: str) -> None:
        self._memory[category].pop(key, None)
        try:
            self._durable.delete(self._durable_key(category, key))
        except OSError as e:
            logger.warning("Failed to delete durable entry", category=category.value, error=str(e))

    def _read_durable(self, category: Category, key: str) -> CacheEntry[Any] | None:
        try:
            raw = self._durable.read(self._durable_key(category, key))
        except OSError as e:
            logger.warning("Durable cache read failed", category=category.value, error=str(e))
            return None
        if raw is None:
            return None
        try:
            return _ENTRY_TYPES[category].model_validate_json(raw)
        except ValidationError as e:
            raise CacheCorruption(f"Malformed {category.value} entry for {key}") from e

    def _write_durable(self, category: Category, key: str, entry: CacheEntry[Any]) -> None:
        try:
            self._durable.write(self._durable_key(category, key), entry.model_dump_json())
        except OSError as e:
            logger.warning("Durable cache write failed", category=category.value, error=str(e))

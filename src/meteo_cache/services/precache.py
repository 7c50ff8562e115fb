"""Background warming of the weather cache for default locations."""

import asyncio

import structlog

from meteo_cache.api.schemas import LocationRef
from meteo_cache.services.weather import WeatherService

logger = structlog.get_logger()


class PreCacheScheduler:
    """Fire-and-forget fetches for default locations lacking cached weather.

    Fetches are staggered by ``stagger_seconds`` per location and their
    failures are logged and dropped.
    """

    def __init__(
        self,
        weather: WeatherService,
        locations: list[LocationRef],
        stagger_seconds: float = 1.0,
    ) -> None:
        self._weather = weather
        self._locations = list(locations)
        self._stagger = stagger_seconds
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def start(self) -> list[asyncio.Task[None]]:
        """Schedule warm-up fetches. Must be called from a running event loop."""
        scheduled: list[asyncio.Task[None]] = []
        position = 0
        for location in self._locations:
            if self._weather.has_cached(location.lat, location.lon):
                continue
            position += 1
            task = asyncio.create_task(self._warm(location, self._stagger * position))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
            scheduled.append(task)

        logger.info("Scheduled weather pre-cache", locations=len(scheduled))
        return scheduled

    async def stop(self) -> None:
        """Cancel fetches that have not finished yet."""
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def _warm(self, location: LocationRef, delay: float) -> None:
        await asyncio.sleep(delay)
        try:
            await self._weather.get_weather(location.lat, location.lon, force_refresh=False)
        except Exception as e:
            logger.debug("Pre-cache fetch failed", name=location.name, error=str(e))

"""API route definitions."""

from typing import Annotated

import structlog
from fastapi import APIRouter, HTTPException, Query, Response, status

from meteo_cache.api.dependencies import EngineDep
from meteo_cache.api.schemas import (
    AdvisoryResponse,
    ErrorDetail,
    ErrorResponse,
    ForecastSeries,
    HealthResponse,
    LocationRecord,
    NewLocationRequest,
    ReadinessResponse,
    RemoveLocationResponse,
    Source,
    WeatherSnapshot,
)
from meteo_cache.middleware.logging import SOURCE_HEADER
from meteo_cache.services.errors import LocationsExhausted

logger = structlog.get_logger()

# API router for weather endpoints
api_router = APIRouter(prefix="/api/v1", tags=["weather"])

# Router for saved and current locations
locations_router = APIRouter(prefix="/api/v1/locations", tags=["locations"])

# Health router for health checks
health_router = APIRouter(prefix="/health", tags=["health"])

Latitude = Annotated[float, Query(ge=-90, le=90, description="Latitude")]
Longitude = Annotated[float, Query(ge=-180, le=180, description="Longitude")]

EXHAUSTED_RESPONSES: dict[int | str, dict[str, object]] = {
    503: {"model": ErrorResponse, "description": "No location available"},
}


def _tag_source(response: Response, source: Source) -> None:
    response.headers[SOURCE_HEADER] = source.value


def _exhausted(e: LocationsExhausted) -> HTTPException:
    logger.error("Location fallbacks exhausted", error=str(e))
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=ErrorResponse(
            error=ErrorDetail(code="LOCATIONS_EXHAUSTED", message=str(e)),
        ).model_dump(),
    )


@api_router.get("/weather", response_model=WeatherSnapshot)
async def get_weather(
    engine: EngineDep,
    response: Response,
    lat: Latitude,
    lon: Longitude,
    force_refresh: Annotated[bool, Query(description="Bypass the weather cache")] = False,
) -> WeatherSnapshot:
    """Get current weather for coordinates.

    Cached for an hour per ~11 km cell. The ``source`` field tells provider
    data apart from synthetic fallbacks.
    """
    weather = await engine.get_weather_for_coordinates(lat, lon, force_refresh)
    _tag_source(response, weather.source)
    return weather


@api_router.get(
    "/weather/current",
    response_model=WeatherSnapshot,
    responses=EXHAUSTED_RESPONSES,
)
async def get_current_weather(
    engine: EngineDep,
    response: Response,
    force_refresh: Annotated[bool, Query(description="Bypass the weather cache")] = False,
) -> WeatherSnapshot:
    """Get current weather where the user is."""
    try:
        weather = await engine.get_weather_for_current_location(force_refresh)
    except LocationsExhausted as e:
        raise _exhausted(e) from e
    _tag_source(response, weather.source)
    return weather


@api_router.get("/weather/advisory", response_model=AdvisoryResponse)
async def get_advisory(
    engine: EngineDep, response: Response, lat: Latitude, lon: Longitude
) -> AdvisoryResponse:
    """Get current weather with its icon, colours and farm recommendations."""
    weather = await engine.get_weather_for_coordinates(lat, lon)
    _tag_source(response, weather.source)
    return AdvisoryResponse(
        weather=weather,
        icon=engine.get_weather_icon(weather.condition),
        colors=engine.get_weather_color_scheme(weather.condition),
        recommendations=engine.get_farm_recommendations(weather),
    )


@api_router.get("/forecast", response_model=ForecastSeries)
async def get_forecast(
    engine: EngineDep,
    response: Response,
    lat: Latitude,
    lon: Longitude,
    days: Annotated[int | None, Query(ge=1, le=16, description="Number of days")] = None,
) -> ForecastSeries:
    """Get a daily forecast of consecutive dates starting today."""
    try:
        forecast = await engine.get_forecast_for_coordinates(lat, lon, days)
    except ValueError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=ErrorResponse(
                error=ErrorDetail(code="INVALID_DAYS", message=str(e)),
            ).model_dump(),
        ) from e
    _tag_source(response, forecast.source)
    return forecast


@locations_router.get("", response_model=list[LocationRecord])
async def list_locations(engine: EngineDep) -> list[LocationRecord]:
    """Saved locations, most recently used first."""
    return engine.get_saved_locations_list()


@locations_router.post("", response_model=LocationRecord, status_code=status.HTTP_201_CREATED)
async def add_location(engine: EngineDep, body: NewLocationRequest) -> LocationRecord:
    """Save a location. Points within 1 km of a saved one update it instead."""
    return await engine.add_new_location(body.lat, body.lon, body.name)


@locations_router.get(
    "/current",
    response_model=LocationRecord,
    responses=EXHAUSTED_RESPONSES,
)
async def get_current_location(
    engine: EngineDep,
    use_cache: Annotated[bool, Query(description="Reuse a recent fix")] = True,
) -> LocationRecord:
    """Resolve where the user is, falling back to the last known location."""
    try:
        return await engine.get_current_location(use_cache)
    except LocationsExhausted as e:
        raise _exhausted(e) from e


@locations_router.delete("/{index}", response_model=RemoveLocationResponse)
async def remove_location(engine: EngineDep, index: int) -> RemoveLocationResponse:
    """Remove a saved location. Default locations are kept."""
    removed = engine.remove_location(index)
    return RemoveLocationResponse(removed=removed, locations=engine.get_saved_locations_list())


@health_router.get("/live", response_model=HealthResponse)
async def liveness() -> HealthResponse:
    """Liveness check: the service is running."""
    return HealthResponse(status="ok")


@health_router.get("/ready", response_model=ReadinessResponse)
async def readiness(engine: EngineDep) -> ReadinessResponse:
    """Readiness check: the service can accept traffic."""
    cache_status = "ok" if engine.store.is_healthy() else "unhealthy"

    overall_status = "ok" if cache_status == "ok" else "unhealthy"

    response = ReadinessResponse(
        status=overall_status,
        checks={"cache": cache_status},
    )

    if overall_status != "ok":
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=response.model_dump(),
        )

    return response

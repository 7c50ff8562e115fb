"""API request and response schemas."""

from datetime import date, datetime
from enum import StrEnum
from typing import Generic, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from meteo_cache.services.conditions import ColorScheme, Condition

T = TypeVar("T")


class CamelModel(BaseModel):
    """Base model serialized with camelCase keys."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Source(StrEnum):
    """Where a weather or forecast result came from."""

    PRIMARY = "primary-provider"
    SECONDARY = "secondary-provider"
    GEOLOCATION = "geolocation-derived"
    SYNTHETIC = "synthetic"


class CacheEntry(BaseModel, Generic[T]):
    """Timestamped cache value."""

    value: T
    stored_at: datetime


class LocationRef(CamelModel):
    """Named geographic location."""

    name: str
    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lon: float = Field(..., ge=-180, le=180, description="Longitude")
    city: str | None = None
    province: str | None = None
    region: str | None = None
    country: str
    timezone: str


class PlaceDescription(CamelModel):
    """Human-readable description of a coordinate."""

    name: str
    city: str | None = None
    province: str | None = None
    region: str | None = None
    country: str
    resolved: bool = Field(default=True, description="False for coordinate-only fallbacks")


class LocationRecord(LocationRef):
    """Saved location in the registry."""

    is_current_location: bool = False
    last_used: datetime


class WeatherSnapshot(CamelModel):
    """Current weather conditions at a location."""

    temperature: int = Field(..., description="Temperature in Celsius")
    feels_like: int = Field(..., description="Apparent temperature in Celsius")
    condition: Condition
    condition_label: str
    description: str
    humidity: int = Field(..., description="Relative humidity in percent")
    wind_speed: int = Field(..., description="Wind speed in km/h")
    wind_direction: int = Field(..., description="Wind direction in degrees")
    pressure: int = Field(..., description="Sea level pressure in hPa")
    precipitation: float = Field(..., description="Precipitation in mm")
    cloud_cover: int = Field(..., description="Cloud cover in percent")
    visibility: float = Field(..., description="Visibility in km")
    sunrise: str
    sunset: str
    uv_index: float
    location: LocationRef
    timestamp: datetime = Field(..., description="Capture timestamp")
    source: Source


class ForecastDay(CamelModel):
    """Forecast for one calendar date."""

    date: date
    max_temp: int
    min_temp: int
    condition: Condition
    condition_label: str
    precipitation: float
    precipitation_probability: int
    sunrise: str
    sunset: str
    uv_index: float
    wind_speed: float = Field(..., description="Maximum wind speed in km/h")
    humidity: int


class ForecastSeries(CamelModel):
    """Contiguous daily forecast."""

    days: list[ForecastDay]
    source: Source
    timestamp: datetime


class FarmRecommendations(CamelModel):
    """Farm work advice derived from a weather snapshot."""

    status: Literal["good", "moderate", "poor"] = "good"
    activities: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)


class AdvisoryResponse(CamelModel):
    """Weather snapshot with its display and farm advisory attributes."""

    weather: WeatherSnapshot
    icon: str
    colors: ColorScheme
    recommendations: FarmRecommendations


class NewLocationRequest(CamelModel):
    """Request body for saving a location."""

    lat: float = Field(..., ge=-90, le=90, description="Latitude")
    lon: float = Field(..., ge=-180, le=180, description="Longitude")
    name: str | None = Field(default=None, description="Display name override")


class RemoveLocationResponse(CamelModel):
    """Result of a location removal."""

    removed: bool
    locations: list[LocationRecord]


class ErrorDetail(BaseModel):
    """Error detail."""

    code: str = Field(..., description="Error code")
    message: str = Field(..., description="Error message")


class ErrorResponse(BaseModel):
    """Error response."""

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Health status")


class ReadinessResponse(BaseModel):
    """Readiness check response."""

    status: str = Field(..., description="Readiness status")
    checks: dict[str, str] = Field(default_factory=dict, description="Component checks")

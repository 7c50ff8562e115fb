"""Application configuration management."""

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from meteo_cache.api.schemas import LocationRef

# Seed locations for the saved-locations registry (Nueva Ecija, Central Luzon)
DEFAULT_LOCATIONS: list[LocationRef] = [
    LocationRef(
        name="San Jose, Nueva Ecija",
        lat=15.7934,
        lon=120.992,
        city="San Jose",
        province="Nueva Ecija",
        region="Central Luzon",
        country="Philippines",
        timezone="Asia/Manila",
    ),
    LocationRef(
        name="Cabanatuan, Nueva Ecija",
        lat=15.4862,
        lon=120.9676,
        city="Cabanatuan",
        province="Nueva Ecija",
        region="Central Luzon",
        country="Philippines",
        timezone="Asia/Manila",
    ),
    LocationRef(
        name="Science City of Muñoz",
        lat=15.7161,
        lon=120.9031,
        city="Muñoz",
        province="Nueva Ecija",
        region="Central Luzon",
        country="Philippines",
        timezone="Asia/Manila",
    ),
]


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    # Server settings
    app_host: str = Field(default="127.0.0.1", description="Server bind host")
    app_port: int = Field(default=8080, description="Server bind port")
    app_name: str = Field(default="KABISILYA", description="Durable cache key prefix")

    # Upstream API settings
    open_meteo_url: str = Field(
        default="https://api.open-meteo.com/v1/forecast",
        description="Open-Meteo forecast API URL (primary provider)",
    )
    openweather_url: str = Field(
        default="https://api.openweathermap.org/data/2.5/weather",
        description="OpenWeatherMap current weather API URL (secondary provider)",
    )
    openweather_api_key: str | None = Field(
        default=None,
        description="OpenWeatherMap API key; secondary provider is disabled without it",
    )
    nominatim_url: str = Field(
        default="https://nominatim.openstreetmap.org/reverse",
        description="Nominatim reverse geocoding URL",
    )
    geocoder_user_agent: str = Field(
        default="meteo-cache/0.1",
        description="User-Agent sent to Nominatim",
    )
    upstream_timeout_seconds: float = Field(
        default=5.0,
        description="Upstream request timeout in seconds",
        ge=0.1,
        le=30.0,
    )

    # Geolocation settings
    geolocation_url: str = Field(
        default="http://ip-api.com/json/",
        description="IP geolocation endpoint; empty disables geolocation",
    )
    geolocation_timeout_seconds: float = Field(default=5.0, ge=0.1, le=60.0)
    geolocation_max_age_seconds: int = Field(
        default=300,
        description="Maximum age of a reused geolocation fix",
        ge=0,
    )
    current_location_fresh_seconds: int = Field(
        default=300,
        description="Age under which a saved current location is returned as-is",
        ge=0,
    )

    # Cache settings
    weather_ttl_seconds: int = Field(default=60 * 60, ge=1)
    forecast_ttl_seconds: int = Field(default=6 * 60 * 60, ge=1)
    location_ttl_seconds: int = Field(default=7 * 24 * 60 * 60, ge=1)
    memory_cache_max_size: int = Field(
        default=1024,
        description="Maximum in-process entries per cache category",
        ge=1,
        le=1000000,
    )
    cache_dir: Path | None = Field(
        default=Path(".meteo-cache"),
        description="Durable cache directory; unset keeps the durable layer in memory",
    )

    # Registry settings
    max_saved_locations: int = Field(default=10, ge=1, le=100)
    dedup_radius_km: float = Field(default=1.0, gt=0)
    default_locations: list[LocationRef] = Field(
        default_factory=lambda: list(DEFAULT_LOCATIONS),
    )

    # Home region, used for fallbacks and synthetic weather
    home_country: str = Field(default="Philippines")
    home_timezone: str = Field(default="Asia/Manila")
    home_lat_min: float = Field(default=4.5, ge=-90, le=90)
    home_lat_max: float = Field(default=21.5, ge=-90, le=90)

    # Forecast settings
    default_forecast_days: int = Field(default=7, ge=1, le=16)
    max_forecast_days: int = Field(default=16, ge=1, le=16)

    # Pre-cache settings
    precache_on_startup: bool = Field(default=True)
    precache_stagger_seconds: float = Field(
        default=1.0,
        description="Delay between background pre-cache fetches",
        ge=0,
    )

    # Logging settings
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: str = Field(
        default="json",
        description="Log format (json or text)",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()

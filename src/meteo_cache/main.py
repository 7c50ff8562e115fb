"""Application entry point."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
import uvicorn
from fastapi import FastAPI
from prometheus_client import make_asgi_app

from meteo_cache import __version__
from meteo_cache.api.routes import api_router, health_router, locations_router
from meteo_cache.config import Settings, get_settings
from meteo_cache.middleware.logging import LoggingMiddleware, configure_logging
from meteo_cache.services.engine import WeatherEngine

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Warm the cache for default locations while the app is running."""
    engine: WeatherEngine = app.state.engine
    if engine.settings.precache_on_startup:
        engine.pre_cache_default_locations()
    yield
    await engine.scheduler.stop()
    logger.info("Application stopped")


def create_app(settings: Settings | None = None, engine: WeatherEngine | None = None) -> FastAPI:
    """Create and configure FastAPI application."""
    if settings is None:
        settings = engine.settings if engine is not None else get_settings()

    # Configure logging
    configure_logging(settings)

    # Create FastAPI app
    app = FastAPI(
        title="Meteo Cache API",
        description="Cached weather, forecasts and saved locations with offline fallbacks",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.engine = engine if engine is not None else WeatherEngine.build(settings)

    # Add middleware
    app.add_middleware(LoggingMiddleware)

    # Include routers
    app.include_router(api_router)
    app.include_router(locations_router)
    app.include_router(health_router)

    # Mount Prometheus metrics endpoint
    metrics_app = make_asgi_app()
    app.mount("/metrics", metrics_app)

    return app


# Create app instance for ASGI servers
app = create_app()


def run() -> None:
    """Run the application with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        "meteo_cache.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()

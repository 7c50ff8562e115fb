"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends, Request

from meteo_cache.services.engine import WeatherEngine


def get_engine(request: Request) -> WeatherEngine:
    """Get the engine built for this application."""
    engine: WeatherEngine = request.app.state.engine
    return engine


EngineDep = Annotated[WeatherEngine, Depends(get_engine)]

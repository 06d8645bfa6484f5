"""API clients for upstream forecast data."""

from dive_forecast.clients.schemas import (
    ClosestResponse,
    ForecastResponse,
    LocationModel,
    SearchResponse,
)
from dive_forecast.clients.willyweather_client import WillyWeatherClient

__all__ = [
    "ClosestResponse",
    "ForecastResponse",
    "LocationModel",
    "SearchResponse",
    "WillyWeatherClient",
]

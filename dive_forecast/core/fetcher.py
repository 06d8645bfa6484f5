"""Fetches the raw wind + swell forecast for a resolved location."""

import logging
from datetime import date
from typing import Optional

from dive_forecast.clients.schemas import ForecastResponse
from dive_forecast.clients.willyweather_client import WillyWeatherClient
from dive_forecast.config import FORECAST_DAYS


logger = logging.getLogger(__name__)

FORECAST_TYPES = ("wind", "swell")


class ForecastFetcher:
    """Retrieves validated forecast payloads over a fixed horizon."""

    def __init__(self, client: WillyWeatherClient, days: int = FORECAST_DAYS):
        self.client = client
        self.days = days

    def fetch(self, location_id: int, start_date: Optional[date] = None) -> ForecastResponse:
        """Fetch wind and swell forecasts for a location.

        Args:
            location_id: Resolved location id
            start_date: Explicit first day; set when the fallback location is
                in use so both series start on the same date

        Returns:
            ForecastResponse with per-day entries for each type

        Raises:
            UpstreamUnavailableError: On network, timeout, non-2xx or schema failure
        """
        logger.info(
            f"Fetching {self.days}-day {'/'.join(FORECAST_TYPES)} forecast for location {location_id}"
            + (f" from {start_date}" if start_date else "")
        )
        return self.client.forecast(
            location_id,
            types=FORECAST_TYPES,
            days=self.days,
            start_date=start_date,
        )

"""WillyWeather API client for location search and wind/swell forecasts.

Paid API with a daily request quota. Every call goes through a bounded
timeout, a small tenacity retry for transient failures, and a shared
RequestBudget so retries count against the quota too.

Endpoints used:
- /search.json: nearest location to a lat/lng
- /search/closest.json: closest location publishing a given weather type
- /locations/{id}/weather.json: per-day forecast entries
"""

import logging
from datetime import date
from typing import Optional

import requests
from pydantic import ValidationError

from dive_forecast.clients.schemas import (
    ClosestResponse,
    ForecastResponse,
    LocationModel,
    SearchResponse,
)
from dive_forecast.config import (
    DAILY_REQUEST_CAP,
    MAX_ATTEMPTS,
    REQUEST_TIMEOUT,
    RETRY_MAX_WAIT,
    RETRY_MIN_WAIT,
    USER_AGENT,
    WILLYWEATHER_BASE_URL,
    ForecastSettings,
)
from dive_forecast.errors import UpstreamPayloadError, UpstreamUnavailableError
from dive_forecast.utils.request_budget import RequestBudget
from dive_forecast.utils.retry import create_retry_decorator

logger = logging.getLogger(__name__)


class WillyWeatherClient:
    """Client for the WillyWeather v2 REST API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = WILLYWEATHER_BASE_URL,
        timeout: float = REQUEST_TIMEOUT,
        max_attempts: int = MAX_ATTEMPTS,
        retry_min_wait: float = RETRY_MIN_WAIT,
        retry_max_wait: float = RETRY_MAX_WAIT,
        budget: Optional[RequestBudget] = None,
        session: Optional[requests.Session] = None,
    ):
        """Initialize the client.

        Args:
            api_key: WillyWeather API key. Defaults to ForecastSettings().api_key
                (WILLYWEATHER_API_KEY from the environment or .env).
            base_url: API root, without the key segment.
            timeout: Per-request timeout in seconds.
            max_attempts: Attempts per call, including the first.
            retry_min_wait: Minimum backoff between attempts (seconds).
            retry_max_wait: Maximum backoff between attempts (seconds).
            budget: Shared daily request budget. Defaults to DAILY_REQUEST_CAP.
            session: HTTP session to use. Defaults to a new requests.Session.
        """
        self.api_key = api_key if api_key is not None else ForecastSettings().api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.budget = budget or RequestBudget(DAILY_REQUEST_CAP)
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = USER_AGENT

        retry_decorator = create_retry_decorator(
            max_attempts=max_attempts,
            min_wait=retry_min_wait,
            max_wait=retry_max_wait,
        )
        self._request = retry_decorator(self._request_once)

    @classmethod
    def from_settings(
        cls,
        settings: ForecastSettings,
        budget: Optional[RequestBudget] = None,
    ) -> "WillyWeatherClient":
        """Build a client from resolved settings."""
        return cls(
            api_key=settings.api_key,
            base_url=settings.base_url,
            timeout=settings.request_timeout,
            max_attempts=settings.max_attempts,
            retry_min_wait=settings.retry_min_wait,
            retry_max_wait=settings.retry_max_wait,
            budget=budget or RequestBudget(settings.daily_request_cap),
        )

    def _request_once(self, path: str, params: dict) -> dict:
        """Single HTTP attempt; charged to the budget before it is sent."""
        self.budget.consume()
        url = f"{self.base_url}/{self.api_key}{path}"
        response = self.session.get(url, params=params, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def _get(self, path: str, params: dict, action: str) -> dict:
        if not self.api_key:
            raise UpstreamUnavailableError("No WillyWeather API key configured")

        try:
            return self._request(path, params)
        except ValueError as e:
            # Non-JSON body on a 2xx response (requests' JSONDecodeError is also a RequestException)
            raise UpstreamPayloadError(f"Invalid JSON while trying to {action}: {e}") from e
        except requests.RequestException as e:
            raise UpstreamUnavailableError(f"Failed to {action}: {e}") from e

    def search(
        self,
        lat: float,
        lng: float,
        radius: float,
        unit: str = "km",
    ) -> Optional[LocationModel]:
        """Find the nearest forecast location to a point.

        Args:
            lat: Latitude
            lng: Longitude
            radius: Search range
            unit: Distance unit for range and the reported distance

        Returns:
            Nearest location, or None if nothing is within range
        """
        data = self._get(
            "/search.json",
            {"lat": lat, "lng": lng, "range": radius, "distance": unit},
            action=f"search locations near {lat}, {lng}",
        )
        try:
            return SearchResponse.model_validate(data).location
        except ValidationError as e:
            raise UpstreamPayloadError(f"Invalid search response: {e}") from e

    def closest(
        self,
        location_id: int,
        weather_type: str,
        unit: str = "km",
    ) -> Optional[LocationModel]:
        """Find the closest location that publishes a given weather type.

        Args:
            location_id: Anchor location id
            weather_type: Required forecast type ("swell" or "wind")
            unit: Distance unit for the reported distance

        Returns:
            Closest capable location, or None if the API has none
        """
        data = self._get(
            "/search/closest.json",
            {"id": location_id, "weatherTypes": weather_type, "units": f"distance:{unit}"},
            action=f"find closest {weather_type} location to {location_id}",
        )
        try:
            response = ClosestResponse.model_validate(data)
        except ValidationError as e:
            raise UpstreamPayloadError(f"Invalid closest response: {e}") from e

        candidates = getattr(response, weather_type, [])
        if not candidates:
            return None

        best = min(
            candidates,
            key=lambda loc: loc.distance if loc.distance is not None else float("inf"),
        )
        if weather_type not in best.weather_types:
            best = best.model_copy(update={"weather_types": best.weather_types + [weather_type]})
        return best

    def forecast(
        self,
        location_id: int,
        types: tuple[str, ...] = ("wind", "swell"),
        days: int = 7,
        start_date: Optional[date] = None,
    ) -> ForecastResponse:
        """Fetch forecast entries for a location.

        Args:
            location_id: WillyWeather location id
            types: Forecast types to request
            days: Horizon in days
            start_date: First forecast day. Defaults to the API's "today".

        Returns:
            Validated forecast payload
        """
        params = {"forecasts": ",".join(types), "days": days}
        if start_date is not None:
            params["startDate"] = start_date.isoformat()

        data = self._get(
            f"/locations/{location_id}/weather.json",
            params,
            action=f"fetch {'/'.join(types)} forecast for location {location_id}",
        )
        try:
            return ForecastResponse.model_validate(data)
        except ValidationError as e:
            raise UpstreamPayloadError(
                f"Invalid forecast response for location {location_id}: {e}"
            ) from e

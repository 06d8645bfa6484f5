"""Resolves a site's coordinates to the upstream forecast location.

The nearest location is used when it publishes swell. Otherwise the API's
"closest location with swell" search is anchored at that location, and the
swell-capable result is used for every fetch in the run. Wind then comes from
that same station, which may sit some distance from the site; that mismatch
is accepted as an approximation.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from dive_forecast.clients.schemas import LocationModel
from dive_forecast.clients.willyweather_client import WillyWeatherClient
from dive_forecast.config import SEARCH_RADIUS_KM
from dive_forecast.errors import LocationNotFoundError, SwellCapabilityUnavailableError


logger = logging.getLogger(__name__)

WIND = "wind"
SWELL = "swell"


@dataclass(frozen=True)
class Location:
    """An upstream forecast location."""
    id: int
    latitude: Optional[float]
    longitude: Optional[float]
    capabilities: frozenset
    name: str = ""
    distance_km: Optional[float] = None

    @classmethod
    def from_model(cls, model: LocationModel) -> "Location":
        return cls(
            id=model.id,
            latitude=model.lat,
            longitude=model.lng,
            capabilities=frozenset(model.weather_types),
            name=model.name,
            distance_km=model.distance,
        )

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities


@dataclass(frozen=True)
class ResolvedLocation:
    """Outcome of resolving a site: the nearest station and the one to fetch from."""
    primary: Location
    forecast_location: Location
    used_fallback: bool = False

    @property
    def location_id(self) -> int:
        return self.forecast_location.id


class LocationResolver:
    """Maps coordinates to a swell-capable upstream location."""

    def __init__(self, client: WillyWeatherClient, search_radius_km: float = SEARCH_RADIUS_KM):
        self.client = client
        self.search_radius_km = search_radius_km

    def resolve(
        self,
        lat: float,
        lon: float,
        radius_km: Optional[float] = None,
        required: Iterable[str] = (WIND, SWELL),
    ) -> ResolvedLocation:
        """Resolve coordinates to the location used for forecast fetches.

        Args:
            lat: Site latitude
            lon: Site longitude
            radius_km: Search radius. Defaults to the resolver's radius.
            required: Capabilities the run needs; only swell triggers the fallback search

        Returns:
            ResolvedLocation

        Raises:
            LocationNotFoundError: No location within the radius
            SwellCapabilityUnavailableError: No swell-capable location, even via fallback
        """
        radius = radius_km if radius_km is not None else self.search_radius_km

        nearest = self.client.search(lat, lon, radius, unit="km")
        if nearest is None:
            raise LocationNotFoundError(f"No forecast location within {radius}km of {lat}, {lon}")
        if nearest.distance is not None and nearest.distance > radius:
            raise LocationNotFoundError(
                f"Nearest location {nearest.id} is {nearest.distance}km from {lat}, {lon} "
                f"(radius {radius}km)"
            )

        primary = Location.from_model(nearest)

        if SWELL not in set(required) or primary.supports(SWELL):
            logger.debug(f"Using location {primary.id} ({primary.name}) for {lat}, {lon}")
            return ResolvedLocation(primary=primary, forecast_location=primary)

        fallback = self.client.closest(primary.id, SWELL)
        if fallback is None:
            raise SwellCapabilityUnavailableError(
                f"Location {primary.id} has no swell data and no swell-capable location was found nearby"
            )

        forecast_location = Location.from_model(fallback)
        if not forecast_location.supports(SWELL):
            raise SwellCapabilityUnavailableError(
                f"Fallback location {forecast_location.id} does not publish swell"
            )

        logger.warning(
            f"Location {primary.id} ({primary.name}) has no swell forecast; "
            f"using {forecast_location.id} ({forecast_location.name}) instead"
        )
        return ResolvedLocation(
            primary=primary,
            forecast_location=forecast_location,
            used_fallback=forecast_location.id != primary.id,
        )

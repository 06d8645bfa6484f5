"""Flattens per-day wind and swell payloads into one time-ordered series.

Wind is the primary series: every wind timestamp becomes one sample. Swell
is sampled more coarsely (2-hourly or sparser beyond the first couple of
days), so where a wind timestamp has no swell entry the last known swell
reading is carried forward. Swell changes slowly; no interpolation is done.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from dive_forecast.clients.schemas import ForecastResponse
from dive_forecast.errors import IncompleteSeriesError, UpstreamPayloadError


logger = logging.getLogger(__name__)

# Factors to canonical units: wind speed in km/h, swell height in metres
WIND_SPEED_TO_KMH = {
    "km/h": 1.0,
    "kmh": 1.0,
    "kph": 1.0,
    "knots": 1.852,
    "kn": 1.852,
    "kt": 1.852,
    "kts": 1.852,
    "m/s": 3.6,
    "mps": 3.6,
    "mph": 1.609344,
}
SWELL_HEIGHT_TO_M = {
    "m": 1.0,
    "ft": 0.3048,
}


@dataclass(frozen=True)
class ForecastSample:
    """One timestep of the merged forecast."""
    timestamp: datetime
    wind_speed: float  # km/h
    wind_direction_degrees: float
    wind_direction_text: str
    swell_height: float  # metres
    swell_direction_text: str
    swell_filled: bool = False  # swell carried forward from an earlier timestep


@dataclass(frozen=True)
class _WindPoint:
    timestamp: datetime
    speed_kmh: float
    direction_degrees: float
    direction_text: str


@dataclass(frozen=True)
class _SwellPoint:
    timestamp: datetime
    height_m: float
    direction_text: str


def _unit_factor(units: dict, key: str, table: dict, default: str) -> float:
    unit = (units.get(key) or default).strip().lower()
    if unit not in table:
        raise UpstreamPayloadError(f"Unsupported {key} unit: {unit!r}")
    return table[unit]


class ForecastNormalizer:
    """Builds an ascending, gap-free ForecastSample sequence from a payload."""

    def normalize(self, payload: ForecastResponse) -> tuple[ForecastSample, ...]:
        """Flatten, merge and fill a forecast payload.

        Args:
            payload: Validated forecast response with wind and swell forecasts

        Returns:
            Samples in ascending timestamp order, one per wind timestamp

        Raises:
            IncompleteSeriesError: Wind or swell missing, or no swell reading
                at the first wind timestamp to carry forward
            UpstreamPayloadError: Unknown units in the payload
        """
        wind = self.flatten_wind(payload)
        swell = self.flatten_swell(payload)

        if not wind:
            raise IncompleteSeriesError("Forecast has no wind entries")
        if not swell:
            raise IncompleteSeriesError("Forecast has no swell entries")

        return self.merge(wind, swell)

    def flatten_wind(self, payload: ForecastResponse) -> list[_WindPoint]:
        forecast = payload.forecasts.wind
        if forecast is None:
            return []

        factor = _unit_factor(forecast.units, "speed", WIND_SPEED_TO_KMH, "km/h")
        entries = (entry for day in forecast.days for entry in day.entries)
        return [
            _WindPoint(
                timestamp=entry.date_time,
                speed_kmh=entry.speed * factor,
                direction_degrees=entry.direction,
                direction_text=entry.direction_text,
            )
            for entry in _dedupe(entries, "wind")
        ]

    def flatten_swell(self, payload: ForecastResponse) -> list[_SwellPoint]:
        forecast = payload.forecasts.swell
        if forecast is None:
            return []

        factor = _unit_factor(forecast.units, "height", SWELL_HEIGHT_TO_M, "m")
        entries = (entry for day in forecast.days for entry in day.entries)
        return [
            _SwellPoint(
                timestamp=entry.date_time,
                height_m=entry.height * factor,
                direction_text=entry.direction_text,
            )
            for entry in _dedupe(entries, "swell")
        ]

    def merge(
        self,
        wind: list[_WindPoint],
        swell: list[_SwellPoint],
    ) -> tuple[ForecastSample, ...]:
        """Left-merge swell onto wind timestamps, carrying swell forward."""
        swell_by_time = {point.timestamp: point for point in swell}

        samples = []
        last_swell: Optional[_SwellPoint] = None
        filled = 0

        for point in wind:
            native = swell_by_time.get(point.timestamp)
            if native is not None:
                last_swell = native
            elif last_swell is None:
                raise IncompleteSeriesError(
                    f"No swell reading at or before the first wind timestamp {point.timestamp}"
                )
            else:
                filled += 1

            samples.append(ForecastSample(
                timestamp=point.timestamp,
                wind_speed=point.speed_kmh,
                wind_direction_degrees=point.direction_degrees,
                wind_direction_text=point.direction_text,
                swell_height=last_swell.height_m,
                swell_direction_text=last_swell.direction_text,
                swell_filled=native is None,
            ))

        if filled:
            logger.debug(f"Carried swell forward for {filled}/{len(samples)} timestamps")

        return tuple(samples)


def _dedupe(entries: Iterable, label: str) -> list:
    """Sort entries by time, keeping the first entry for a repeated timestamp."""
    seen: dict[datetime, object] = {}
    for entry in entries:
        if entry.date_time in seen:
            logger.debug(f"Dropping duplicate {label} entry at {entry.date_time}")
            continue
        seen[entry.date_time] = entry
    return [seen[ts] for ts in sorted(seen)]

"""Shared builders for the forecast test scripts.

Payloads mirror the WillyWeather weather.json layout; sites use the
reference rubric from the scoring examples.
"""

import threading
from datetime import datetime, timedelta
from typing import Optional

from dive_forecast.clients.schemas import ForecastResponse, LocationModel
from dive_forecast.core.site import (
    ConditionTable,
    ConditionTableRow,
    Coordinates,
    DiveSite,
    SwellThresholds,
)


# Reference rubric: two rows at 90°, one at 270°; marginal 1.2m, bad 1.8m
EXAMPLE_ROWS = [
    ConditionTableRow(wind_angle_bucket=90, wind_speed_bucket=0, score=0),
    ConditionTableRow(wind_angle_bucket=90, wind_speed_bucket=15, score=2),
    ConditionTableRow(wind_angle_bucket=270, wind_speed_bucket=15, score=2),
]


def make_site(
    site_id: str = "test_site",
    rows: Optional[list] = None,
    marginal: float = 1.2,
    bad: float = 1.8,
) -> DiveSite:
    return DiveSite(
        id=site_id,
        name=site_id.replace("_", " ").title(),
        coordinates=Coordinates(lat=-33.8, lon=151.29),
        swell_thresholds=SwellThresholds(marginal_height=marginal, bad_height=bad),
        condition_table=ConditionTable.from_rows(EXAMPLE_ROWS if rows is None else rows),
        search_radius_km=20,
    )


def full_table_rows(score: int = 0) -> list[ConditionTableRow]:
    """Every angle/speed bucket rated with the same score."""
    return [
        ConditionTableRow(angle, speed, score)
        for angle in (0, 45, 90, 135, 180, 225, 270, 315)
        for speed in (0, 5, 10, 15)
    ]


def ts(day: int, hour: int, minute: int = 0) -> str:
    return f"2024-03-{day:02d} {hour:02d}:{minute:02d}:00"


def wind_entry(when: str, speed: float, direction: float, text: str = "E") -> dict:
    return {
        "dateTime": when,
        "speed": speed,
        "gustSpeed": speed * 1.3,
        "direction": direction,
        "directionText": text,
    }


def swell_entry(when: str, height: float, text: str = "SSE", direction: float = 157.5) -> dict:
    return {
        "dateTime": when,
        "direction": direction,
        "directionText": text,
        "height": height,
        "period": 9,
    }


def forecast_payload(
    wind_days: Optional[list] = None,
    swell_days: Optional[list] = None,
    wind_units: str = "km/h",
    swell_units: str = "m",
    location_id: int = 4950,
) -> dict:
    """Raw weather.json body; None omits that forecast type."""
    forecasts = {}
    if wind_days is not None:
        forecasts["wind"] = {
            "days": [{"dateTime": day[0]["dateTime"][:10] + " 00:00:00" if day else None, "entries": day}
                     for day in wind_days],
            "units": {"speed": wind_units},
        }
    if swell_days is not None:
        forecasts["swell"] = {
            "days": [{"dateTime": day[0]["dateTime"][:10] + " 00:00:00" if day else None, "entries": day}
                     for day in swell_days],
            "units": {"height": swell_units},
        }
    return {
        "location": {"id": location_id, "name": "Manly", "lat": -33.797, "lng": 151.288},
        "forecasts": forecasts,
    }


def hourly_wind_day(day: int, speed: float = 8, direction: float = 100) -> list:
    return [wind_entry(ts(day, hour), speed, direction) for hour in range(24)]


def two_hourly_swell_day(day: int, height: float = 1.0) -> list:
    return [swell_entry(ts(day, hour), height + hour / 100) for hour in range(0, 24, 2)]


def default_forecast(location_id: int = 4950) -> ForecastResponse:
    """Two days of hourly wind with 2-hourly swell."""
    payload = forecast_payload(
        wind_days=[hourly_wind_day(1), hourly_wind_day(2)],
        swell_days=[two_hourly_swell_day(1), two_hourly_swell_day(2)],
        location_id=location_id,
    )
    return ForecastResponse.model_validate(payload)


def location(location_id: int = 4950, weather_types=("wind", "swell"), distance: float = 1.2) -> LocationModel:
    return LocationModel.model_validate({
        "id": location_id,
        "name": f"Location {location_id}",
        "lat": -33.797,
        "lng": 151.288,
        "distance": distance,
        "weatherTypes": list(weather_types),
    })


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: datetime = datetime(2024, 3, 1, 6, 0)):
        self.now = start
        self._lock = threading.Lock()

    def __call__(self) -> datetime:
        with self._lock:
            return self.now

    def advance(self, **kwargs) -> None:
        with self._lock:
            self.now += timedelta(**kwargs)

"""
Pydantic schemas for WillyWeather API responses.

Only the fields the pipeline reads are declared; everything else in the
payload is ignored. Timestamps arrive as local "YYYY-MM-DD HH:MM:SS" strings.
"""

from datetime import datetime
from typing import Annotated, Dict, List, Optional, Union

from pydantic import AliasChoices, BaseModel, BeforeValidator, Field, field_validator


def parse_local_datetime(v: Union[str, datetime, None]) -> Optional[datetime]:
    """Convert a WillyWeather "YYYY-MM-DD HH:MM:SS" string to a naive datetime."""
    if v is None or isinstance(v, datetime):
        return v
    if isinstance(v, str):
        return datetime.fromisoformat(v.strip())
    raise ValueError(f"Unsupported timestamp: {v!r}")


LocalDateTime = Annotated[datetime, BeforeValidator(parse_local_datetime)]


class LocationModel(BaseModel):
    """A forecast location (station)."""

    id: int
    name: str = ""
    region: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    distance: Optional[float] = None
    weather_types: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("weatherTypes", "capabilities"),
    )

    model_config = {"extra": "ignore"}

    @field_validator("weather_types", mode="before")
    @classmethod
    def _lowercase_types(cls, v):
        if v is None:
            return []
        return [str(t).lower() for t in v]


class SearchResponse(BaseModel):
    """Response of /search.json (nearest location to a point)."""

    location: Optional[LocationModel] = None

    model_config = {"extra": "ignore"}


class ClosestResponse(BaseModel):
    """Response of /search/closest.json, keyed by weather type."""

    wind: List[LocationModel] = Field(default_factory=list)
    swell: List[LocationModel] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


class WindEntry(BaseModel):
    """A single wind forecast point."""

    date_time: LocalDateTime = Field(alias="dateTime")
    speed: float
    gust_speed: Optional[float] = Field(default=None, alias="gustSpeed")
    direction: float
    direction_text: str = Field(default="", alias="directionText")

    model_config = {"extra": "ignore", "populate_by_name": True}


class SwellEntry(BaseModel):
    """A single swell forecast point."""

    date_time: LocalDateTime = Field(alias="dateTime")
    height: float
    period: Optional[float] = None
    direction: Optional[float] = None
    direction_text: str = Field(default="", alias="directionText")

    model_config = {"extra": "ignore", "populate_by_name": True}


class WindDay(BaseModel):
    date_time: Optional[LocalDateTime] = Field(default=None, alias="dateTime")
    entries: List[WindEntry] = Field(default_factory=list)

    model_config = {"extra": "ignore", "populate_by_name": True}


class SwellDay(BaseModel):
    date_time: Optional[LocalDateTime] = Field(default=None, alias="dateTime")
    entries: List[SwellEntry] = Field(default_factory=list)

    model_config = {"extra": "ignore", "populate_by_name": True}


class WindForecast(BaseModel):
    days: List[WindDay] = Field(default_factory=list)
    units: Dict[str, str] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}


class SwellForecast(BaseModel):
    days: List[SwellDay] = Field(default_factory=list)
    units: Dict[str, str] = Field(default_factory=dict)

    model_config = {"extra": "ignore"}


class Forecasts(BaseModel):
    wind: Optional[WindForecast] = None
    swell: Optional[SwellForecast] = None

    model_config = {"extra": "ignore"}


class ForecastResponse(BaseModel):
    """Response of /locations/{id}/weather.json."""

    location: Optional[LocationModel] = None
    forecasts: Forecasts = Field(default_factory=Forecasts)

    model_config = {"extra": "ignore"}

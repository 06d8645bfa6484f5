"""Core forecast resolution, normalization, scoring and caching."""

from dive_forecast.core.cache import CacheEntry, ForecastCache, ForecastResult
from dive_forecast.core.fetcher import ForecastFetcher
from dive_forecast.core.normalizer import ForecastNormalizer, ForecastSample
from dive_forecast.core.pipeline import CollectedForecast, ForecastPipeline
from dive_forecast.core.resolver import Location, LocationResolver, ResolvedLocation
from dive_forecast.core.scorer import (
    ConditionLabel,
    ConditionScorer,
    DaySummary,
    ScoredSample,
    ScoredSeries,
    quantize_wind_direction,
    quantize_wind_speed,
    score_swell,
)
from dive_forecast.core.site import (
    ConditionTable,
    ConditionTableRow,
    Coordinates,
    DiveSite,
    SiteDatabase,
    SwellThresholds,
)

__all__ = [
    # Cache
    "CacheEntry",
    "ForecastCache",
    "ForecastResult",
    # Pipeline stages
    "CollectedForecast",
    "ForecastFetcher",
    "ForecastNormalizer",
    "ForecastPipeline",
    "ForecastSample",
    "Location",
    "LocationResolver",
    "ResolvedLocation",
    # Scorer
    "ConditionLabel",
    "ConditionScorer",
    "DaySummary",
    "ScoredSample",
    "ScoredSeries",
    "quantize_wind_direction",
    "quantize_wind_speed",
    "score_swell",
    # Site
    "ConditionTable",
    "ConditionTableRow",
    "Coordinates",
    "DiveSite",
    "SiteDatabase",
    "SwellThresholds",
]

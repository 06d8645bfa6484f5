"""Forecast pipeline for a single site.

Runs the stages strictly in order:
- LocationResolver (resolver.py): site coordinates -> upstream location
- ForecastFetcher (fetcher.py): raw wind + swell payload
- ForecastNormalizer (normalizer.py): merged, carried-forward samples
- ConditionScorer (scorer.py): per-sample scores against the site's table
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Optional

from dive_forecast.clients.willyweather_client import WillyWeatherClient
from dive_forecast.config import ForecastSettings
from dive_forecast.core.fetcher import ForecastFetcher
from dive_forecast.core.normalizer import ForecastNormalizer, ForecastSample
from dive_forecast.core.resolver import LocationResolver, ResolvedLocation
from dive_forecast.core.scorer import ConditionScorer, ScoredSeries
from dive_forecast.core.site import DiveSite


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CollectedForecast:
    """Normalized samples plus the location they came from."""
    location: ResolvedLocation
    samples: tuple[ForecastSample, ...]


class ForecastPipeline:
    """Resolver -> Fetcher -> Normalizer -> Scorer for one site at a time."""

    def __init__(
        self,
        client: Optional[WillyWeatherClient] = None,
        resolver: Optional[LocationResolver] = None,
        fetcher: Optional[ForecastFetcher] = None,
        normalizer: Optional[ForecastNormalizer] = None,
        scorer: Optional[ConditionScorer] = None,
        settings: Optional[ForecastSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the pipeline with optional dependency injection.

        Args:
            client: WillyWeather client. Built from settings if omitted.
            resolver: Location resolver.
            fetcher: Forecast fetcher.
            normalizer: Payload normalizer.
            scorer: Condition scorer.
            settings: Settings used for defaults. Defaults to ForecastSettings() (environment and .env).
            clock: Returns the current local time; used for the fallback start date.
        """
        settings = settings or ForecastSettings()
        if client is None and (resolver is None or fetcher is None):
            client = WillyWeatherClient.from_settings(settings)

        self.resolver = resolver or LocationResolver(client, search_radius_km=settings.search_radius_km)
        self.fetcher = fetcher or ForecastFetcher(client, days=settings.forecast_days)
        self.normalizer = normalizer or ForecastNormalizer()
        self.scorer = scorer or ConditionScorer()
        self._clock = clock or datetime.now

    def collect(self, site: DiveSite) -> CollectedForecast:
        """Resolve, fetch and normalize the forecast for a site.

        Raises:
            ForecastError: Any resolver, fetcher or normalizer failure
        """
        location = self.resolver.resolve(
            site.coordinates.lat,
            site.coordinates.lon,
            radius_km=site.search_radius_km,
        )

        start_date: Optional[date] = None
        if location.used_fallback:
            start_date = self._clock().date()

        payload = self.fetcher.fetch(location.location_id, start_date=start_date)
        samples = self.normalizer.normalize(payload)

        logger.info(
            f"{site.id}: {len(samples)} samples from location {location.location_id}"
            f" ({samples[0].timestamp} to {samples[-1].timestamp})"
        )
        return CollectedForecast(location=location, samples=samples)

    def score(self, site: DiveSite, collected: CollectedForecast) -> ScoredSeries:
        """Score collected samples against the site's current table."""
        return self.scorer.score_series(
            site,
            collected.samples,
            location_id=collected.location.location_id,
        )

    def run(self, site: DiveSite) -> ScoredSeries:
        """Run every stage for a site, uncached."""
        return self.score(site, self.collect(site))

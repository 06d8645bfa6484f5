"""Per-site forecast cache with TTL and single-flight refresh.

The upstream API is paid and rate-limited, so scored series are kept for a
fixed TTL (3 hours by default). Concurrent misses for the same site share one
pipeline run. Each in-flight site refresh gets its own thread, so a slow
upstream call for one site never holds up another site.

Entries are immutable and replaced whole under a lock, so a reader either
sees the previous entry or the new one, never a partial update.

If a refresh fails and an older entry exists, the older entry is served with
stale=True instead of failing the caller.
"""

import logging
import threading
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from dive_forecast.config import CACHE_TTL
from dive_forecast.core.normalizer import ForecastSample
from dive_forecast.core.pipeline import CollectedForecast, ForecastPipeline
from dive_forecast.core.scorer import ScoredSeries
from dive_forecast.core.site import DiveSite, SiteDatabase
from dive_forecast.errors import CacheClosedError, ForecastError, RefreshTimeoutError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    """A committed scored series for one site."""
    site_id: str
    fetched_at: datetime
    ttl: timedelta
    series: ScoredSeries
    collected: CollectedForecast

    @property
    def samples(self) -> tuple[ForecastSample, ...]:
        return self.collected.samples

    @property
    def table_version(self) -> int:
        return self.series.table_version

    def is_fresh(self, now: datetime) -> bool:
        return now - self.fetched_at < self.ttl


@dataclass(frozen=True)
class ForecastResult:
    """What a cache read hands back to the caller."""
    site_id: str
    series: ScoredSeries
    fetched_at: datetime
    stale: bool = False
    error: Optional[Exception] = None


class ForecastCache:
    """TTL cache of scored series, keyed by site id."""

    def __init__(
        self,
        pipeline: ForecastPipeline,
        site_db: SiteDatabase,
        ttl: timedelta = CACHE_TTL,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        """Initialize the cache.

        Args:
            pipeline: Pipeline used to collect and score on a miss
            site_db: Source of the latest committed site configuration
            ttl: How long an entry is served without refreshing
            clock: Returns the current time. Defaults to datetime.now.
        """
        self.pipeline = pipeline
        self.site_db = site_db
        self.ttl = ttl
        self._clock = clock or datetime.now
        self._entries: dict[str, CacheEntry] = {}
        self._inflight: dict[str, Future] = {}
        self._threads: dict[str, threading.Thread] = {}
        self._lock = threading.Lock()
        self._closed = False

    def __enter__(self) -> "ForecastCache":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        """Wait for in-flight refreshes; later misses raise CacheClosedError."""
        with self._lock:
            self._closed = True
            threads = list(self._threads.values())
        for thread in threads:
            thread.join()

    def get(self, site_id: str, timeout: Optional[float] = None) -> ForecastResult:
        """Get the scored series for a site, refreshing it if needed.

        Args:
            site_id: Site identifier
            timeout: Seconds to wait on an in-flight refresh. The refresh keeps
                running after the caller gives up and still updates the cache.

        Returns:
            ForecastResult; stale=True when an old entry is served after a
            failed or timed-out refresh

        Raises:
            SiteNotFoundError: Unknown site
            ForecastError: Refresh failed and there is no entry to fall back on
            CacheClosedError: A refresh is needed after close()
        """
        site = self.site_db.get_site(site_id)

        entry = self._entries.get(site_id)
        if entry is not None and entry.is_fresh(self._clock()):
            if entry.table_version != site.condition_table.version:
                entry = self._rescore(entry, site)
            else:
                logger.debug(f"Cache hit for {site_id} (fetched {entry.fetched_at})")
            return self._result(entry)

        future = self._start_refresh(site_id)
        try:
            entry = future.result(timeout=timeout)
        except FutureTimeoutError:
            return self._fallback(
                site_id,
                RefreshTimeoutError(f"Timed out after {timeout}s waiting for {site_id} refresh"),
            )
        except ForecastError as e:
            return self._fallback(site_id, e)

        return self._result(entry)

    def peek(self, site_id: str) -> Optional[CacheEntry]:
        """Current entry for a site, fresh or not, without refreshing."""
        return self._entries.get(site_id)

    def invalidate(self, site_id: str) -> None:
        """Drop a site's entry so the next get refreshes it."""
        with self._lock:
            self._entries.pop(site_id, None)

    def _start_refresh(self, site_id: str) -> Future:
        """Join the in-flight refresh for a site, or start one on its own thread."""
        with self._lock:
            if self._closed:
                raise CacheClosedError(f"Cache is closed; cannot refresh {site_id}")

            future = self._inflight.get(site_id)
            if future is not None:
                logger.debug(f"Joining in-flight refresh for {site_id}")
                return future

            # A refresh may have committed between the caller's check and here
            entry = self._entries.get(site_id)
            if entry is not None and entry.is_fresh(self._clock()):
                future = Future()
                future.set_result(entry)
                return future

            future = Future()
            thread = threading.Thread(
                target=self._refresh,
                args=(site_id, future),
                name=f"forecast-refresh-{site_id}",
                daemon=True,
            )
            self._inflight[site_id] = future
            self._threads[site_id] = thread
            thread.start()
            return future

    def _refresh(self, site_id: str, future: Future) -> None:
        """Run the pipeline for a site, commit the new entry and complete the future."""
        started_at = self._clock()
        logger.info(f"Refreshing forecast for {site_id}")
        try:
            collected = self.pipeline.collect(self.site_db.get_site(site_id))
            # Score against whatever table is committed now, after the fetch
            site = self.site_db.get_site(site_id)
            series = self.pipeline.score(site, collected)
            entry = CacheEntry(
                site_id=site_id,
                fetched_at=started_at,
                ttl=self.ttl,
                series=series,
                collected=collected,
            )
        except Exception as e:
            with self._lock:
                self._inflight.pop(site_id, None)
            logger.warning(f"Refresh failed for {site_id}: {e}")
            future.set_exception(e)
            return

        with self._lock:
            self._entries[site_id] = entry
            self._inflight.pop(site_id, None)
        future.set_result(entry)

    def _rescore(self, entry: CacheEntry, site: DiveSite) -> CacheEntry:
        """Re-score cached samples after a condition table change, without refetching."""
        logger.info(
            f"Condition table for {site.id} changed "
            f"(v{entry.table_version} -> v{site.condition_table.version}); rescoring cached forecast"
        )
        series = self.pipeline.score(site, entry.collected)
        rescored = replace(entry, series=series)

        with self._lock:
            if self._entries.get(site.id) is entry:
                self._entries[site.id] = rescored
        return rescored

    def _fallback(self, site_id: str, error: ForecastError) -> ForecastResult:
        """Serve the previous entry after a failed refresh, or raise."""
        entry = self._entries.get(site_id)
        if entry is None:
            raise error

        logger.warning(
            f"Serving stale forecast for {site_id} (fetched {entry.fetched_at}): {error}"
        )
        return self._result(entry, stale=True, error=error)

    def _result(
        self,
        entry: CacheEntry,
        stale: bool = False,
        error: Optional[Exception] = None,
    ) -> ForecastResult:
        return ForecastResult(
            site_id=entry.site_id,
            series=entry.series,
            fetched_at=entry.fetched_at,
            stale=stale,
            error=error,
        )

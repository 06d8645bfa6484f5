#!/usr/bin/env python3
"""Test script for the forecast cache: TTL, single-flight refresh and stale fallback.

Run from project root:
    python scripts/test_cache.py
"""

import sys
import threading
import time
from pathlib import Path

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dive_forecast.core.cache import ForecastCache
from dive_forecast.core.normalizer import ForecastNormalizer
from dive_forecast.core.pipeline import CollectedForecast
from dive_forecast.core.resolver import Location, ResolvedLocation
from dive_forecast.core.scorer import ConditionScorer
from dive_forecast.core.site import ConditionTableRow, SiteDatabase
from dive_forecast.errors import (
    CacheClosedError,
    RefreshTimeoutError,
    SiteNotFoundError,
    UpstreamUnavailableError,
)

from forecast_fixtures import FakeClock, default_forecast, full_table_rows, make_site


class StubPipeline:
    """Counts collect() calls; each site can be held on an Event until released."""

    def __init__(self):
        self.calls: dict[str, int] = {}
        self.gates: dict[str, threading.Event] = {}
        self.error = None
        self.scorer = ConditionScorer()
        self._samples = ForecastNormalizer().normalize(default_forecast())
        self._lock = threading.Lock()

    def total_calls(self) -> int:
        with self._lock:
            return sum(self.calls.values())

    def collect(self, site):
        with self._lock:
            self.calls[site.id] = self.calls.get(site.id, 0) + 1
        gate = self.gates.get(site.id)
        if gate is not None:
            gate.wait(5)
        if self.error is not None:
            raise self.error
        loc = Location(id=4950, latitude=-33.8, longitude=151.29, capabilities=frozenset({"wind", "swell"}))
        return CollectedForecast(
            location=ResolvedLocation(primary=loc, forecast_location=loc),
            samples=self._samples,
        )

    def score(self, site, collected):
        return self.scorer.score_series(site, collected.samples, location_id=collected.location.location_id)


def make_cache(site_ids=("test_site",), clock=None):
    site_db = SiteDatabase(sites=[make_site(site_id) for site_id in site_ids])
    pipeline = StubPipeline()
    clock = clock or FakeClock()
    cache = ForecastCache(pipeline, site_db, clock=clock)
    return cache, pipeline, site_db, clock


def wait_for(predicate, timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_ttl_boundaries():
    """Hit just inside the 3h TTL, refresh just after it."""
    cache, pipeline, _, clock = make_cache()
    with cache:
        first = cache.get("test_site")
        assert pipeline.total_calls() == 1
        assert not first.stale
        assert len(cache.peek("test_site").samples) == len(first.series) == 48

        clock.advance(hours=2, minutes=59)
        second = cache.get("test_site")
        assert pipeline.total_calls() == 1
        assert second.series is first.series

        clock.advance(minutes=2)
        third = cache.get("test_site")
        assert pipeline.total_calls() == 2
        assert third.series is not first.series
        assert third.fetched_at == clock()


def test_single_flight():
    """Eight concurrent misses for one site share a single pipeline run."""
    cache, pipeline, _, _ = make_cache()
    gate = threading.Event()
    pipeline.gates["test_site"] = gate

    n_callers = 8
    barrier = threading.Barrier(n_callers)
    results = []
    errors = []
    results_lock = threading.Lock()

    def caller():
        barrier.wait()
        try:
            result = cache.get("test_site")
        except Exception as e:
            with results_lock:
                errors.append(e)
            return
        with results_lock:
            results.append(result)

    with cache:
        threads = [threading.Thread(target=caller) for _ in range(n_callers)]
        for t in threads:
            t.start()

        assert wait_for(lambda: pipeline.total_calls() == 1)
        # Let every caller reach the cache before releasing the fetch
        time.sleep(0.1)
        gate.set()

        for t in threads:
            t.join(timeout=5)

    print(f"  {n_callers} callers, {pipeline.total_calls()} pipeline run(s)")

    assert not errors
    assert len(results) == n_callers
    assert pipeline.total_calls() == 1
    assert all(r.series is results[0].series for r in results)


def test_sites_refresh_independently():
    """A slow refresh for one site does not block another."""
    cache, pipeline, _, _ = make_cache(site_ids=("slow_site", "fast_site"))
    gate = threading.Event()
    pipeline.gates["slow_site"] = gate

    with cache:
        slow = threading.Thread(target=cache.get, args=("slow_site",))
        slow.start()
        assert wait_for(lambda: pipeline.calls.get("slow_site") == 1)

        result = cache.get("fast_site", timeout=2)
        assert result.site_id == "fast_site"
        assert cache.peek("slow_site") is None

        gate.set()
        slow.join(timeout=5)

    assert cache.peek("slow_site") is not None


def test_many_slow_sites_do_not_block_another():
    """Six sites stuck upstream at once still leave a seventh free to refresh."""
    slow_ids = [f"slow{i}" for i in range(6)]
    cache, pipeline, _, _ = make_cache(site_ids=slow_ids + ["fast"])
    gate = threading.Event()
    for site_id in slow_ids:
        pipeline.gates[site_id] = gate

    with cache:
        callers = [threading.Thread(target=cache.get, args=(site_id,)) for site_id in slow_ids]
        for t in callers:
            t.start()

        # Every slow refresh is running at the same time, none queued
        assert wait_for(lambda: all(pipeline.calls.get(s) == 1 for s in slow_ids))

        result = cache.get("fast", timeout=2)
        assert result.site_id == "fast"
        assert not result.stale
        assert pipeline.calls["fast"] == 1
        assert all(cache.peek(s) is None for s in slow_ids)

        gate.set()
        for t in callers:
            t.join(timeout=5)

    assert all(cache.peek(s) is not None for s in slow_ids)


def test_get_after_close():
    cache, pipeline, _, _ = make_cache(site_ids=("test_site", "other_site"))
    with cache:
        cache.get("test_site")

    # Fresh entries are still served; a miss cannot start a refresh
    assert cache.get("test_site").series is cache.peek("test_site").series
    try:
        cache.get("other_site")
    except CacheClosedError as e:
        print(f"  Raised: {e}")
        assert pipeline.total_calls() == 1
        return
    raise AssertionError("Expected CacheClosedError")


def test_stale_fallback():
    cache, pipeline, _, clock = make_cache()
    with cache:
        fresh = cache.get("test_site")

        clock.advance(hours=4)
        pipeline.error = UpstreamUnavailableError("WillyWeather down")
        result = cache.get("test_site")

    print(f"  Served stale: {result.stale}, error: {result.error}")

    assert result.stale
    assert result.series is fresh.series
    assert result.fetched_at == fresh.fetched_at
    assert isinstance(result.error, UpstreamUnavailableError)
    assert pipeline.total_calls() == 2


def test_failure_without_entry_propagates():
    cache, pipeline, _, _ = make_cache()
    pipeline.error = UpstreamUnavailableError("WillyWeather down")

    with cache:
        try:
            cache.get("test_site")
        except UpstreamUnavailableError:
            assert cache.peek("test_site") is None
            return
    raise AssertionError("Expected UpstreamUnavailableError")


def test_failed_refresh_is_retried_next_call():
    cache, pipeline, _, _ = make_cache()
    pipeline.error = UpstreamUnavailableError("WillyWeather down")

    with cache:
        try:
            cache.get("test_site")
        except UpstreamUnavailableError:
            pass
        pipeline.error = None
        result = cache.get("test_site")

    assert not result.stale
    assert pipeline.total_calls() == 2


def test_timeout_without_entry():
    """Caller gives up; the refresh keeps running and still fills the cache."""
    cache, pipeline, _, _ = make_cache()
    gate = threading.Event()
    pipeline.gates["test_site"] = gate

    with cache:
        try:
            cache.get("test_site", timeout=0.05)
        except RefreshTimeoutError as e:
            print(f"  Raised: {e}")
        else:
            raise AssertionError("Expected RefreshTimeoutError")

        gate.set()
        assert wait_for(lambda: cache.peek("test_site") is not None)

        result = cache.get("test_site")
        assert not result.stale
        assert pipeline.total_calls() == 1


def test_timeout_with_stale_entry():
    cache, pipeline, _, clock = make_cache()
    with cache:
        fresh = cache.get("test_site")

        clock.advance(hours=3, minutes=1)
        gate = threading.Event()
        pipeline.gates["test_site"] = gate
        result = cache.get("test_site", timeout=0.05)

        assert result.stale
        assert result.series is fresh.series
        assert isinstance(result.error, RefreshTimeoutError)
        gate.set()


def test_table_change_rescores_without_fetch():
    cache, pipeline, site_db, _ = make_cache()
    with cache:
        before = cache.get("test_site")
        assert before.series.table_version == 1
        assert before.series.unscored_count == 0

        site_db.replace_condition_table("test_site", full_table_rows(score=2))
        after = cache.get("test_site")

        assert pipeline.total_calls() == 1
        assert after.series.table_version == 2
        assert after.fetched_at == before.fetched_at
        assert all(s.total_score == 2 for s in after.series.samples)

        # Rescored entry replaces the old one
        assert cache.get("test_site").series is after.series


def test_table_edit_removing_row_leaves_samples_unscored():
    cache, pipeline, site_db, _ = make_cache()
    with cache:
        cache.get("test_site")
        site_db.replace_condition_table("test_site", [ConditionTableRow(270, 15, 2)])
        result = cache.get("test_site")

    assert result.series.unscored_count == len(result.series)
    assert result.series.missing_buckets == frozenset({(90, 0)})


def test_invalidate():
    cache, pipeline, _, _ = make_cache()
    with cache:
        cache.get("test_site")
        cache.invalidate("test_site")
        cache.get("test_site")

    assert pipeline.total_calls() == 2


def test_unknown_site():
    cache, pipeline, _, _ = make_cache()
    with cache:
        try:
            cache.get("atlantis")
        except SiteNotFoundError:
            assert pipeline.total_calls() == 0
            return
    raise AssertionError("Expected SiteNotFoundError")


def run_all_tests():
    """Run all tests and report results."""
    print("\n" + "#"*60)
    print("# FORECAST CACHE TEST SUITE")
    print("#"*60)

    tests = [
        ("TTL Boundaries", test_ttl_boundaries),
        ("Single Flight", test_single_flight),
        ("Independent Sites", test_sites_refresh_independently),
        ("More Slow Sites Than Threads", test_many_slow_sites_do_not_block_another),
        ("Get After Close", test_get_after_close),
        ("Stale Fallback", test_stale_fallback),
        ("Failure Without Entry", test_failure_without_entry_propagates),
        ("Failed Refresh Retried", test_failed_refresh_is_retried_next_call),
        ("Timeout Without Entry", test_timeout_without_entry),
        ("Timeout With Stale Entry", test_timeout_with_stale_entry),
        ("Table Change Rescores", test_table_change_rescores_without_fetch),
        ("Table Row Removed", test_table_edit_removing_row_leaves_samples_unscored),
        ("Invalidate", test_invalidate),
        ("Unknown Site", test_unknown_site),
    ]

    passed = 0
    failed = 0

    for name, test_func in tests:
        print(f"\n{name}")
        try:
            test_func()
            passed += 1
            print("  ✓ passed")
        except AssertionError as e:
            failed += 1
            print(f"  ✗ FAILED: {e}")
        except Exception as e:
            failed += 1
            print(f"  ✗ ERROR: {e}")

    print("\n" + "="*60)
    print(f"  Passed: {passed}  Failed: {failed}  Total: {len(tests)}")
    print("="*60)

    return failed == 0


if __name__ == "__main__":
    success = run_all_tests()
    sys.exit(0 if success else 1)

#!/usr/bin/env python3
"""Scored dive forecast runner.

Fetches, scores and prints the forecast series for one or more sites.

Usage:
    # Print a table for one site
    python scripts/run_forecast.py shelly_beach

    # Several sites, CSV for the charting job
    python scripts/run_forecast.py shelly_beach gordons_bay --format csv -o forecast.csv

    # Per-day outlook only
    python scripts/run_forecast.py --all --format daily

    # Use a different site file
    python scripts/run_forecast.py gordons_bay --sites config/sites.yaml
"""

import argparse
import json
import logging
import sys
from pathlib import Path

import pandas as pd

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from dive_forecast.config import ForecastSettings
from dive_forecast.core.cache import ForecastCache, ForecastResult
from dive_forecast.core.pipeline import ForecastPipeline
from dive_forecast.core.site import SiteDatabase
from dive_forecast.errors import ForecastError


def setup_logging(verbose: bool = False):
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    # Quiet down noisy loggers
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def parse_args():
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Fetch and score wind/swell forecasts for dive sites",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "site_ids",
        nargs="*",
        help="Site ids from the sites file",
    )

    parser.add_argument(
        "--all",
        action="store_true",
        help="Score every site in the sites file",
    )

    parser.add_argument(
        "--sites",
        type=str,
        help="Path to sites.yaml (default: config/sites.yaml)",
    )

    parser.add_argument(
        "--format",
        choices=["text", "csv", "json", "daily"],
        default="text",
        help="Output format (default: text)",
    )

    parser.add_argument(
        "--output", "-o",
        type=str,
        help="Write output to file instead of stdout",
    )

    parser.add_argument(
        "--timeout",
        type=float,
        default=None,
        help="Seconds to wait for each site's forecast",
    )

    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser.parse_args()


def results_frame(results: list[ForecastResult]) -> pd.DataFrame:
    """Stack per-site series into one frame with a site_id column."""
    frames = []
    for result in results:
        df = result.series.to_frame()
        df.insert(0, "site_id", result.site_id)
        frames.append(df)
    if not frames:
        return pd.DataFrame()
    return pd.concat(frames, ignore_index=True)


def format_daily(results: list[ForecastResult]) -> str:
    lines = []
    for result in results:
        series = result.series
        header = f"{result.site_id} (location {series.location_id}, fetched {result.fetched_at:%Y-%m-%d %H:%M})"
        if result.stale:
            header += " [STALE]"
        lines.append(header)
        for day in series.daily_summary():
            best = "-" if day.best_score is None else day.best_score
            worst = "-" if day.worst_score is None else day.worst_score
            line = f"  {day.date:%a %d %b}: {day.outlook.value:<9} best={best} worst={worst}"
            if day.unscored_count:
                line += f" ({day.unscored_count} unscored)"
            lines.append(line)
        lines.append("")
    return "\n".join(lines)


def format_output(results: list[ForecastResult], output_format: str) -> str:
    """Format results in the requested format."""
    if output_format == "daily":
        return format_daily(results)

    df = results_frame(results)
    if output_format == "csv":
        return df.to_csv(index=False)
    if output_format == "json":
        records = json.loads(df.to_json(orient="records", date_format="iso"))
        return json.dumps(records, indent=2)
    return df.to_string(index=False)


def main():
    """Main entry point."""
    args = parse_args()
    setup_logging(args.verbose)

    site_db = SiteDatabase(Path(args.sites) if args.sites else None)
    site_ids = [s.id for s in site_db.get_all_sites()] if args.all else args.site_ids
    if not site_ids:
        print("No sites given (pass site ids or --all)", file=sys.stderr)
        return 2

    settings = ForecastSettings()
    pipeline = ForecastPipeline(settings=settings)

    results = []
    errors = []
    with ForecastCache(pipeline, site_db, ttl=settings.cache_ttl) as cache:
        for site_id in site_ids:
            try:
                results.append(cache.get(site_id, timeout=args.timeout))
            except ForecastError as e:
                errors.append(f"{site_id}: {e}")

    output = format_output(results, args.format)

    if args.output:
        output_path = Path(args.output)
        output_path.write_text(output)
        print(f"Output written to: {output_path}", file=sys.stderr)
    else:
        print(output)

    # Summary (always to stderr so it doesn't pollute piped output)
    print(file=sys.stderr)
    print("=" * 50, file=sys.stderr)
    print("SUMMARY", file=sys.stderr)
    print("=" * 50, file=sys.stderr)
    for result in results:
        series = result.series
        stale = " (stale)" if result.stale else ""
        print(
            f"  {result.site_id}: {len(series)} samples, {series.unscored_count} unscored{stale}",
            file=sys.stderr,
        )
    for err in errors:
        print(f"  Forecast unavailable - {err}", file=sys.stderr)
    print("=" * 50, file=sys.stderr)

    return 1 if errors else 0


if __name__ == "__main__":
    sys.exit(main())

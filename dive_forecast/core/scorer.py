"""Dive condition scoring against a site's condition table.

Scoring approach:
- Wind speed (km/h) is converted to knots and snapped down to a 5-knot
  bucket, clamped to 0-15
- Wind direction is rounded to the nearest 45° bucket, 360° folded to 0°
- (angle, speed) is looked up in the site's condition table -> wind score
- Swell height is stepped against the site's two thresholds -> swell score
- Total = min(wind + swell, 2), so two mild factors never rate worse than
  one bad factor

Scores: 0 = ideal, 1 = marginal, 2 = poor.

A bucket pair missing from the table leaves the sample unscored (wind and
total score None). Unscored samples stay in the series but are left out of
the summaries.
"""

import logging
import math
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Iterable, Optional

import pandas as pd

from dive_forecast.core.normalizer import ForecastSample
from dive_forecast.core.site import DiveSite, SwellThresholds


logger = logging.getLogger(__name__)


KMH_TO_KNOTS = 0.54
SPEED_BUCKET_KN = 5
MAX_SPEED_BUCKET_KN = 15
ANGLE_BUCKET_DEG = 45
MAX_TOTAL_SCORE = 2

OUTPUT_COLUMNS = [
    "time",
    "wind_speed_kn",
    "wind_direction_deg",
    "wind_direction_text",
    "swell_height_m",
    "swell_direction_text",
    "wind_score",
    "swell_score",
    "total_score",
]


class ConditionLabel(Enum):
    """Qualitative label for a total score."""
    IDEAL = "ideal"
    MARGINAL = "marginal"
    POOR = "poor"
    UNSCORED = "unscored"

    @classmethod
    def from_score(cls, score: Optional[int]) -> "ConditionLabel":
        if score is None:
            return cls.UNSCORED
        return (cls.IDEAL, cls.MARGINAL, cls.POOR)[score]


def kmh_to_knots(speed_kmh: float) -> float:
    return speed_kmh * KMH_TO_KNOTS


def quantize_wind_speed(speed_kn: float) -> int:
    """Snap a wind speed in knots down to its 5-knot bucket, clamped to [0, 15].

    Anything at or above 15 knots lands in the 15 bucket.
    """
    bucket = math.floor(speed_kn / SPEED_BUCKET_KN) * SPEED_BUCKET_KN
    return int(min(max(bucket, 0), MAX_SPEED_BUCKET_KN))


def quantize_wind_direction(degrees: float) -> int:
    """Round a direction to the nearest 45° bucket in [0, 315].

    Periodic: quantize_wind_direction(θ) == quantize_wind_direction(θ % 360)
    for any θ, negative or above 360.
    """
    bucket = round((degrees % 360) / ANGLE_BUCKET_DEG) * ANGLE_BUCKET_DEG
    return int(bucket % 360)


def score_swell(height_m: float, thresholds: SwellThresholds) -> int:
    """Step function: <= marginal -> 0, <= bad -> 1, above bad -> 2."""
    if height_m <= thresholds.marginal_height:
        return 0
    if height_m <= thresholds.bad_height:
        return 1
    return 2


def combine_scores(wind_score: Optional[int], swell_score: int) -> Optional[int]:
    """Saturating sum of the two factor scores; None if wind is unscored."""
    if wind_score is None:
        return None
    return min(wind_score + swell_score, MAX_TOTAL_SCORE)


@dataclass(frozen=True)
class ScoredSample:
    """A forecast sample with its quantized wind and condition scores."""
    sample: ForecastSample
    wind_speed_kn: float
    angle_bucket: int
    speed_bucket: int
    wind_score: Optional[int]
    swell_score: int
    total_score: Optional[int]

    @property
    def timestamp(self) -> datetime:
        return self.sample.timestamp

    @property
    def is_scored(self) -> bool:
        return self.total_score is not None

    @property
    def label(self) -> ConditionLabel:
        return ConditionLabel.from_score(self.total_score)

    def to_record(self) -> dict:
        """Row in the charting output format."""
        return {
            "time": self.sample.timestamp,
            "wind_speed_kn": round(self.wind_speed_kn, 2),
            "wind_direction_deg": self.sample.wind_direction_degrees,
            "wind_direction_text": self.sample.wind_direction_text,
            "swell_height_m": self.sample.swell_height,
            "swell_direction_text": self.sample.swell_direction_text,
            "wind_score": self.wind_score,
            "swell_score": self.swell_score,
            "total_score": self.total_score,
        }


@dataclass(frozen=True)
class DaySummary:
    """Scored-sample summary for one calendar day."""
    date: date
    best_score: Optional[int]
    worst_score: Optional[int]
    scored_count: int
    unscored_count: int

    @property
    def outlook(self) -> ConditionLabel:
        """Label of the best scored window of the day."""
        return ConditionLabel.from_score(self.best_score)


@dataclass(frozen=True)
class ScoredSeries:
    """Time-ordered scored samples for one site."""
    site_id: str
    location_id: Optional[int]
    table_version: int
    samples: tuple[ScoredSample, ...]

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def scored_samples(self) -> list[ScoredSample]:
        return [s for s in self.samples if s.is_scored]

    @property
    def unscored_count(self) -> int:
        return sum(1 for s in self.samples if not s.is_scored)

    @property
    def missing_buckets(self) -> frozenset:
        """(angle, speed) pairs that had no row in the condition table."""
        return frozenset(
            (s.angle_bucket, s.speed_bucket) for s in self.samples if not s.is_scored
        )

    def label_counts(self) -> dict[ConditionLabel, int]:
        """Count of scored samples per label; unscored samples are excluded."""
        return dict(Counter(s.label for s in self.scored_samples))

    def daily_summary(self) -> list[DaySummary]:
        """Per-day best/worst total score, ignoring unscored samples."""
        days: dict[date, list[ScoredSample]] = {}
        for s in self.samples:
            days.setdefault(s.timestamp.date(), []).append(s)

        summaries = []
        for day, samples in days.items():
            scores = [s.total_score for s in samples if s.is_scored]
            summaries.append(DaySummary(
                date=day,
                best_score=min(scores) if scores else None,
                worst_score=max(scores) if scores else None,
                scored_count=len(scores),
                unscored_count=len(samples) - len(scores),
            ))
        return summaries

    def to_records(self) -> list[dict]:
        return [s.to_record() for s in self.samples]

    def to_frame(self) -> pd.DataFrame:
        """Output rows as a DataFrame with nullable integer score columns."""
        df = pd.DataFrame(self.to_records(), columns=OUTPUT_COLUMNS)
        return df.astype({
            "wind_score": "Int64",
            "swell_score": "Int64",
            "total_score": "Int64",
        })


class ConditionScorer:
    """Scores forecast samples against a site's condition table and thresholds."""

    def score_sample(self, sample: ForecastSample, site: DiveSite) -> ScoredSample:
        """Score a single sample.

        Args:
            sample: Normalized forecast sample (wind in km/h, swell in metres)
            site: Site supplying the condition table and swell thresholds

        Returns:
            ScoredSample; wind_score/total_score are None on a table miss
        """
        speed_kn = kmh_to_knots(sample.wind_speed)
        angle_bucket = quantize_wind_direction(sample.wind_direction_degrees)
        speed_bucket = quantize_wind_speed(speed_kn)

        wind_score = site.condition_table.lookup(angle_bucket, speed_bucket)
        swell_score = score_swell(sample.swell_height, site.swell_thresholds)

        return ScoredSample(
            sample=sample,
            wind_speed_kn=speed_kn,
            angle_bucket=angle_bucket,
            speed_bucket=speed_bucket,
            wind_score=wind_score,
            swell_score=swell_score,
            total_score=combine_scores(wind_score, swell_score),
        )

    def score_series(
        self,
        site: DiveSite,
        samples: Iterable[ForecastSample],
        location_id: Optional[int] = None,
    ) -> ScoredSeries:
        """Score every sample of a normalized series for a site.

        The site's condition table is read once, so the whole series is
        scored against a single table version.
        """
        scored = tuple(self.score_sample(sample, site) for sample in samples)
        series = ScoredSeries(
            site_id=site.id,
            location_id=location_id,
            table_version=site.condition_table.version,
            samples=scored,
        )

        if series.unscored_count:
            missing = ", ".join(f"{a}°/{s}kn" for a, s in sorted(series.missing_buckets))
            logger.warning(
                f"{site.id}: {series.unscored_count}/{len(series)} samples unscored, "
                f"no condition table row for {missing}"
            )

        return series

"""Site model and database loader.

Loads dive site definitions from sites.yaml: coordinates, swell thresholds
and the per-site condition table that maps quantized wind to a score.

The condition table is edited by an outside collaborator. Edits are committed
through SiteDatabase.replace_condition_table, which swaps in a new immutable
table with a higher version; readers always see the latest committed table.
"""

import logging
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

import yaml

from dive_forecast.errors import SiteNotFoundError


logger = logging.getLogger(__name__)


ANGLE_BUCKETS = (0, 45, 90, 135, 180, 225, 270, 315)
SPEED_BUCKETS = (0, 5, 10, 15)
SCORES = (0, 1, 2)


@dataclass(frozen=True)
class Coordinates:
    """Geographic coordinates."""
    lat: float
    lon: float


@dataclass(frozen=True)
class ConditionTableRow:
    """One (wind angle, wind speed) cell of a site's condition table."""
    wind_angle_bucket: int
    wind_speed_bucket: int
    score: int

    def __post_init__(self):
        if self.wind_angle_bucket not in ANGLE_BUCKETS:
            raise ValueError(f"Invalid wind angle bucket: {self.wind_angle_bucket}")
        if self.wind_speed_bucket not in SPEED_BUCKETS:
            raise ValueError(f"Invalid wind speed bucket: {self.wind_speed_bucket}")
        if self.score not in SCORES:
            raise ValueError(f"Invalid score: {self.score}")


@dataclass(frozen=True)
class ConditionTable:
    """Immutable lookup from (angle bucket, speed bucket) to score."""
    cells: Mapping[tuple[int, int], int] = field(default_factory=dict)
    version: int = 1

    @classmethod
    def from_rows(cls, rows: Iterable[ConditionTableRow], version: int = 1) -> "ConditionTable":
        cells: dict[tuple[int, int], int] = {}
        for row in rows:
            key = (row.wind_angle_bucket, row.wind_speed_bucket)
            if key in cells:
                raise ValueError(f"Duplicate condition table row for angle={key[0]}, speed={key[1]}")
            cells[key] = row.score
        return cls(cells=MappingProxyType(cells), version=version)

    def lookup(self, angle_bucket: int, speed_bucket: int) -> Optional[int]:
        """Score for a bucket pair, or None when the table has no such row."""
        return self.cells.get((angle_bucket, speed_bucket))

    def rows(self) -> list[ConditionTableRow]:
        return [
            ConditionTableRow(angle, speed, score)
            for (angle, speed), score in sorted(self.cells.items())
        ]

    def __len__(self) -> int:
        return len(self.cells)


@dataclass(frozen=True)
class SwellThresholds:
    """Swell heights (metres) where conditions turn marginal and bad."""
    marginal_height: float
    bad_height: float

    def __post_init__(self):
        if not self.marginal_height < self.bad_height:
            raise ValueError(
                f"marginal_height ({self.marginal_height}) must be below bad_height ({self.bad_height})"
            )


@dataclass(frozen=True)
class DiveSite:
    """Complete dive site model."""
    id: str
    name: str
    coordinates: Coordinates
    swell_thresholds: SwellThresholds
    condition_table: ConditionTable
    search_radius_km: Optional[float] = None
    notes: str = ""


class SiteDatabase:
    """Database of dive sites loaded from YAML."""

    def __init__(self, sites_path: Optional[Path] = None, sites: Optional[Iterable[DiveSite]] = None):
        """Initialize the site database.

        Args:
            sites_path: Path to sites.yaml. Defaults to config/sites.yaml.
            sites: Pre-built sites; skips YAML loading when given.
        """
        self._lock = threading.Lock()
        self._sites: dict[str, DiveSite] = {}

        if sites is not None:
            self.sites_path = None
            for site in sites:
                self._sites[site.id] = site
            return

        if sites_path is None:
            possible_paths = [
                Path(__file__).parent.parent.parent / "config" / "sites.yaml",
                Path.cwd() / "config" / "sites.yaml",
            ]
            for path in possible_paths:
                if path.exists():
                    sites_path = path
                    break

        if sites_path is None or not Path(sites_path).exists():
            raise FileNotFoundError("Could not find sites.yaml")

        self.sites_path = Path(sites_path)
        self._load_sites()

    def _load_sites(self) -> None:
        """Load sites from YAML file."""
        with open(self.sites_path) as f:
            data = yaml.safe_load(f) or {}

        for site_data in data.get("sites", []):
            site = self._parse_site(site_data)
            if site.id in self._sites:
                raise ValueError(f"Duplicate site id in {self.sites_path}: {site.id}")
            self._sites[site.id] = site

        logger.debug(f"Loaded {len(self._sites)} sites from {self.sites_path}")

    def _parse_site(self, data: dict) -> DiveSite:
        """Parse a site dictionary into a DiveSite object."""
        coords = data.get("coordinates", {})
        swell = data.get("swell_thresholds", {})

        return DiveSite(
            id=data["id"],
            name=data.get("name", data["id"]),
            coordinates=Coordinates(
                lat=float(coords["lat"]),
                lon=float(coords["lon"]),
            ),
            swell_thresholds=SwellThresholds(
                marginal_height=float(swell["marginal_m"]),
                bad_height=float(swell["bad_m"]),
            ),
            condition_table=ConditionTable.from_rows(
                parse_condition_table(data.get("condition_table", {}))
            ),
            search_radius_km=data.get("search_radius_km"),
            notes=data.get("notes", ""),
        )

    def get_site(self, site_id: str) -> DiveSite:
        """Get the latest committed version of a site.

        Args:
            site_id: Site identifier (e.g., "shelly_beach")

        Raises:
            SiteNotFoundError: If the id is unknown
        """
        site = self._sites.get(site_id)
        if site is None:
            raise SiteNotFoundError(f"Unknown site: {site_id}")
        return site

    def get_all_sites(self) -> list[DiveSite]:
        """Get all sites."""
        return list(self._sites.values())

    def replace_condition_table(
        self,
        site_id: str,
        rows: Iterable[ConditionTableRow],
    ) -> ConditionTable:
        """Commit a new condition table for a site.

        The whole site record is swapped at once, so readers never see a
        half-applied edit.

        Returns:
            The committed table, with its version bumped
        """
        with self._lock:
            site = self.get_site(site_id)
            table = ConditionTable.from_rows(rows, version=site.condition_table.version + 1)
            self._sites[site_id] = replace(site, condition_table=table)

        logger.info(f"Condition table for {site_id} updated to version {table.version} ({len(table)} rows)")
        return table

    @property
    def site_count(self) -> int:
        """Get total number of sites."""
        return len(self._sites)


def parse_condition_table(data) -> list[ConditionTableRow]:
    """Parse a condition table from its YAML form.

    Two layouts are accepted. A list of rows:

        - {angle: 90, speed: 0, score: 0}

    or a grid of angle -> scores for speed buckets 0, 5, 10, 15, where null
    leaves the cell out of the table:

        90: [0, 0, 1, null]
    """
    if not data:
        return []

    if isinstance(data, list):
        return [
            ConditionTableRow(
                wind_angle_bucket=int(row["angle"]),
                wind_speed_bucket=int(row["speed"]),
                score=int(row["score"]),
            )
            for row in data
        ]

    rows = []
    for angle, scores in data.items():
        if len(scores) != len(SPEED_BUCKETS):
            raise ValueError(f"Angle {angle}: expected {len(SPEED_BUCKETS)} speed scores, got {len(scores)}")
        for speed, score in zip(SPEED_BUCKETS, scores):
            if score is None:
                continue
            rows.append(ConditionTableRow(int(angle), speed, int(score)))
    return rows

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass

from sqlalchemy import and_, case, func, literal

logger = logging.getLogger(__name__)

KM_PER_DEGREE = 111.32

LEVEL_SCORES = {
    "district": 3,
    "state": 2,
    "country": 1,
}


@dataclass(frozen=True)
class Region:
    name: str
    level: str
    north: float
    south: float
    east: float
    west: float

    def contains(self, latitude: float, longitude: float) -> bool:
        return self.south <= latitude <= self.north and self.west <= longitude <= self.east

    def contains_clause(self, lat_col, lon_col):
        return and_(
            lat_col.isnot(None),
            lon_col.isnot(None),
            lat_col.between(self.south, self.north),
            lon_col.between(self.west, self.east),
        )


DEFAULT_REGIONS = (
    Region("India", "country", north=37.1, south=6.4, east=97.4, west=68.2),
    Region("Kerala", "state", north=12.8, south=8.2, east=77.3, west=74.9),
    Region("Pathanamthitta", "district", north=9.5, south=9.0, east=77.2, west=76.7),
)


def _region_from_dict(raw: dict) -> Region:
    level = str(raw.get("level") or "").strip().lower()
    if level not in LEVEL_SCORES:
        raise ValueError(f"unknown region level {level!r}")
    bounds = raw.get("bounds") if isinstance(raw.get("bounds"), dict) else raw
    return Region(
        name=str(raw.get("name") or "").strip(),
        level=level,
        north=float(bounds["north"]),
        south=float(bounds["south"]),
        east=float(bounds["east"]),
        west=float(bounds["west"]),
    )


def manhattan_distance_km(lat_a, lon_a, lat_b, lon_b):
    """Degree-space Manhattan distance scaled to km.

    Works on floats and on SQL column expressions alike, so the same metric
    filters rows in the database and annotates them in Python.
    """
    if isinstance(lat_a, (int, float)) and isinstance(lon_a, (int, float)):
        return KM_PER_DEGREE * (abs(lat_a - lat_b) + abs(lon_a - lon_b))
    return literal(KM_PER_DEGREE) * (func.abs(lat_a - lat_b) + func.abs(lon_a - lon_b))


class LocationHierarchy:
    """Country/state/district bounding boxes used to rank ads by locality.

    The viewer's coordinates select, per level, the first region containing
    them; an ad then scores by the most specific of those regions it falls in.
    """

    def __init__(self, regions=DEFAULT_REGIONS):
        self.regions = tuple(regions)

    @classmethod
    def from_env(cls) -> "LocationHierarchy":
        raw = (os.getenv("ADS_REGION_HIERARCHY_JSON") or "").strip()
        if not raw:
            return cls()
        try:
            parsed = json.loads(raw)
            return cls(_region_from_dict(item) for item in parsed)
        except (TypeError, ValueError, KeyError) as exc:
            logger.warning("region_hierarchy_invalid err=%s using_defaults=true", exc)
            return cls()

    def containing(self, latitude: float, longitude: float) -> dict[str, Region]:
        found: dict[str, Region] = {}
        for region in self.regions:
            if region.level not in found and region.contains(latitude, longitude):
                found[region.level] = region
        return found

    def score(self, viewer_lat: float, viewer_lon: float, ad_lat: float | None, ad_lon: float | None) -> int:
        if ad_lat is None or ad_lon is None:
            return 0
        viewer_regions = self.containing(viewer_lat, viewer_lon)
        for level in sorted(LEVEL_SCORES, key=LEVEL_SCORES.get, reverse=True):
            region = viewer_regions.get(level)
            if region is not None and region.contains(ad_lat, ad_lon):
                return LEVEL_SCORES[level]
        return 0

    def score_expression(self, viewer_lat: float, viewer_lon: float, lat_col, lon_col):
        viewer_regions = self.containing(viewer_lat, viewer_lon)
        whens = []
        for level in sorted(LEVEL_SCORES, key=LEVEL_SCORES.get, reverse=True):
            region = viewer_regions.get(level)
            if region is not None:
                whens.append((region.contains_clause(lat_col, lon_col), LEVEL_SCORES[level]))
        if not whens:
            return literal(0)
        return case(*whens, else_=0)

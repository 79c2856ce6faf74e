"""
Waypoint candidate generation for round-trip recommendations.

Turnaround points come from walkable OSM features near the start; when that source
returns too little (or nothing, e.g. on timeout) a ring of radial points at exactly
the one-way distance fills the gap.
"""

import math
import random
from typing import Awaitable, Callable, Dict, List, Optional, Tuple

from data_sources.async_overpass_api import query_walkable_points_async
from data_sources.models import GeoPoint
from data_sources.utils import bearing_offset, distance_meters
from logging_config import get_logger

logger = get_logger(__name__)

PoiSource = Callable[[GeoPoint, int], Awaitable[List[GeoPoint]]]

DEFAULT_MAX_PICK = 12
POI_RADIUS_FACTOR = 2.0
GRID_CELL_DEG = 0.0005  # ~50 m of latitude
BAND_MIN_FACTOR = 0.6
BAND_MAX_FACTOR = 1.6
SHUFFLE_POOL_SIZE = 60
MIN_SOURCED_CANDIDATES = 6
FALLBACK_STEP_DEG = 30
FALLBACK_COUNT = 12


def grid_dedup(points: List[GeoPoint], cell_deg: float = GRID_CELL_DEG) -> List[GeoPoint]:
    """Keep one point per occupied grid cell, in order of first occupation."""
    cells: Dict[Tuple[int, int], GeoPoint] = {}
    for p in points:
        cells[(math.floor(p.lat / cell_deg + 0.5), math.floor(p.lng / cell_deg + 0.5))] = p
    return list(cells.values())


def radial_fallback(center: GeoPoint, one_way_m: float) -> List[GeoPoint]:
    """Twelve points at `one_way_m` from center, every 30 degrees starting north."""
    return [
        bearing_offset(center, one_way_m, i * FALLBACK_STEP_DEG)
        for i in range(FALLBACK_COUNT)
    ]


class CandidateGenerator:
    """
    Produces up to `max_pick` waypoint candidates around a start point.

    Args:
        poi_source: async callable (center, radius_m) -> points; must not raise
        rng: random source for the diversity shuffle (seed it for reproducible output)
    """

    def __init__(self, poi_source: Optional[PoiSource] = None, rng: Optional[random.Random] = None):
        self.poi_source = poi_source or query_walkable_points_async
        self.rng = rng or random.Random()

    def pick_near_distance(self, center: GeoPoint, points: List[GeoPoint],
                           one_way_m: float, max_pick: int) -> List[GeoPoint]:
        """Band-filter, rank by closeness to `one_way_m`, shuffle the best 60, truncate."""
        lo = one_way_m * BAND_MIN_FACTOR
        hi = one_way_m * BAND_MAX_FACTOR
        with_dist = [(p, distance_meters(center, p)) for p in points]
        in_band = [(p, d) for p, d in with_dist if lo <= d <= hi]
        in_band.sort(key=lambda pd: abs(pd[1] - one_way_m))

        pool = [p for p, _ in in_band[:SHUFFLE_POOL_SIZE]]
        self.rng.shuffle(pool)
        return pool[:max_pick]

    async def generate(self, center: GeoPoint, one_way_m: float,
                       max_pick: int = DEFAULT_MAX_PICK) -> List[GeoPoint]:
        """
        Build the waypoint candidate list for a recommendation.

        Never raises: a failing POI source degrades to the radial fallback.
        """
        radius_m = int(round(one_way_m * POI_RADIUS_FACTOR))
        try:
            raw_points = await self.poi_source(center, radius_m)
        except Exception as e:
            logger.warning(f"POI source failed, using radial fallback: {e}")
            raw_points = []

        unique = grid_dedup(list(raw_points or []))
        candidates = self.pick_near_distance(center, unique, one_way_m, max_pick)

        if len(candidates) < MIN_SOURCED_CANDIDATES:
            fallback = radial_fallback(center, one_way_m)
            candidates = (candidates + fallback)[:max_pick]
            logger.info("Topped up waypoint candidates with radial fallback", extra={
                "candidate_count": len(candidates),
                "lat": center.lat,
                "lon": center.lng,
            })

        return candidates

"""
Per-region visit intensity.

Derived display data only: recomputed on demand, never persisted.
"""

from typing import Dict, Iterable, List

from data_sources.models import GeoPoint, VisitRecord
from data_sources.polygons import RegionFeature, point_in_polygon

# (minimum count, level); first match wins
INTENSITY_LEVELS = ((20, 5), (10, 4), (5, 3), (2, 2), (1, 1))


def aggregate_visit_counts(features: Iterable[RegionFeature],
                           visits: List[VisitRecord]) -> Dict[str, int]:
    """
    Sum visit counts of the visits inside each region.

    Regions containing no visits are left out of the mapping.
    """
    counts: Dict[str, int] = {}
    if not visits:
        return counts

    located = [(GeoPoint(v.lat, v.lng), v.visit_count) for v in visits]
    for feature in features:
        total = sum(count for point, count in located if point_in_polygon(feature, point))
        if total > 0:
            counts[feature.feature_id] = total
    return counts


def intensity_level(count: int) -> int:
    """Shade bucket 0..5 for a region's visit count."""
    for minimum, level in INTENSITY_LEVELS:
        if count >= minimum:
            return level
    return 0

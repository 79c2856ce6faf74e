"""
Shared utilities for WalkMate
Distance, bearing and place-name similarity helpers used by the route and visit pipelines
"""

import math
import re
from typing import Iterable, Optional

from .models import GeoPoint

EARTH_RADIUS_M = 6371000
METERS_PER_DEGREE_LAT = 111320

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCTUATION_RE = re.compile(r"[(){}\[\]'\"`.,!?:;~@#$%^&*_+=<>\\/|-]")


def distance_meters(a: GeoPoint, b: GeoPoint) -> float:
    """
    Calculate distance between two points in meters using the Haversine formula.

    Args:
        a: First point
        b: Second point

    Returns:
        Distance in meters
    """
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    delta_phi = math.radians(b.lat - a.lat)
    delta_lambda = math.radians(b.lng - a.lng)

    h = math.sin(delta_phi / 2) ** 2 + math.cos(phi1) * \
        math.cos(phi2) * math.sin(delta_lambda / 2) ** 2

    return 2 * EARTH_RADIUS_M * math.asin(math.sqrt(min(1.0, h)))


def path_length_meters(points: Iterable[GeoPoint]) -> float:
    """Sum of haversine segments between consecutive points."""
    total = 0.0
    prev: Optional[GeoPoint] = None
    for p in points:
        if prev is not None:
            total += distance_meters(prev, p)
        prev = p
    return total


def bearing_offset(origin: GeoPoint, radius_m: float, degrees: float) -> GeoPoint:
    """
    Project a point `radius_m` away from `origin` along a compass bearing.

    Equirectangular approximation (1 degree latitude ~ 111 320 m, longitude scaled by
    cos(lat)); accurate enough at the few-hundred-meter to few-kilometer scale.

    Args:
        origin: Start point
        radius_m: Distance in meters
        degrees: Bearing, 0 = north, 90 = east

    Returns:
        Projected point
    """
    rad = math.radians(degrees)
    d_lat = (radius_m * math.cos(rad)) / METERS_PER_DEGREE_LAT
    d_lng = (radius_m * math.sin(rad)) / (METERS_PER_DEGREE_LAT * math.cos(math.radians(origin.lat)))
    return GeoPoint(origin.lat + d_lat, origin.lng + d_lng)


def normalize_place_name(name: Optional[str]) -> str:
    """Lowercase, drop all whitespace and a fixed punctuation set."""
    lowered = (name or "").lower()
    return _PUNCTUATION_RE.sub("", _WHITESPACE_RE.sub("", lowered))


def levenshtein(a: str, b: str) -> int:
    """Edit distance (insert/delete/substitute, unit cost)."""
    if len(a) < len(b):
        a, b = b, a
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                previous[j] + 1,
                current[j - 1] + 1,
                previous[j - 1] + cost,
            ))
        previous = current
    return previous[-1]


def name_similarity(a: Optional[str], b: Optional[str]) -> float:
    """
    Similarity in [0, 1] between two place names.

    Computed as 1 - levenshtein / max(len) over the normalized forms. Two empty
    names are identical (1.0); exactly one empty name gives 0.0.
    """
    x = normalize_place_name(a)
    y = normalize_place_name(b)
    if not x and not y:
        return 1.0
    if not x or not y:
        return 0.0
    return 1.0 - levenshtein(x, y) / max(len(x), len(y))

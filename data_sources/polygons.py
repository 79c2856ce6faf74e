"""
Typed polygon geometry and point-in-polygon tests for region features.

Coordinates follow GeoJSON order: (lng, lat). Rings are validated when a feature is
built, so containment never has to second-guess its input.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .models import GeoPoint

LngLat = Tuple[float, float]


class InvalidGeometryError(ValueError):
    """Raised when GeoJSON coordinates cannot form a polygon."""


@dataclass(frozen=True)
class BoundingBox:
    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def of_ring(cls, ring: Sequence[LngLat]) -> "BoundingBox":
        xs = [x for x, _ in ring]
        ys = [y for _, y in ring]
        return cls(min(xs), min(ys), max(xs), max(ys))

    def contains(self, x: float, y: float) -> bool:
        return self.min_x <= x <= self.max_x and self.min_y <= y <= self.max_y


@dataclass(frozen=True)
class Polygon:
    """One outer ring minus zero or more hole rings."""

    outer: Tuple[LngLat, ...]
    holes: Tuple[Tuple[LngLat, ...], ...] = ()
    bbox: BoundingBox = field(init=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "bbox", BoundingBox.of_ring(self.outer))

    def contains(self, x: float, y: float) -> bool:
        if not self.bbox.contains(x, y):
            return False
        if not point_in_ring(x, y, self.outer):
            return False
        return not any(point_in_ring(x, y, hole) for hole in self.holes)


@dataclass(frozen=True)
class RegionFeature:
    """
    An administrative region used as an aggregation bucket.

    `polygons` holds one entry for a Polygon geometry and one per part for a
    MultiPolygon.
    """

    feature_id: str
    index: int
    polygons: Tuple[Polygon, ...]
    properties: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def name(self) -> Optional[str]:
        return self.properties.get("name")


def point_in_ring(x: float, y: float, ring: Sequence[LngLat]) -> bool:
    """Even-odd ray casting test of (x, y) against a closed or open ring."""
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        xi, yi = ring[i]
        xj, yj = ring[j]
        if (yi > y) != (yj > y):
            x_cross = (xj - xi) * (y - yi) / (yj - yi) + xi
            if x < x_cross:
                inside = not inside
        j = i
    return inside


def point_in_polygon(feature: RegionFeature, point: GeoPoint) -> bool:
    """True when `point` lies inside any part of the feature and outside that part's holes."""
    x, y = point.lng, point.lat
    return any(polygon.contains(x, y) for polygon in feature.polygons)


def _parse_ring(raw: Any) -> Tuple[LngLat, ...]:
    if not isinstance(raw, (list, tuple)) or len(raw) < 3:
        raise InvalidGeometryError("ring needs at least 3 positions")
    ring: List[LngLat] = []
    for position in raw:
        if not isinstance(position, (list, tuple)) or len(position) < 2:
            raise InvalidGeometryError(f"bad position {position!r}")
        x, y = float(position[0]), float(position[1])
        if not (math.isfinite(x) and math.isfinite(y)):
            raise InvalidGeometryError(f"non-finite position {position!r}")
        ring.append((x, y))
    return tuple(ring)


def _parse_polygon(rings: Any) -> Polygon:
    if not isinstance(rings, (list, tuple)) or not rings:
        raise InvalidGeometryError("polygon has no rings")
    outer = _parse_ring(rings[0])
    holes = tuple(_parse_ring(r) for r in rings[1:])
    return Polygon(outer=outer, holes=holes)


def parse_geometry(geometry: Any) -> Tuple[Polygon, ...]:
    """
    Convert a GeoJSON geometry mapping into typed polygons.

    Raises:
        InvalidGeometryError: geometry is missing, not a (Multi)Polygon, or malformed
    """
    if not isinstance(geometry, dict):
        raise InvalidGeometryError("feature has no geometry")
    geom_type = geometry.get("type")
    coordinates = geometry.get("coordinates")
    if geom_type == "Polygon":
        return (_parse_polygon(coordinates),)
    if geom_type == "MultiPolygon":
        if not isinstance(coordinates, (list, tuple)) or not coordinates:
            raise InvalidGeometryError("multipolygon has no parts")
        return tuple(_parse_polygon(part) for part in coordinates)
    raise InvalidGeometryError(f"unsupported geometry type {geom_type!r}")

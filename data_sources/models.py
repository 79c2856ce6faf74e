"""
Value types shared by the route and visit pipelines.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class GeoPoint:
    """A WGS84-like coordinate in decimal degrees (no altitude)."""

    lat: float
    lng: float

    def to_dict(self) -> Dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}


@dataclass(frozen=True)
class TrackPoint:
    """A single location sample recorded during a walk."""

    lat: float
    lng: float
    timestamp_ms: int

    @property
    def point(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)


@dataclass(frozen=True)
class RouteCandidate:
    """A fetched round trip start -> waypoint -> start."""

    waypoint: GeoPoint
    duration_sec: float
    distance_m: float
    polyline: Tuple[GeoPoint, ...]


@dataclass(frozen=True)
class RecommendedRoute:
    id: str
    title: str
    duration_sec: float
    distance_m: float
    polyline: Tuple[GeoPoint, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "durationSec": self.duration_sec,
            "distanceM": self.distance_m,
            "points": [p.to_dict() for p in self.polyline],
        }


@dataclass
class RecommendationResult:
    """Up to three ranked routes plus the targets they were scored against."""

    routes: List[RecommendedRoute]
    target_minutes: float
    target_distance_m: float
    one_way_m: float
    generation: int = 0
    superseded: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generation": self.generation,
            "superseded": self.superseded,
            "targetMinutes": self.target_minutes,
            "targetDistanceM": self.target_distance_m,
            "oneWayM": self.one_way_m,
            "routes": [r.to_dict() for r in self.routes],
        }


@dataclass(frozen=True)
class VisitCandidate:
    """A visit being logged, not yet resolved into a VisitRecord."""

    lat: float
    lng: float
    place_name: str
    note: str = ""
    visited_at: str = ""
    place_id: Optional[str] = None


@dataclass
class VisitRecord:
    """
    A deduplicated place with every date it was visited.

    Persisted with camelCase keys so existing stored collections stay readable.
    """

    id: str
    place_name: str
    normalized_name: str
    lat: float
    lng: float
    note: str
    visit_dates: List[str]
    visit_count: int
    created_at: str
    updated_at: str
    place_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "placeName": self.place_name,
            "lat": self.lat,
            "lng": self.lng,
            "note": self.note,
            "visitDates": list(self.visit_dates),
            "visitCount": self.visit_count,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "normalizedName": self.normalized_name,
        }
        if self.place_id:
            data["placeId"] = self.place_id
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VisitRecord":
        """Build a record from its stored form; raises KeyError/ValueError/TypeError when malformed."""
        visit_dates = [str(d) for d in data.get("visitDates") or []]
        return cls(
            id=str(data["id"]),
            place_id=data.get("placeId") or None,
            place_name=str(data.get("placeName") or ""),
            normalized_name=str(data.get("normalizedName") or ""),
            lat=float(data["lat"]),
            lng=float(data["lng"]),
            note=str(data.get("note") or ""),
            visit_dates=visit_dates,
            visit_count=len(visit_dates),
            created_at=str(data.get("createdAt") or ""),
            updated_at=str(data.get("updatedAt") or ""),
        )


@dataclass
class PaceProfile:
    meters_per_minute: float
    last_updated: Optional[str] = None

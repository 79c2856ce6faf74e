"""
Route scoring against a target duration and distance.

Scores are penalties (lower is better):

    score = |duration - target_duration| * 1.2 + |distance - target_distance| * 0.4
"""

from typing import List, Tuple

from data_sources.error_handling import NoCandidateInBand
from data_sources.models import RecommendedRoute, RouteCandidate

TIME_WEIGHT = 1.2
DISTANCE_WEIGHT = 0.4
BAND_MIN_FACTOR = 0.6
BAND_MAX_FACTOR = 1.6
TOP_N = 3


def score_route(route: RouteCandidate, target_distance_m: float, target_duration_sec: float) -> float:
    time_diff = abs(route.duration_sec - target_duration_sec)
    dist_diff = abs(route.distance_m - target_distance_m)
    return time_diff * TIME_WEIGHT + dist_diff * DISTANCE_WEIGHT


def route_title(minutes: float, target_distance_m: float, rank: int) -> str:
    minutes_label = f"{minutes:g}"
    return f"{minutes_label} min (≈{round(target_distance_m)} m) pick {rank}"


def rank_routes(routes: List[RouteCandidate], target_distance_m: float,
                target_duration_sec: float) -> List[Tuple[float, RouteCandidate]]:
    """
    Band-filter and sort routes by score; ties keep fetch order.

    Raises:
        NoCandidateInBand: no route distance lies in [0.6, 1.6] x target
    """
    lo = target_distance_m * BAND_MIN_FACTOR
    hi = target_distance_m * BAND_MAX_FACTOR
    in_band = [r for r in routes if lo <= r.distance_m <= hi]
    if not in_band:
        raise NoCandidateInBand(
            "No nearby route matches the requested length; please try again"
        )

    scored = [(score_route(r, target_distance_m, target_duration_sec), r) for r in in_band]
    scored.sort(key=lambda sr: sr[0])
    return scored


def select_routes(routes: List[RouteCandidate], target_distance_m: float,
                  target_duration_sec: float, minutes: float) -> List[RecommendedRoute]:
    """Top three routes with ids r1..r3 assigned by rank."""
    ranked = rank_routes(routes, target_distance_m, target_duration_sec)[:TOP_N]
    return [
        RecommendedRoute(
            id=f"r{rank}",
            title=route_title(minutes, target_distance_m, rank),
            duration_sec=route.duration_sec,
            distance_m=route.distance_m,
            polyline=route.polyline,
        )
        for rank, (_, route) in enumerate(ranked, start=1)
    ]

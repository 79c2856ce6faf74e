import pytest

from data_sources.error_handling import NoCandidateInBand
from data_sources.models import GeoPoint, RouteCandidate
from walks.route_scorer import rank_routes, route_title, score_route, select_routes


WAYPOINT = GeoPoint(37.57, 126.98)


def _route(duration_sec, distance_m):
    return RouteCandidate(waypoint=WAYPOINT, duration_sec=duration_sec, distance_m=distance_m, polyline=())


def test_score_route_penalties():
    assert score_route(_route(1200, 1000), 1000, 1200) == 0
    assert score_route(_route(1400, 1200), 1000, 1200) == pytest.approx(320)
    assert score_route(_route(1000, 800), 1000, 1200) == pytest.approx(320)


def test_select_routes_ranks_best_first():
    a = _route(1200, 1000)
    b = _route(1400, 1200)
    routes = select_routes([b, a], target_distance_m=1000, target_duration_sec=1200, minutes=20)

    assert [r.id for r in routes] == ["r1", "r2"]
    assert routes[0].distance_m == 1000
    assert routes[1].distance_m == 1200
    assert routes[0].title == "20 min (≈1000 m) pick 1"
    assert routes[1].title == "20 min (≈1000 m) pick 2"


def test_band_boundaries_are_inclusive():
    routes = [_route(1200, d) for d in (500, 600, 1600, 1700)]
    ranked = rank_routes(routes, 1000, 1200)
    assert sorted(r.distance_m for _, r in ranked) == [600, 1600]


def test_empty_band_raises():
    with pytest.raises(NoCandidateInBand):
        select_routes([_route(100, 100), _route(9000, 9000)], 1000, 1200, 20)


def test_only_top_three_returned():
    routes = [_route(1200, 1000 + 10 * i) for i in range(8)]
    selected = select_routes(routes, 1000, 1200, 20)
    assert [r.id for r in selected] == ["r1", "r2", "r3"]
    assert [r.distance_m for r in selected] == [1000, 1010, 1020]


def test_ties_keep_fetch_order():
    first = _route(1300, 1000)
    second = _route(1100, 1000)
    ranked = rank_routes([first, second], 1000, 1200)
    assert [r for _, r in ranked] == [first, second]


def test_route_title_formats_fractional_minutes():
    assert route_title(20, 1000, 1) == "20 min (≈1000 m) pick 1"
    assert route_title(12.5, 687.4, 3) == "12.5 min (≈687 m) pick 3"

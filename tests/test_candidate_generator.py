import asyncio
import random

from data_sources.models import GeoPoint
from data_sources.utils import bearing_offset, distance_meters
from walks.candidate_generator import CandidateGenerator, grid_dedup, radial_fallback


CENTER = GeoPoint(37.5665, 126.978)
ONE_WAY_M = 600


def _source(points, calls=None):
    async def poi_source(center, radius_m):
        if calls is not None:
            calls.append((center, radius_m))
        return list(points)
    return poi_source


def _generate(generator, one_way_m=ONE_WAY_M, max_pick=12):
    return asyncio.run(generator.generate(CENTER, one_way_m, max_pick))


def test_grid_dedup_keeps_one_point_per_cell():
    a = GeoPoint(37.5, 127.0)
    b = GeoPoint(37.51, 127.01)
    assert grid_dedup([a, b, a, b, a]) == [a, b]


def test_grid_dedup_rounds_half_cells_up():
    # 1.5 and 2.5 cells land in cells 2 and 3; banker's rounding would merge them
    a = GeoPoint(0.0, 1.5)
    b = GeoPoint(0.0, 2.5)
    assert grid_dedup([a, b], cell_deg=1.0) == [a, b]
    assert grid_dedup([GeoPoint(0.0, 2.5), GeoPoint(0.0, 3.4)], cell_deg=1.0) == [GeoPoint(0.0, 3.4)]


def test_radial_fallback_spacing():
    ring = radial_fallback(CENTER, ONE_WAY_M)
    assert len(ring) == 12
    for i, p in enumerate(ring):
        assert p == bearing_offset(CENTER, ONE_WAY_M, i * 30)


def test_three_sourced_candidates_topped_up_with_nine_fallbacks():
    sourced = [bearing_offset(CENTER, ONE_WAY_M, deg) for deg in (45, 135, 225)]
    too_far = bearing_offset(CENTER, 3000, 10)
    calls = []
    generator = CandidateGenerator(
        poi_source=_source(sourced + [sourced[0], too_far], calls),
        rng=random.Random(1),
    )

    result = _generate(generator)

    assert len(result) == 12
    assert set(result[:3]) == set(sourced)
    assert result[3:] == radial_fallback(CENTER, ONE_WAY_M)[:9]
    assert calls == [(CENTER, 1200)]


def test_empty_source_uses_full_fallback_ring():
    generator = CandidateGenerator(poi_source=_source([]), rng=random.Random(1))
    assert _generate(generator) == radial_fallback(CENTER, ONE_WAY_M)


def test_failing_source_degrades_to_fallback():
    async def broken(center, radius_m):
        raise RuntimeError("overpass down")

    generator = CandidateGenerator(poi_source=broken, rng=random.Random(1))
    assert _generate(generator) == radial_fallback(CENTER, ONE_WAY_M)


def _plenty_of_points():
    return [bearing_offset(CENTER, 500 + 10 * i, 18 * i) for i in range(20)]


def test_enough_sourced_candidates_skip_fallback():
    points = _plenty_of_points()
    generator = CandidateGenerator(poi_source=_source(points), rng=random.Random(3))
    result = _generate(generator)

    assert len(result) == 12
    assert set(result) <= set(points)
    assert len(set(result)) == 12
    for p in result:
        assert 0.6 * ONE_WAY_M <= distance_meters(CENTER, p) <= 1.6 * ONE_WAY_M


def test_seeded_rng_gives_reproducible_order():
    points = _plenty_of_points()
    first = _generate(CandidateGenerator(poi_source=_source(points), rng=random.Random(42)))
    second = _generate(CandidateGenerator(poi_source=_source(points), rng=random.Random(42)))
    assert first == second


def test_pick_near_distance_filters_band_and_prefers_closest():
    generator = CandidateGenerator(poi_source=_source([]), rng=random.Random(0))
    inside = [bearing_offset(CENTER, d, 90) for d in (400, 600, 900)]
    outside = [bearing_offset(CENTER, d, 90) for d in (300, 1000)]
    picked = generator.pick_near_distance(CENTER, inside + outside, ONE_WAY_M, max_pick=12)
    assert set(picked) == set(inside)


def test_shuffle_pool_limited_to_sixty_closest():
    generator = CandidateGenerator(poi_source=_source([]), rng=random.Random(5))
    # 70 points at increasing distance from the one-way target, spread over bearings
    points = [bearing_offset(CENTER, ONE_WAY_M + 3 * i, (i * 37) % 360) for i in range(70)]
    picked = generator.pick_near_distance(CENTER, points, ONE_WAY_M, max_pick=70)
    assert len(picked) == 60
    assert set(picked) <= set(points[:62])

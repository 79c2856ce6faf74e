"""
HTTP surface tests. External services are replaced by in-process fakes.
"""

import unittest

from fastapi.testclient import TestClient

import main
from data_sources.error_handling import NoRouteFound
from data_sources.kv_store import InMemoryKeyValueStore
from data_sources.models import GeoPoint, RouteCandidate
from data_sources.polygons import RegionFeature, parse_geometry
from services import build_services


class FakeGenerator:
    async def generate(self, center, one_way_m, max_pick=12):
        return [GeoPoint(center.lat + 0.004, center.lng)]


class FakeFetcher:
    def __init__(self, routes=None, error=None):
        self.routes = routes or []
        self.error = error

    async def fetch_all(self, start, waypoints):
        if self.error is not None:
            raise self.error
        return list(self.routes)


def _route(duration_sec, distance_m):
    start = GeoPoint(37.5665, 126.978)
    waypoint = GeoPoint(37.5705, 126.978)
    return RouteCandidate(waypoint=waypoint, duration_sec=duration_sec, distance_m=distance_m,
                          polyline=(start, waypoint, start))


def _region():
    square = [[126.96, 37.56], [126.99, 37.56], [126.99, 37.58], [126.96, 37.58], [126.96, 37.56]]
    return RegionFeature(
        feature_id="11010",
        index=0,
        polygons=parse_geometry({"type": "Polygon", "coordinates": [square]}),
        properties={"name": "Jongno-gu"},
    )


class TestWalkMateAPI(unittest.TestCase):

    def setUp(self):
        self._original_services = main.services
        self.store = InMemoryKeyValueStore()

    def tearDown(self):
        main.services = self._original_services

    def _client(self, fetcher=None):
        main.services = build_services(
            store=self.store,
            generator=FakeGenerator(),
            fetcher=fetcher or FakeFetcher([_route(1400, 1200), _route(1200, 1000)]),
            regions=[_region()],
        )
        return TestClient(main.app)

    def test_root_and_health(self):
        with self._client() as client:
            self.assertEqual(client.get("/").json()["service"], "WalkMate API")
            health = client.get("/health").json()
        self.assertEqual(health["status"], "healthy")
        self.assertTrue(health["pace_loaded"])
        self.assertTrue(health["visits_loaded"])
        self.assertEqual(health["regions"], 1)

    def test_recommendations(self):
        with self._client() as client:
            self.assertEqual(client.get("/recommendations/latest").status_code, 404)

            response = client.post("/recommendations", json={"minutes": 20, "lat": 37.5665, "lng": 126.978})
            self.assertEqual(response.status_code, 200)
            body = response.json()
            self.assertEqual([r["id"] for r in body["routes"]], ["r1", "r2"])
            self.assertEqual(body["routes"][0]["distanceM"], 1000)
            self.assertEqual(body["routes"][0]["title"], "20 min (≈1000 m) pick 1")
            self.assertEqual(body["oneWayM"], 500)
            self.assertFalse(body["superseded"])

            latest = client.get("/recommendations/latest").json()
            self.assertEqual(latest["generation"], body["generation"])

    def test_recommendation_needs_start(self):
        with self._client() as client:
            self.assertEqual(client.post("/recommendations", json={"minutes": 20}).status_code, 400)
            self.assertEqual(client.post("/recommendations", json={"minutes": 0, "lat": 1, "lng": 1}).status_code, 422)

    def test_recommendation_minutes_range(self):
        with self._client() as client:
            for minutes in (5, 9.5, 121, 240):
                response = client.post("/recommendations", json={"minutes": minutes, "lat": 37.5665, "lng": 126.978})
                self.assertEqual(response.status_code, 422, minutes)
            for minutes in (10, 120):
                response = client.post("/recommendations", json={"minutes": minutes, "lat": 37.5665, "lng": 126.978})
                self.assertNotEqual(response.status_code, 422, minutes)

    def test_recommendation_uses_walk_position(self):
        with self._client() as client:
            client.post("/walks/start")
            client.post("/walks/points", json={"points": [{"lat": 37.5665, "lng": 126.978, "timestamp_ms": 0}]})
            self.assertEqual(client.post("/recommendations", json={"minutes": 20}).status_code, 200)

    def test_failed_recommendation_clears_latest(self):
        fetcher = FakeFetcher([_route(1400, 1200), _route(1200, 1000)])
        with self._client(fetcher) as client:
            client.post("/recommendations", json={"minutes": 20, "lat": 37.5665, "lng": 126.978})
            self.assertEqual(client.get("/recommendations/latest").status_code, 200)

            fetcher.error = NoRouteFound("offline")
            response = client.post("/recommendations", json={"minutes": 60, "lat": 37.6, "lng": 127.1})
            self.assertEqual(response.status_code, 503)
            self.assertEqual(client.get("/recommendations/latest").status_code, 404)

    def test_recommendation_errors(self):
        with self._client(FakeFetcher(error=NoRouteFound("offline"))) as client:
            response = client.post("/recommendations", json={"minutes": 20, "lat": 37.5, "lng": 127.0})
        self.assertEqual(response.status_code, 503)

        with self._client(FakeFetcher([_route(100, 50)])) as client:
            response = client.post("/recommendations", json={"minutes": 20, "lat": 37.5, "lng": 127.0})
        self.assertEqual(response.status_code, 404)

    def test_walk_updates_pace(self):
        step = 70 / 111195  # ~70 m of latitude
        points = [
            {"lat": 37.5 + i * step, "lng": 127.0, "timestamp_ms": i * 60000}
            for i in range(11)
        ]
        with self._client() as client:
            self.assertEqual(client.post("/walks/points", json={"points": points}).status_code, 409)
            self.assertEqual(client.post("/walks/stop").status_code, 409)

            client.post("/walks/start")
            recorded = client.post("/walks/points", json={"points": points}).json()
            self.assertEqual(recorded["recorded"], 11)

            stopped = client.post("/walks/stop").json()
            self.assertTrue(stopped["updated"])
            self.assertAlmostEqual(stopped["metersPerMinute"], 55.0, places=1)
            self.assertAlmostEqual(client.get("/pace").json()["metersPerMinute"], 55.0, places=1)

    def test_visit_lifecycle(self):
        visit = {"lat": 37.57, "lng": 126.97, "place_name": "Blue Bottle", "note": "latte"}
        with self._client() as client:
            self.assertEqual(client.get("/visits").json(), [])

            match = client.post("/visits/match", json=visit).json()
            self.assertIsNone(match["matched"])
            self.assertTrue(match["visitedAt"].endswith("Z"))

            created = client.post("/visits", json=visit)
            self.assertEqual(created.status_code, 201)
            visit_id = created.json()["id"]

            again = dict(visit, place_name="blue bottle!", visited_at="2024-01-01T09:00:00+09:00")
            match = client.post("/visits/match", json=again).json()
            self.assertEqual(match["matched"]["id"], visit_id)
            self.assertEqual(match["visitedAt"], "2024-01-01T00:00:00.000Z")

            merged = client.post(f"/visits/{visit_id}/merge", json=again).json()
            self.assertEqual(merged["visitCount"], 2)
            self.assertEqual(merged["visitDates"][0], "2024-01-01T00:00:00.000Z")
            self.assertEqual(merged["placeName"], "Blue Bottle")

            self.assertEqual(client.post("/visits/unknown/merge", json=again).status_code, 404)

            territory = client.get("/territory").json()
            self.assertEqual(territory["counts"], {"11010": 2})
            self.assertEqual(territory["levels"], {"11010": 2})

            self.assertEqual(client.delete("/visits").json(), {"removed": True})
            self.assertEqual(client.get("/visits").json(), [])
            self.assertEqual(client.get("/territory").json()["counts"], {})

    def test_visit_validation(self):
        with self._client() as client:
            response = client.post("/visits", json={"lat": 37.5, "lng": 127.0, "place_name": ""})
        self.assertEqual(response.status_code, 422)

    def test_avatar(self):
        with self._client() as client:
            self.assertIsNone(client.get("/profile/avatar").json()["uri"])
            client.put("/profile/avatar", json={"uri": "file:///dog.jpg"})
            self.assertEqual(client.get("/profile/avatar").json()["uri"], "file:///dog.jpg")
            client.delete("/profile/avatar")
            self.assertIsNone(client.get("/profile/avatar").json()["uri"])

    def test_state_survives_restart(self):
        with self._client() as client:
            client.post("/visits", json={"lat": 37.57, "lng": 126.97, "place_name": "Onion"})
        with self._client() as client:
            visits = client.get("/visits").json()
        self.assertEqual([v["placeName"] for v in visits], ["Onion"])


if __name__ == "__main__":
    unittest.main()

"""
Round-trip route recommendation: pace -> target distance -> candidates -> routes -> ranking.

Each call takes a generation id and clears `latest`. Only the newest generation may
replace it; a slower, older call that finishes afterwards is returned to its caller
marked superseded and never committed. In-flight requests are not cancelled.
"""

import itertools
import time
from typing import Optional

from data_sources.models import GeoPoint, RecommendationResult
from logging_config import get_logger, log_performance
from .candidate_generator import CandidateGenerator, DEFAULT_MAX_PICK
from .pace_model import PaceModel
from .route_fetcher import RouteFetcher
from .route_scorer import select_routes

logger = get_logger(__name__)

MIN_ONE_WAY_M = 200.0


def max_one_way_for(minutes: float) -> float:
    """Longer walks may turn around further away."""
    if minutes <= 20:
        return 700.0
    if minutes <= 30:
        return 900.0
    return 1300.0


def one_way_distance(target_distance_m: float, minutes: float) -> float:
    """Half the round trip, clamped to [200 m, max_one_way_for(minutes)]."""
    return max(MIN_ONE_WAY_M, min(target_distance_m / 2, max_one_way_for(minutes)))


class RouteRecommender:
    def __init__(self, pace_model: PaceModel, generator: CandidateGenerator,
                 fetcher: RouteFetcher, max_pick: int = DEFAULT_MAX_PICK):
        self.pace_model = pace_model
        self.generator = generator
        self.fetcher = fetcher
        self.max_pick = max_pick
        self.latest: Optional[RecommendationResult] = None
        self._generations = itertools.count(1)
        self._newest_generation = 0

    @property
    def newest_generation(self) -> int:
        return self._newest_generation

    async def recommend(self, start: GeoPoint, minutes: float) -> RecommendationResult:
        """
        Recommend up to three round trips of about `minutes` from `start`.

        Raises:
            NoRouteFound: every routing request failed
            NoCandidateInBand: routes came back but none fits the distance band
        """
        generation = next(self._generations)
        self._newest_generation = generation
        self.latest = None
        started = time.time()

        target_m = self.pace_model.target_distance(minutes)
        target_sec = minutes * 60
        one_way_m = one_way_distance(target_m, minutes)

        logger.info(f"Recommending {minutes:g} min round trips", extra={
            "generation": generation,
            "lat": start.lat,
            "lon": start.lng,
        })

        waypoints = await self.generator.generate(start, one_way_m, self.max_pick)
        fetched = await self.fetcher.fetch_all(start, waypoints)
        routes = select_routes(fetched, target_m, target_sec, minutes)

        result = RecommendationResult(
            routes=routes,
            target_minutes=minutes,
            target_distance_m=target_m,
            one_way_m=one_way_m,
            generation=generation,
        )

        if generation == self._newest_generation:
            self.latest = result
        else:
            result.superseded = True
            logger.info("Discarding superseded recommendation", extra={
                "generation": generation,
            })

        log_performance(logger, "recommend", time.time() - started,
                        generation=generation, route_count=len(routes))
        return result

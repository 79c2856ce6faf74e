"""
Round-trip route fetching with bounded, batched concurrency.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

from data_sources.async_routing_api import fetch_round_trip_async
from data_sources.error_handling import NoRouteFound
from data_sources.models import GeoPoint, RouteCandidate
from logging_config import get_logger

logger = get_logger(__name__)

RouteClient = Callable[[GeoPoint, GeoPoint], Awaitable[RouteCandidate]]

BATCH_SIZE = 6


class RouteFetcher:
    """
    Resolves a round trip for every waypoint candidate.

    Candidates go out in batches of `batch_size` concurrent requests; a batch is
    awaited until every request settles before the next one starts. Failed requests
    are dropped without affecting the rest.
    """

    def __init__(self, route_client: Optional[RouteClient] = None, batch_size: int = BATCH_SIZE):
        self.route_client = route_client or fetch_round_trip_async
        self.batch_size = batch_size

    async def fetch_all(self, start: GeoPoint, waypoints: List[GeoPoint]) -> List[RouteCandidate]:
        """
        Fetch routes for all waypoints.

        Returns:
            Successful routes in candidate order

        Raises:
            NoRouteFound: no request succeeded
        """
        results: List[RouteCandidate] = []
        failures = 0

        for i in range(0, len(waypoints), self.batch_size):
            batch = waypoints[i:i + self.batch_size]
            settled = await asyncio.gather(
                *(self.route_client(start, wp) for wp in batch),
                return_exceptions=True,
            )
            for wp, outcome in zip(batch, settled):
                if isinstance(outcome, BaseException):
                    failures += 1
                    logger.debug(f"Route fetch failed for waypoint {wp.lat:.5f},{wp.lng:.5f}: {outcome}")
                else:
                    results.append(outcome)

        if failures:
            logger.info(f"{failures} of {len(waypoints)} route fetches failed", extra={
                "route_count": len(results),
            })

        if not results:
            raise NoRouteFound("Could not fetch any route; check the network and try again")
        return results

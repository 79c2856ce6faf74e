"""
Async OSRM Routing Client
Resolves closed round trips start -> waypoint -> start on the public foot profile
"""

import asyncio

import aiohttp
from typing import Any, Dict

from .error_handling import NetworkError
from .models import GeoPoint, RouteCandidate
from .settings import OSRM_BASE_URL, USER_AGENT
from logging_config import get_logger, log_api_call

logger = get_logger(__name__)

# Global session for connection reuse
_session = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=20, limit_per_host=6)
        timeout = aiohttp.ClientTimeout(total=20, connect=5)
        _session = aiohttp.ClientSession(
            connector=connector,
            timeout=timeout,
            headers={"User-Agent": USER_AGENT}
        )
    return _session


async def close_session():
    """Close the global session."""
    global _session
    if _session and not _session.closed:
        await _session.close()
        _session = None


def build_round_trip_url(start: GeoPoint, waypoint: GeoPoint, base_url: str = OSRM_BASE_URL) -> str:
    coords = f"{start.lng},{start.lat};{waypoint.lng},{waypoint.lat};{start.lng},{start.lat}"
    return f"{base_url}/route/v1/foot/{coords}?overview=full&geometries=geojson&steps=false"


def parse_route_payload(data: Dict[str, Any], waypoint: GeoPoint) -> RouteCandidate:
    """
    Turn an OSRM /route response into a RouteCandidate.

    Raises:
        NetworkError: payload has no usable routes[0]
    """
    routes = data.get("routes") if isinstance(data, dict) else None
    if not routes or not isinstance(routes[0], dict):
        raise NetworkError("OSRM: no route", "osrm")

    route = routes[0]
    try:
        duration_sec = float(route.get("duration") or 0)
        distance_m = float(route.get("distance") or 0)
        coordinates = (route.get("geometry") or {}).get("coordinates") or []
        polyline = tuple(GeoPoint(float(c[1]), float(c[0])) for c in coordinates)
    except (TypeError, ValueError, IndexError, AttributeError) as e:
        raise NetworkError(f"OSRM: malformed route ({e})", "osrm") from e

    return RouteCandidate(
        waypoint=waypoint,
        duration_sec=duration_sec,
        distance_m=distance_m,
        polyline=polyline,
    )


async def fetch_round_trip_async(start: GeoPoint, waypoint: GeoPoint) -> RouteCandidate:
    """
    Request a round trip from OSRM.

    Raises:
        NetworkError: transport failure, non-2xx response, or missing routes[0]
    """
    url = build_round_trip_url(start, waypoint)
    log_api_call(logger, "osrm", url, lat=waypoint.lat, lon=waypoint.lng)

    session = await get_session()
    try:
        async with session.get(url) as resp:
            if not 200 <= resp.status < 300:
                raise NetworkError(f"OSRM HTTP {resp.status}", "osrm", resp.status)
            data = await resp.json(content_type=None)
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        raise NetworkError(f"OSRM request failed: {e!r}", "osrm") from e

    return parse_route_payload(data, waypoint)

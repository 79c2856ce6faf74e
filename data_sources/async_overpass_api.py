"""
Async Overpass API Client
Fetches walkable waypoint candidates (footways, paths, pedestrian streets, parks)
"""

import aiohttp
from typing import Any, Dict, List, Optional

from .error_handling import NetworkError, safe_api_call, handle_api_timeout
from .models import GeoPoint
from .settings import OVERPASS_URL, USER_AGENT
from logging_config import get_logger, log_api_call

logger = get_logger(__name__)

POI_TIMEOUT_S = 9

# Global session for connection reuse
_session = None


async def get_session():
    """Get or create aiohttp session for connection reuse."""
    global _session
    if _session is None or _session.closed:
        connector = aiohttp.TCPConnector(limit=20, limit_per_host=5)
        timeout = aiohttp.ClientTimeout(total=30, connect=10)
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


def build_walkable_query(center: GeoPoint, radius_m: int) -> str:
    """Overpass QL for walkable ways/nodes/relations and parks around `center`."""
    around = f"around:{radius_m},{center.lat},{center.lng}"
    return f"""
[out:json][timeout:8];
(
  node({around})["highway"~"^(footway|path|pedestrian)$"];
  way({around})["highway"~"^(footway|path|pedestrian)$"];
  relation({around})["highway"~"^(footway|path|pedestrian)$"];

  node({around})["leisure"="park"];
  way({around})["leisure"="park"];
  relation({around})["leisure"="park"];
);
out center;
"""


def _as_point(lat: Any, lon: Any) -> Optional[GeoPoint]:
    if isinstance(lat, (int, float)) and isinstance(lon, (int, float)) \
            and not isinstance(lat, bool) and not isinstance(lon, bool):
        return GeoPoint(float(lat), float(lon))
    return None


def extract_element_points(data: Dict[str, Any]) -> List[GeoPoint]:
    """
    Pull coordinates out of an Overpass response.

    Nodes carry lat/lon directly; ways and relations carry them under `center`.
    Elements with neither are ignored.
    """
    elements = data.get("elements") if isinstance(data, dict) else None
    if not isinstance(elements, list):
        return []

    points: List[GeoPoint] = []
    for el in elements:
        if not isinstance(el, dict):
            continue
        p = _as_point(el.get("lat"), el.get("lon"))
        if p is None and isinstance(el.get("center"), dict):
            p = _as_point(el["center"].get("lat"), el["center"].get("lon"))
        if p is not None:
            points.append(p)
    return points


@safe_api_call("overpass", required=False, fallback_value=[])
@handle_api_timeout(timeout_seconds=POI_TIMEOUT_S)
async def query_walkable_points_async(center: GeoPoint, radius_m: int) -> List[GeoPoint]:
    """
    Async query Overpass for walkable points within `radius_m` of `center`.

    Any failure (timeout, non-2xx, bad payload, transport error) yields an empty list.

    Returns:
        Points in response order (not yet deduplicated)
    """
    query = build_walkable_query(center, radius_m)
    log_api_call(logger, "overpass", OVERPASS_URL, lat=center.lat, lon=center.lng)

    session = await get_session()
    async with session.post(OVERPASS_URL, data={"data": query}) as resp:
        if not 200 <= resp.status < 300:
            raise NetworkError(f"Overpass HTTP {resp.status}", "overpass", resp.status)
        data = await resp.json(content_type=None)

    points = extract_element_points(data)
    logger.debug(f"Overpass returned {len(points)} points", extra={
        "api_name": "overpass",
        "candidate_count": len(points),
    })
    return points

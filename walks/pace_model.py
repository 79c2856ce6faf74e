"""
Personal walking pace (meters per minute), learned from completed walks.

The live value is exponentially smoothed towards each qualifying walk's observed
pace and persisted after every update.
"""

import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from data_sources.error_handling import PersistenceError
from data_sources.kv_store import KeyValueStore
from data_sources.models import GeoPoint, PaceProfile, TrackPoint
from data_sources.settings import PACE_KEY
from data_sources.utils import path_length_meters
from logging_config import get_logger, log_error

logger = get_logger(__name__)

DEFAULT_PACE_MPM = 50.0
VALID_MIN_EXCLUSIVE = 20.0
VALID_MAX_EXCLUSIVE = 120.0
OBSERVED_CLIP_MIN = 25.0
OBSERVED_CLIP_MAX = 110.0
SMOOTHING = 0.25

MIN_POINTS = 10
MIN_DURATION_MIN = 3.0
MIN_DISTANCE_M = 200.0


def parse_stored_pace(raw: Optional[str]) -> float:
    """Stored pace if it is a finite number strictly inside (20, 120), else the default."""
    if raw is None:
        return DEFAULT_PACE_MPM
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return DEFAULT_PACE_MPM
    if not math.isfinite(value) or not (VALID_MIN_EXCLUSIVE < value < VALID_MAX_EXCLUSIVE):
        return DEFAULT_PACE_MPM
    return value


def observed_pace(points: Sequence[TrackPoint]) -> Optional[float]:
    """
    Pace of a recorded walk, or None when the walk is too short to learn from.

    A walk qualifies with at least 10 samples, more than 3 minutes elapsed and
    more than 200 m travelled.
    """
    if len(points) < MIN_POINTS:
        return None
    duration_min = (points[-1].timestamp_ms - points[0].timestamp_ms) / 60000
    distance_m = path_length_meters(p.point for p in points)
    if duration_min <= MIN_DURATION_MIN or distance_m <= MIN_DISTANCE_M:
        return None
    return distance_m / duration_min


class PaceModel:
    """Holds the single live PaceProfile and keeps it persisted."""

    def __init__(self, store: KeyValueStore):
        self._store = store
        self.profile = PaceProfile(meters_per_minute=DEFAULT_PACE_MPM)
        self.loaded = False

    @property
    def meters_per_minute(self) -> float:
        return self.profile.meters_per_minute

    async def load(self) -> float:
        """Read the persisted pace once; storage failures fall back to the default."""
        try:
            raw = await self._store.get(PACE_KEY)
        except PersistenceError as e:
            log_error(logger, "persistence", f"Pace load failed, using default: {e}")
            raw = None
        self.profile = PaceProfile(meters_per_minute=parse_stored_pace(raw))
        self.loaded = True
        return self.profile.meters_per_minute

    def target_distance(self, minutes: float) -> float:
        return minutes * self.profile.meters_per_minute

    async def update(self, points: Sequence[TrackPoint]) -> Optional[float]:
        """
        Blend a completed walk into the live pace.

        Returns:
            The new pace, or None if the walk did not qualify (pace unchanged)
        """
        observed = observed_pace(points)
        if observed is None:
            return None

        clipped = max(OBSERVED_CLIP_MIN, min(observed, OBSERVED_CLIP_MAX))
        current = self.profile.meters_per_minute
        next_pace = current * (1 - SMOOTHING) + clipped * SMOOTHING

        self.profile = PaceProfile(
            meters_per_minute=next_pace,
            last_updated=datetime.now(timezone.utc).isoformat(),
        )
        logger.info(f"Pace updated {current:.1f} -> {next_pace:.1f} m/min (observed {observed:.1f})")

        try:
            await self._store.set(PACE_KEY, repr(next_pace))
        except PersistenceError as e:
            log_error(logger, "persistence", f"Pace save failed, keeping in-memory value: {e}")
        return next_pace


class WalkSession:
    """Records track points for one walk and feeds the pace model when it ends."""

    def __init__(self, pace_model: PaceModel):
        self.pace_model = pace_model
        self.points: List[TrackPoint] = []
        self.active = False

    def start(self) -> None:
        self.points = []
        self.active = True

    def record(self, point: TrackPoint) -> None:
        if self.active:
            self.points.append(point)

    @property
    def last_position(self) -> Optional[GeoPoint]:
        return self.points[-1].point if self.points else None

    async def stop(self) -> Optional[float]:
        """End the walk; returns the updated pace or None if it did not qualify."""
        self.active = False
        return await self.pace_model.update(self.points)

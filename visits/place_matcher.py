"""
Place deduplication for visit logging.

A newly logged visit is "the same place" as an existing record when both carry the
same external place id, or when it lies within `radius_m` of the record and the
names are at least `sim_threshold` similar. The first matching record in
collection order wins.
"""

import asyncio
import json
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from data_sources.error_handling import PersistenceError, VisitNotFoundError
from data_sources.kv_store import KeyValueStore
from data_sources.models import GeoPoint, VisitCandidate, VisitRecord
from data_sources.settings import LOCAL_TZ, VISITS_KEY
from data_sources.utils import distance_meters, name_similarity, normalize_place_name
from logging_config import get_logger, log_error

logger = get_logger(__name__)

DEFAULT_RADIUS_M = 50.0
DEFAULT_SIM_THRESHOLD = 0.86


def is_same_place(existing: VisitRecord, candidate: VisitCandidate,
                  radius_m: float = DEFAULT_RADIUS_M,
                  sim_threshold: float = DEFAULT_SIM_THRESHOLD) -> bool:
    if existing.place_id and candidate.place_id and existing.place_id == candidate.place_id:
        return True

    dist = distance_meters(GeoPoint(existing.lat, existing.lng), GeoPoint(candidate.lat, candidate.lng))
    if dist > radius_m:
        return False
    return name_similarity(existing.place_name, candidate.place_name) >= sim_threshold


def find_match(visits: List[VisitRecord], candidate: VisitCandidate,
               radius_m: float = DEFAULT_RADIUS_M,
               sim_threshold: float = DEFAULT_SIM_THRESHOLD) -> Optional[VisitRecord]:
    """First record in collection order that is the same place as `candidate`, else None."""
    for visit in visits:
        if is_same_place(visit, candidate, radius_m, sim_threshold):
            return visit
    return None


def format_timestamp(dt: datetime) -> str:
    """UTC ISO-8601 with millisecond precision and a Z suffix."""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> Optional[datetime]:
    try:
        return datetime.fromisoformat(value.strip())
    except (AttributeError, ValueError):
        return None


def normalize_visited_at(visited_at: Optional[str], now: datetime, tz_name: str = LOCAL_TZ) -> str:
    """
    Canonical UTC timestamp for a visit.

    Empty or unparsable input means "now". Naive input (e.g. a form's
    ``YYYY-MM-DDTHH:MM``) is read in the user's local timezone.
    """
    if not visited_at or not visited_at.strip():
        return format_timestamp(now)
    parsed = parse_timestamp(visited_at)
    if parsed is None:
        return format_timestamp(now)
    if parsed.tzinfo is None:
        try:
            parsed = parsed.replace(tzinfo=ZoneInfo(tz_name))
        except (ZoneInfoNotFoundError, ValueError):
            parsed = parsed.replace(tzinfo=timezone.utc)
    return format_timestamp(parsed)


def _date_sort_key(value: str):
    parsed = parse_timestamp(value)
    if parsed is None:
        return (0, value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return (1, parsed.timestamp(), value)


def sorted_visit_dates(dates: List[str]) -> List[str]:
    return sorted(dates, key=_date_sort_key)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VisitBook:
    """
    The visit collection: loaded once, mutated only through create/merge/remove_all,
    and saved whole after every mutation.
    """

    def __init__(self, store: KeyValueStore, tz_name: str = LOCAL_TZ,
                 radius_m: float = DEFAULT_RADIUS_M,
                 sim_threshold: float = DEFAULT_SIM_THRESHOLD,
                 clock: Callable[[], datetime] = _utcnow,
                 id_factory: Callable[[], str] = lambda: uuid.uuid4().hex):
        self._store = store
        self.tz_name = tz_name
        self.radius_m = radius_m
        self.sim_threshold = sim_threshold
        self._clock = clock
        self._new_id = id_factory
        self._visits: List[VisitRecord] = []
        self._lock = asyncio.Lock()
        self.loaded = False

    @property
    def visits(self) -> List[VisitRecord]:
        return list(self._visits)

    async def load(self) -> List[VisitRecord]:
        """Read the stored collection; unreadable or malformed data counts as empty."""
        try:
            raw = await self._store.get(VISITS_KEY)
        except PersistenceError as e:
            log_error(logger, "persistence", f"Visit load failed, starting empty: {e}")
            raw = None

        self._visits = self._decode(raw)
        self.loaded = True
        return self.visits

    @staticmethod
    def _decode(raw: Optional[str]) -> List[VisitRecord]:
        if not raw:
            return []
        try:
            parsed = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Stored visit collection is not valid JSON; ignoring it")
            return []
        if not isinstance(parsed, list):
            return []

        records: List[VisitRecord] = []
        for item in parsed:
            try:
                record = VisitRecord.from_dict(item)
            except (KeyError, TypeError, ValueError, AttributeError) as e:
                logger.warning(f"Skipping malformed visit record: {e}")
                continue
            if not record.normalized_name:
                record.normalized_name = normalize_place_name(record.place_name)
            records.append(record)
        return records

    async def _persist(self, next_visits: List[VisitRecord]) -> None:
        self._visits = next_visits
        payload = json.dumps([v.to_dict() for v in next_visits], ensure_ascii=False)
        try:
            await self._store.set(VISITS_KEY, payload)
        except PersistenceError as e:
            log_error(logger, "persistence", f"Visit save failed, keeping in-memory collection: {e}")

    def upsert_candidate(self, candidate: VisitCandidate) -> Tuple[Optional[VisitRecord], VisitCandidate]:
        """
        Normalize the candidate's timestamp and look for an existing record of the same place.

        Returns:
            (matched record or None, normalized candidate)
        """
        normalized = replace(
            candidate,
            visited_at=normalize_visited_at(candidate.visited_at, self._clock(), self.tz_name),
        )
        matched = find_match(self._visits, normalized, self.radius_m, self.sim_threshold)
        return matched, normalized

    async def create_visit(self, candidate: VisitCandidate) -> VisitRecord:
        """Add a new place record; it goes to the front of the collection."""
        async with self._lock:
            now = format_timestamp(self._clock())
            record = VisitRecord(
                id=self._new_id(),
                place_id=candidate.place_id or None,
                place_name=candidate.place_name,
                normalized_name=normalize_place_name(candidate.place_name),
                lat=candidate.lat,
                lng=candidate.lng,
                note=candidate.note or "",
                visit_dates=[normalize_visited_at(candidate.visited_at, self._clock(), self.tz_name)],
                visit_count=1,
                created_at=now,
                updated_at=now,
            )
            await self._persist([record] + self._visits)
            logger.info(f"Created visit record {record.id}")
            return record

    async def merge_visit(self, existing_id: str, candidate: VisitCandidate) -> VisitRecord:
        """
        Record another visit to an existing place.

        The name is never changed; the note is replaced only by a non-blank one.

        Raises:
            VisitNotFoundError: no record has `existing_id`
        """
        async with self._lock:
            stamp = normalize_visited_at(candidate.visited_at, self._clock(), self.tz_name)
            now = format_timestamp(self._clock())

            merged: Optional[VisitRecord] = None
            next_visits: List[VisitRecord] = []
            for visit in self._visits:
                if visit.id != existing_id:
                    next_visits.append(visit)
                    continue
                dates = sorted_visit_dates(visit.visit_dates + [stamp])
                merged = replace(
                    visit,
                    note=candidate.note if candidate.note and candidate.note.strip() else visit.note,
                    visit_dates=dates,
                    visit_count=len(dates),
                    updated_at=now,
                )
                next_visits.append(merged)

            if merged is None:
                raise VisitNotFoundError(f"No visit with id {existing_id}")

            await self._persist(next_visits)
            logger.info(f"Merged visit into {existing_id} (now {merged.visit_count} visits)")
            return merged

    async def remove_all(self) -> None:
        async with self._lock:
            await self._persist([])

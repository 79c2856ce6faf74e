"""
Service container for WalkMate.

Everything with process-wide state is built once here and handed to consumers by
reference; nothing looks services up implicitly.
"""

import random
from dataclasses import dataclass, field
from typing import List, Optional

from data_sources import async_overpass_api, async_routing_api, settings
from data_sources.error_handling import RegionDatasetError
from data_sources.kv_store import InMemoryKeyValueStore, KeyValueStore, ProfileStore, SQLiteKeyValueStore
from data_sources.polygons import RegionFeature
from data_sources.region_dataset import load_region_dataset
from logging_config import get_logger, log_error
from visits.place_matcher import VisitBook
from walks.candidate_generator import CandidateGenerator
from walks.pace_model import PaceModel, WalkSession
from walks.recommender import RouteRecommender
from walks.route_fetcher import RouteFetcher

logger = get_logger(__name__)


@dataclass
class WalkMateServices:
    store: KeyValueStore
    pace_model: PaceModel
    walk_session: WalkSession
    recommender: RouteRecommender
    visit_book: VisitBook
    profile: ProfileStore
    regions: List[RegionFeature] = field(default_factory=list)

    async def startup(self) -> None:
        """Load persisted pace and visits once."""
        await self.pace_model.load()
        await self.visit_book.load()
        logger.info("Services ready", extra={
            "operation": "startup",
        })

    async def shutdown(self) -> None:
        await async_overpass_api.close_session()
        await async_routing_api.close_session()


def load_regions(source: Optional[str]) -> List[RegionFeature]:
    """Region features from the configured dataset; a missing or broken dataset means none."""
    if not source:
        return []
    try:
        return load_region_dataset(source)
    except RegionDatasetError as e:
        log_error(logger, "region_dataset", f"Region dataset unavailable: {e}")
        return []


def build_services(store: Optional[KeyValueStore] = None,
                   generator: Optional[CandidateGenerator] = None,
                   fetcher: Optional[RouteFetcher] = None,
                   regions: Optional[List[RegionFeature]] = None,
                   rng: Optional[random.Random] = None) -> WalkMateServices:
    """
    Wire up the service graph. Arguments override the environment-configured defaults.
    """
    if store is None:
        store = SQLiteKeyValueStore(settings.STORE_PATH) if settings.STORE_PATH else InMemoryKeyValueStore()
    if rng is None:
        rng = random.Random(settings.RANDOM_SEED)

    pace_model = PaceModel(store)
    recommender = RouteRecommender(
        pace_model=pace_model,
        generator=generator or CandidateGenerator(rng=rng),
        fetcher=fetcher or RouteFetcher(),
    )

    return WalkMateServices(
        store=store,
        pace_model=pace_model,
        walk_session=WalkSession(pace_model),
        recommender=recommender,
        visit_book=VisitBook(store, tz_name=settings.LOCAL_TZ),
        profile=ProfileStore(store),
        regions=regions if regions is not None else load_regions(settings.REGION_DATASET),
    )

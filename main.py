from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables before settings are read
load_dotenv()

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from data_sources import settings
from data_sources.error_handling import NoCandidateInBand, NoRouteFound, PersistenceError, VisitNotFoundError
from data_sources.models import GeoPoint, TrackPoint, VisitCandidate
from logging_config import setup_logging, get_logger
from services import build_services
from visits.territory import aggregate_visit_counts, intensity_level

# Configure logging
setup_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)
logger = get_logger(__name__)

services = build_services()


@asynccontextmanager
async def lifespan(app: FastAPI):
    await services.startup()
    yield
    await services.shutdown()


app = FastAPI(
    title="WalkMate API",
    description="Personalized round-trip walk recommendations and visited-place map",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class RecommendationRequest(BaseModel):
    minutes: float = Field(ge=10, le=120)
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)


class TrackPointIn(BaseModel):
    lat: float
    lng: float
    timestamp_ms: int


class TrackPointsIn(BaseModel):
    points: List[TrackPointIn]


class VisitCandidateIn(BaseModel):
    lat: float = Field(ge=-90, le=90)
    lng: float = Field(ge=-180, le=180)
    place_name: str = Field(min_length=1)
    note: str = ""
    visited_at: str = ""
    place_id: Optional[str] = None

    def to_candidate(self) -> VisitCandidate:
        return VisitCandidate(
            lat=self.lat,
            lng=self.lng,
            place_name=self.place_name,
            note=self.note,
            visited_at=self.visited_at,
            place_id=self.place_id,
        )


class AvatarIn(BaseModel):
    uri: str = Field(min_length=1)


@app.get("/")
def root():
    """Service descriptor."""
    return {
        "service": "WalkMate API",
        "status": "running",
        "version": "1.0.0",
        "endpoints": {
            "recommend": "POST /recommendations",
            "pace": "GET /pace",
            "walks": "POST /walks/start | /walks/points | /walks/stop",
            "visits": "GET|POST|DELETE /visits, POST /visits/match, POST /visits/{id}/merge",
            "territory": "GET /territory",
            "docs": "/docs"
        }
    }


@app.get("/health")
def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "pace_loaded": services.pace_model.loaded,
        "visits_loaded": services.visit_book.loaded,
        "regions": len(services.regions),
    }


@app.post("/recommendations")
async def recommend_routes(body: RecommendationRequest):
    """
    Recommend up to three round-trip walks of about `minutes`.

    The start is the given lat/lng, or the last point of the walk in progress.
    """
    if body.lat is not None and body.lng is not None:
        start = GeoPoint(body.lat, body.lng)
    else:
        start = services.walk_session.last_position
    if start is None:
        raise HTTPException(status_code=400, detail="A start location (lat, lng) is required.")

    try:
        result = await services.recommender.recommend(start, body.minutes)
    except NoRouteFound as e:
        logger.warning(f"No route found: {e}")
        raise HTTPException(status_code=503, detail="Could not fetch recommended routes. Check the network and try again.")
    except NoCandidateInBand as e:
        logger.info(f"No candidate in band: {e}")
        raise HTTPException(status_code=404, detail="No nearby route matches that length. Please try again.")

    return result.to_dict()


@app.get("/recommendations/latest")
def latest_recommendation():
    latest = services.recommender.latest
    if latest is None:
        raise HTTPException(status_code=404, detail="No recommendation yet.")
    return latest.to_dict()


@app.get("/pace")
def get_pace():
    profile = services.pace_model.profile
    return {
        "metersPerMinute": profile.meters_per_minute,
        "lastUpdated": profile.last_updated,
    }


@app.post("/walks/start")
def start_walk():
    services.walk_session.start()
    return {"active": True}


@app.post("/walks/points")
def record_walk_points(body: TrackPointsIn):
    session = services.walk_session
    if not session.active:
        raise HTTPException(status_code=409, detail="No walk in progress.")
    for p in body.points:
        session.record(TrackPoint(lat=p.lat, lng=p.lng, timestamp_ms=p.timestamp_ms))
    return {"recorded": len(session.points)}


@app.post("/walks/stop")
async def stop_walk():
    session = services.walk_session
    if not session.active:
        raise HTTPException(status_code=409, detail="No walk in progress.")
    updated = await session.stop()
    return {
        "updated": updated is not None,
        "metersPerMinute": services.pace_model.meters_per_minute,
        "points": len(session.points),
    }


@app.get("/visits")
def list_visits():
    return [v.to_dict() for v in services.visit_book.visits]


@app.post("/visits/match")
def match_visit(body: VisitCandidateIn):
    """Find an existing record of the same place, without changing anything."""
    matched, candidate = services.visit_book.upsert_candidate(body.to_candidate())
    return {
        "matched": matched.to_dict() if matched else None,
        "visitedAt": candidate.visited_at,
    }


@app.post("/visits", status_code=201)
async def create_visit(body: VisitCandidateIn):
    record = await services.visit_book.create_visit(body.to_candidate())
    return record.to_dict()


@app.post("/visits/{visit_id}/merge")
async def merge_visit(visit_id: str, body: VisitCandidateIn):
    try:
        record = await services.visit_book.merge_visit(visit_id, body.to_candidate())
    except VisitNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return record.to_dict()


@app.delete("/visits")
async def remove_all_visits():
    await services.visit_book.remove_all()
    return {"removed": True}


@app.get("/territory")
def territory():
    """Visit counts per region (regions without visits are omitted)."""
    counts = aggregate_visit_counts(services.regions, services.visit_book.visits)
    return {
        "counts": counts,
        "levels": {feature_id: intensity_level(c) for feature_id, c in counts.items()},
    }


@app.get("/profile/avatar")
async def get_avatar():
    return {"uri": await services.profile.get_avatar()}


@app.put("/profile/avatar")
async def set_avatar(body: AvatarIn):
    try:
        await services.profile.set_avatar(body.uri)
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Could not save avatar: {e}")
    return {"uri": body.uri}


@app.delete("/profile/avatar")
async def clear_avatar():
    try:
        await services.profile.clear_avatar()
    except PersistenceError as e:
        raise HTTPException(status_code=500, detail=f"Could not clear avatar: {e}")
    return {"uri": None}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)

"""
Walks Package
Round-trip route recommendation and personal pace learning
"""

from .candidate_generator import CandidateGenerator
from .pace_model import PaceModel, WalkSession
from .recommender import RouteRecommender
from .route_fetcher import RouteFetcher

__all__ = ['CandidateGenerator', 'PaceModel', 'WalkSession', 'RouteRecommender', 'RouteFetcher']

"""
Visits Package
Visited-place deduplication and per-region visit aggregation
"""

from .place_matcher import VisitBook, find_match, is_same_place
from .territory import aggregate_visit_counts, intensity_level

__all__ = ['VisitBook', 'find_match', 'is_same_place', 'aggregate_visit_counts', 'intensity_level']

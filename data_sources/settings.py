"""
Environment-driven configuration for WalkMate.

Values are read once at import time; `main.py` loads `.env` before importing
anything from this package.
"""

import os
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str) -> Optional[int]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return None
    try:
        return int(raw)
    except ValueError:
        return None


OVERPASS_URL = os.getenv("OVERPASS_URL", "https://overpass-api.de/api/interpreter").strip()
OSRM_BASE_URL = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org").rstrip("/")

STORE_PATH = os.getenv("WALKMATE_STORE_PATH", "walkmate_state.sqlite3")
REGION_DATASET = os.getenv("WALKMATE_REGION_DATASET") or None
LOCAL_TZ = os.getenv("WALKMATE_LOCAL_TZ", "UTC")
RANDOM_SEED = _env_int("WALKMATE_RANDOM_SEED")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_JSON = _env_bool("LOG_JSON", True)

USER_AGENT = "WalkMate/1.0"

# Persisted state keys
PACE_KEY = "pace_m_per_min_v1"
VISITS_KEY = "VISITS_V1"
AVATAR_KEY = "DOG_PROFILE_IMAGE_URI"

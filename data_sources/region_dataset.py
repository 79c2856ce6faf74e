"""
Region Dataset Loader
Reads a GeoJSON FeatureCollection of administrative boundaries into typed RegionFeatures
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Union

import requests

from logging_config import get_logger
from .error_handling import RegionDatasetError
from .polygons import InvalidGeometryError, RegionFeature, parse_geometry
from .settings import USER_AGENT

logger = get_logger(__name__)

# Datasets name their region code differently; the first present key wins.
FEATURE_ID_KEYS = ("adm_cd", "code", "sig_cd", "name")

DOWNLOAD_TIMEOUT_S = 30


def feature_id_for(properties: Dict[str, Any], index: int) -> str:
    """Pick the identifying property of a feature, falling back to its position."""
    for key in FEATURE_ID_KEYS:
        value = properties.get(key)
        if value:
            return str(value)
    return str(index)


def parse_feature_collection(collection: Dict[str, Any]) -> List[RegionFeature]:
    """
    Validate a FeatureCollection mapping and build RegionFeatures.

    Features with missing, unsupported or malformed geometry are skipped with a
    warning; they keep their positional index so ids of later features are stable.

    Raises:
        RegionDatasetError: the mapping is not a FeatureCollection
    """
    if not isinstance(collection, dict) or not isinstance(collection.get("features"), list):
        raise RegionDatasetError("Region dataset is not a GeoJSON FeatureCollection")

    features: List[RegionFeature] = []
    skipped = 0
    for index, raw in enumerate(collection["features"]):
        if not isinstance(raw, dict):
            skipped += 1
            continue
        properties = raw.get("properties") or {}
        try:
            polygons = parse_geometry(raw.get("geometry"))
        except (InvalidGeometryError, TypeError, ValueError) as e:
            logger.warning(f"Skipping region feature #{index}: {e}")
            skipped += 1
            continue
        features.append(RegionFeature(
            feature_id=feature_id_for(properties, index),
            index=index,
            polygons=polygons,
            properties=dict(properties),
        ))

    logger.info(f"Loaded {len(features)} region features ({skipped} skipped)")
    return features


def load_region_dataset(source: Union[str, Path, Dict[str, Any]]) -> List[RegionFeature]:
    """
    Load region features from a mapping, a local GeoJSON file, or an http(s) URL.

    Raises:
        RegionDatasetError: the source cannot be read or parsed
    """
    if isinstance(source, dict):
        return parse_feature_collection(source)

    text_source = str(source)
    if text_source.startswith(("http://", "https://")):
        try:
            resp = requests.get(
                text_source,
                timeout=DOWNLOAD_TIMEOUT_S,
                headers={"User-Agent": USER_AGENT},
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise RegionDatasetError(f"Could not download region dataset: {e}") from e
        return parse_feature_collection(data)

    path = Path(text_source)
    try:
        with path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RegionDatasetError(f"Could not read region dataset {path}: {e}") from e
    return parse_feature_collection(data)

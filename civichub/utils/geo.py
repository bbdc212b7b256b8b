"""
Geo helpers for duplicate detection.

Coordinates arrive from the client's reverse-geocoding step; the core never
calls a geocoder itself.
"""

import logging
import math
from typing import Any, Dict, Optional

from civichub.core.exceptions import MalformedGeoData

logger = logging.getLogger(__name__)

METERS_PER_DEGREE = 111000
GEO_TEXT_FIELDS = ("city", "region", "country", "address")


def planar_distance_meters(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Flat-earth distance in meters.

    Longitude degrees are NOT scaled by cos(latitude). Only meaningful for the
    few-meter radius used by duplicate detection.
    """
    dlat = (lat1 - lat2) * METERS_PER_DEGREE
    dlon = (lon1 - lon2) * METERS_PER_DEGREE
    return math.sqrt(dlat ** 2 + dlon ** 2)


def _coordinate(value: Any, name: str, bound: float) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedGeoData(f"{name} must be a number, got {value!r}")
    if math.isnan(value) or abs(value) > bound:
        raise MalformedGeoData(f"{name} out of range: {value!r}")
    return float(value)


def coerce_geo(geo_data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """
    Validate a geo_data mapping.

    Returns None when geo is entirely absent, the normalized dict when
    latitude and longitude are both usable, and raises MalformedGeoData for
    anything in between.
    """
    if not geo_data:
        return None
    if not isinstance(geo_data, dict):
        raise MalformedGeoData(f"geo_data must be a mapping, got {type(geo_data).__name__}")

    latitude = geo_data.get("latitude")
    longitude = geo_data.get("longitude")
    if latitude is None and longitude is None:
        raise MalformedGeoData("geo_data has no coordinates")

    normalized = {
        "latitude": _coordinate(latitude, "latitude", 90),
        "longitude": _coordinate(longitude, "longitude", 180),
    }
    for field in GEO_TEXT_FIELDS:
        normalized[field] = geo_data.get(field) or ""
    return normalized


def normalize_geo(geo_data: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Like coerce_geo, but malformed geo is treated as absent."""
    try:
        return coerce_geo(geo_data)
    except MalformedGeoData as e:
        logger.warning(f"⚠️ Ignoring malformed geo_data: {e}")
        return None

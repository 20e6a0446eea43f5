"""
Coordinate validation and great-circle distance.
"""

from __future__ import annotations

import math

from placemap_geo.errors import InvalidCoordinate

EARTH_RADIUS_M = 6_371_000.0


def validate_coordinate(lat: float, lng: float) -> None:
    """Raise InvalidCoordinate unless lat/lng are finite WGS-84 degrees."""
    # bool is an int subclass; a stray True is not a coordinate
    numeric = all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in (lat, lng))
    if not numeric:
        raise InvalidCoordinate(lat, lng, f"Coordinate must be numeric, got ({lat!r}, {lng!r})")
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidCoordinate(lat, lng, f"Coordinate must be finite, got ({lat}, {lng})")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(lat, lng, f"Latitude out of range: {lat}")
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinate(lat, lng, f"Longitude out of range: {lng}")


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance between two points in meters."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    # Rounding can push a marginally above 1 for antipodal points
    a = min(1.0, a)
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

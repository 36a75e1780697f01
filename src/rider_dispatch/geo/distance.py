"""Centralized geographic distance calculations.

This module provides Haversine distance calculations between pickup points
and rider locations. All coordinates pass through validate_coordinates so
that NaN or out-of-range values fail loudly instead of producing NaN
distances that silently drop out of comparisons.
"""

import math
from math import atan2, cos, radians, sin, sqrt
from typing import NamedTuple

from ..core.exceptions import InvalidCoordinateError

EARTH_RADIUS_KM = 6371.0


class Coordinates(NamedTuple):
    lat: float
    lng: float

    def as_storage(self) -> str:
        """Serialize as the "lat,lng" string stored in the database."""
        return f"{self.lat},{self.lng}"

    @classmethod
    def from_storage(cls, value: str) -> "Coordinates":
        lat, lng = map(float, value.split(","))
        return cls(lat, lng)


def validate_coordinates(lat: float, lng: float) -> Coordinates:
    """Check that a latitude/longitude pair is usable for distance math.

    Args:
        lat: Latitude in degrees
        lng: Longitude in degrees

    Returns:
        The pair as Coordinates

    Raises:
        InvalidCoordinateError: If either value is NaN, infinite or out of range
    """
    try:
        lat_f = float(lat)
        lng_f = float(lng)
    except (TypeError, ValueError) as e:
        raise InvalidCoordinateError(
            f"Coordinates must be numeric: ({lat!r}, {lng!r})",
            {"lat": repr(lat), "lng": repr(lng)},
        ) from e

    if not (math.isfinite(lat_f) and math.isfinite(lng_f)):
        raise InvalidCoordinateError(
            f"Coordinates must be finite: ({lat_f}, {lng_f})",
            {"lat": str(lat_f), "lng": str(lng_f)},
        )
    if not -90.0 <= lat_f <= 90.0:
        raise InvalidCoordinateError(f"Latitude out of range: {lat_f}", {"lat": lat_f})
    if not -180.0 <= lng_f <= 180.0:
        raise InvalidCoordinateError(f"Longitude out of range: {lng_f}", {"lng": lng_f})
    return Coordinates(lat_f, lng_f)


def haversine_distance_km(
    lat1: float,
    lng1: float,
    lat2: float,
    lng2: float,
) -> float:
    """Calculate the great-circle distance between two points in kilometers.

    Uses the Haversine formula with a spherical Earth of radius 6371 km.

    Args:
        lat1: Latitude of first point in degrees
        lng1: Longitude of first point in degrees
        lat2: Latitude of second point in degrees
        lng2: Longitude of second point in degrees

    Returns:
        Distance between the two points in kilometers

    Raises:
        InvalidCoordinateError: If any coordinate is invalid
    """
    validate_coordinates(lat1, lng1)
    validate_coordinates(lat2, lng2)

    lat1, lng1, lat2, lng2 = map(radians, [lat1, lng1, lat2, lng2])
    dlat = lat2 - lat1
    dlng = lng2 - lng1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))

    return EARTH_RADIUS_KM * c


def distance_km(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance between two coordinate pairs in kilometers."""
    return haversine_distance_km(a.lat, a.lng, b.lat, b.lng)

"""Geographic helpers: distance, ETA and H3 cell coverage."""

from .distance import (
    EARTH_RADIUS_KM,
    Coordinates,
    distance_km,
    haversine_distance_km,
    validate_coordinates,
)
from .eta import VehicleClass, eta_minutes
from .geocoding import Geocoder
from .spatial_index import cell_for, covering_cells

__all__ = [
    "EARTH_RADIUS_KM",
    "Coordinates",
    "Geocoder",
    "VehicleClass",
    "cell_for",
    "covering_cells",
    "distance_km",
    "eta_minutes",
    "haversine_distance_km",
    "validate_coordinates",
]

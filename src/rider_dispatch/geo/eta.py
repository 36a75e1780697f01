"""Vehicle-class ETA heuristics."""

import math
from enum import Enum

from ..core.exceptions import InvalidCoordinateError, ValidationError


class VehicleClass(str, Enum):
    BIKE = "bike"
    SCOOTER = "scooter"
    MOTORCYCLE = "motorcycle"
    CAR = "car"
    BICYCLE = "bicycle"
    ON_FOOT = "on_foot"


# Minutes per kilometer: motorised two-wheelers ~20 km/h, cars ~30 km/h, the rest ~10 km/h
MINUTES_PER_KM: dict[VehicleClass, float] = {
    VehicleClass.BIKE: 3.0,
    VehicleClass.SCOOTER: 3.0,
    VehicleClass.MOTORCYCLE: 3.0,
    VehicleClass.CAR: 2.0,
}
DEFAULT_MINUTES_PER_KM = 6.0


def eta_minutes(distance_km: float, vehicle_class: VehicleClass | str) -> int:
    """Estimate travel time for a rider covering a distance.

    The result is rounded half-up to the nearest whole minute.

    Args:
        distance_km: Distance to travel in kilometers
        vehicle_class: Rider's vehicle class

    Returns:
        Estimated minutes

    Raises:
        InvalidCoordinateError: If the distance is NaN (derived from bad coordinates)
        ValidationError: If the distance is negative or infinite
    """
    if math.isnan(distance_km):
        raise InvalidCoordinateError("Distance is NaN; source coordinates were invalid")
    if distance_km < 0 or math.isinf(distance_km):
        raise ValidationError(f"Distance must be a finite non-negative number: {distance_km}")

    try:
        vehicle = VehicleClass(vehicle_class)
    except ValueError as e:
        raise ValidationError(f"Unknown vehicle class: {vehicle_class}") from e

    factor = MINUTES_PER_KM.get(vehicle, DEFAULT_MINUTES_PER_KM)
    return math.floor(distance_km * factor + 0.5)

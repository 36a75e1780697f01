"""Ranked rider candidates for a pickup point."""

import logging
from dataclasses import dataclass

from ..core.exceptions import ValidationError
from ..geo.distance import Coordinates, distance_km, validate_coordinates
from ..geo.eta import VehicleClass, eta_minutes
from ..geo.spatial_index import covering_cells
from ..rider import RiderFilter
from ..settings import MatchingSettings
from .rider_directory import RiderDirectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Candidate:
    rider_id: str
    full_name: str
    vehicle_class: VehicleClass
    rating: float
    location: Coordinates
    distance_km: float
    eta_minutes: int


class MatchEngine:
    """Finds riders who can reach a pickup point.

    Ranking is by distance, then rating (higher first), then rider id so that
    equal riders always come back in the same order.
    """

    def __init__(self, directory: RiderDirectory, settings: MatchingSettings | None = None):
        self._directory = directory
        self._settings = settings or MatchingSettings()

    def effective_radius(self, max_radius_km: float | None) -> float:
        if max_radius_km is None:
            return self._settings.default_radius_km
        if max_radius_km <= 0:
            raise ValidationError(
                f"Search radius must be positive: {max_radius_km}",
                {"max_radius_km": max_radius_km},
            )
        return min(max_radius_km, self._settings.max_radius_km)

    def find_candidates(
        self,
        pickup: Coordinates,
        max_radius_km: float | None = None,
        limit: int | None = None,
        vehicle_classes: set[VehicleClass] | None = None,
    ) -> list[Candidate]:
        """Rank eligible riders within reach of pickup.

        A rider qualifies when the distance to pickup is within both the
        rider's own service radius and the search radius. An empty list
        means nobody qualified; storage faults raise DirectoryUnavailableError.
        """
        point = validate_coordinates(pickup.lat, pickup.lng)
        radius = self.effective_radius(max_radius_km)
        limit = self._settings.candidate_limit if limit is None else limit
        if limit < 1:
            raise ValidationError(f"Candidate limit must be at least 1: {limit}", {"limit": limit})

        cells = None
        if self._settings.use_spatial_index:
            cells = covering_cells(point, radius, self._directory.h3_resolution)

        riders = self._directory.list_eligible(
            RiderFilter(cells=cells, vehicle_classes=vehicle_classes)
        )

        ranked: list[tuple[float, float, str, Candidate]] = []
        for rider in riders:
            if rider.location is None:
                continue
            distance = distance_km(point, rider.location)
            if distance > min(rider.service_radius_km, radius):
                continue
            candidate = Candidate(
                rider_id=rider.id,
                full_name=rider.full_name,
                vehicle_class=rider.vehicle_class,
                rating=rider.rating,
                location=rider.location,
                distance_km=distance,
                eta_minutes=eta_minutes(distance, rider.vehicle_class),
            )
            ranked.append((distance, -rider.rating, rider.id, candidate))

        ranked.sort(key=lambda item: item[:3])
        candidates = [item[3] for item in ranked[:limit]]

        logger.debug(
            "Found %d candidates within %.1f km of %s (%d eligible)",
            len(candidates),
            radius,
            point.as_storage(),
            len(riders),
        )
        return candidates

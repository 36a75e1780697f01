"""Test factories for generating synthetic test data with deterministic Faker."""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from faker import Faker

from rider_dispatch.delivery import DeliveryRequestCreate
from rider_dispatch.geo.distance import Coordinates
from rider_dispatch.geo.eta import VehicleClass
from rider_dispatch.matching import RiderDirectory
from rider_dispatch.rider import Rider, RiderRegistration, RiderStatus

# Connaught Place and India Gate, New Delhi
PICKUP = Coordinates(28.6315, 77.2167)
NEARBY = Coordinates(28.6139, 77.2090)
DROPOFF = Coordinates(28.5562, 77.1000)


class RiderFactory:
    """Factory for rider registrations with deterministic Faker data."""

    DEFAULT_SEED = 42

    def __init__(self, seed: int = DEFAULT_SEED):
        """Initialize factory with seeded Faker instance.

        Args:
            seed: Random seed for reproducible test data.
        """
        self.seed = seed
        self.fake = Faker("en_IN")
        self.fake.seed_instance(seed)

    def registration(self, **overrides: Any) -> RiderRegistration:
        """Create a RiderRegistration with Faker-generated personal data.

        Args:
            **overrides: Override any field with specific values.

        Returns:
            RiderRegistration with defaults or overridden values.
        """
        defaults: dict[str, Any] = {
            "full_name": self.fake.name(),
            "phone": self.fake.numerify("+919#########"),
            "email": self.fake.email(),
            "vehicle_class": VehicleClass.BIKE,
            "service_radius_km": 10.0,
            "commission_rate": Decimal("15.00"),
            "rating": 4.5,
        }
        defaults.update(overrides)
        return RiderRegistration(**defaults)

    def available_rider(
        self,
        directory: RiderDirectory,
        location: Coordinates = NEARBY,
        **overrides: Any,
    ) -> Rider:
        """Register a rider and make it dispatchable at location."""
        rider = directory.register(self.registration(**overrides))
        directory.set_status(rider.id, RiderStatus.ACTIVE)
        return directory.set_online(rider.id, True, location)


class DeliveryFactory:
    """Factory for delivery request payloads."""

    def __init__(self, seed: int = RiderFactory.DEFAULT_SEED):
        self.fake = Faker("en_IN")
        self.fake.seed_instance(seed)

    def payload(self, **overrides: Any) -> DeliveryRequestCreate:
        defaults: dict[str, Any] = {
            "customer_id": f"cust-{self.fake.uuid4()}",
            "pickup_address": self.fake.street_address(),
            "pickup_lat": PICKUP.lat,
            "pickup_lng": PICKUP.lng,
            "delivery_address": self.fake.street_address(),
            "delivery_lat": DROPOFF.lat,
            "delivery_lng": DROPOFF.lng,
            "package_description": "Laundry bag",
            "base_fee": Decimal("100.00"),
            "distance_fee": Decimal("40.00"),
            "payment_method": "upi",
        }
        defaults.update(overrides)
        return DeliveryRequestCreate(**defaults)

"""Geocoder interface consumed when a request arrives without coordinates."""

from typing import Protocol

from .distance import Coordinates


class Geocoder(Protocol):
    def geocode(self, address: str) -> Coordinates:
        """Resolve a street address.

        Raises:
            AddressNotFoundError: If the address cannot be resolved
        """
        ...

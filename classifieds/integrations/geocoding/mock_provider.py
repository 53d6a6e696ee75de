from __future__ import annotations

from classifieds.integrations.common import IntegrationError
from classifieds.integrations.geocoding.base import GeocodeResult, GeocodingProvider


class MockGeocodingProvider(GeocodingProvider):
    """Deterministic geocoder for sandbox runs: answers from a fixed table."""

    name = "mock"

    def __init__(self, places: dict[tuple[float, float], GeocodeResult] | None = None):
        self.places = dict(places or {})
        self.calls: list[tuple[float, float]] = []

    def reverse(self, *, latitude: float, longitude: float) -> GeocodeResult:
        key = (round(float(latitude), 4), round(float(longitude), 4))
        self.calls.append(key)
        if key not in self.places:
            raise IntegrationError("geocoding_no_result")
        return self.places[key]

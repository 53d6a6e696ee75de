from __future__ import annotations

import os

from classifieds.integrations.common import (
    IntegrationDisabledError,
    IntegrationMisconfiguredError,
    timeout_seconds,
)
from classifieds.integrations.geocoding.base import GeocodeResult, GeocodingProvider
from classifieds.integrations.geocoding.google_provider import GoogleGeocodingProvider
from classifieds.integrations.geocoding.mock_provider import MockGeocodingProvider


class DisabledGeocodingProvider(GeocodingProvider):
    name = "disabled"

    def reverse(self, *, latitude: float, longitude: float) -> GeocodeResult:
        raise IntegrationDisabledError("INTEGRATION_DISABLED:geocoding")


def build_geocoding_provider() -> GeocodingProvider:
    api_key = (os.getenv("GOOGLE_MAPS_API_KEY") or "").strip()
    mode = (os.getenv("GEOCODING_PROVIDER") or ("google" if api_key else "disabled")).strip().lower()
    if mode == "disabled":
        return DisabledGeocodingProvider()
    if mode == "mock":
        return MockGeocodingProvider()
    if mode == "google":
        if not api_key:
            raise IntegrationMisconfiguredError("INTEGRATION_MISCONFIGURED:missing GOOGLE_MAPS_API_KEY")
        return GoogleGeocodingProvider(api_key=api_key, timeout=timeout_seconds("GEOCODING_TIMEOUT_MS", 2500))
    raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:unknown geocoding provider {mode}")

from __future__ import annotations

import requests

from classifieds.integrations.common import IntegrationError, IntegrationTimeoutError, json_body
from classifieds.integrations.geocoding.base import GeocodeResult, GeocodingProvider


GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


def _component(components: list, kind: str) -> str:
    for comp in components or []:
        if kind in (comp.get("types") or []):
            return str(comp.get("long_name") or "")
    return ""


class GoogleGeocodingProvider(GeocodingProvider):
    name = "google"

    def __init__(self, *, api_key: str, timeout: float):
        self.api_key = api_key
        self.timeout = float(timeout)

    def reverse(self, *, latitude: float, longitude: float) -> GeocodeResult:
        params = {"latlng": f"{latitude},{longitude}", "key": self.api_key}
        try:
            r = requests.get(GOOGLE_GEOCODE_URL, params=params, timeout=self.timeout)
        except requests.Timeout as exc:
            raise IntegrationTimeoutError("geocoding_timeout") from exc
        except requests.RequestException as exc:
            raise IntegrationError(f"geocoding_request_failed {exc}") from exc
        if r.status_code >= 400:
            raise IntegrationError(f"geocoding_http_{r.status_code}")
        data = json_body(r, "geocoding", {})
        if not isinstance(data, dict):
            raise IntegrationError("geocoding_bad_payload")
        status = str(data.get("status") or "")
        results = data.get("results") or []
        if status != "OK" or not results:
            raise IntegrationError(f"geocoding_status {status or 'EMPTY'}")
        first = results[0]
        components = first.get("address_components") or []
        return GeocodeResult(
            city=_component(components, "locality") or _component(components, "administrative_area_level_2"),
            state=_component(components, "administrative_area_level_1"),
            country=_component(components, "country"),
            formatted_address=str(first.get("formatted_address") or ""),
        )

from __future__ import annotations

import logging

from classifieds.integrations.geocoding.base import GeocodingProvider
from classifieds.services.ads.payloads import CommonFields, PropertyDetails, VehicleDetails

logger = logging.getLogger(__name__)


def first_location_segment(location: str | None) -> str:
    return (location or "").split(",")[0].strip()


def property_title(details: PropertyDetails, location: str | None) -> str:
    parts = []
    if details.bedrooms:
        parts.append(f"{int(details.bedrooms)}BHK")
    parts.append(details.property_type)
    parts.append(f"in {first_location_segment(location)}")
    return " ".join(parts)


def vehicle_title(details: VehicleDetails, model_name: str | None) -> str:
    parts = [model_name or "Vehicle"]
    if details.year:
        parts.append(str(int(details.year)))
    if details.color:
        parts.append(f"({details.color})")
    return " ".join(parts)


def coordinate_string(latitude: float, longitude: float) -> str:
    return f"{float(latitude):.4f}, {float(longitude):.4f}"


class LocationResolver:
    """Fills a missing location string from coordinates.

    Geocoding failures never surface: the coordinates themselves become the
    location.
    """

    def __init__(self, geocoder: GeocodingProvider):
        self.geocoder = geocoder

    def resolve(self, common: CommonFields) -> CommonFields:
        if common.location or not common.has_coordinates:
            return common
        try:
            result = self.geocoder.reverse(latitude=common.latitude, longitude=common.longitude)
            location = result.location_string()
        except Exception as exc:
            logger.warning("geocoding_degraded provider=%s err=%s", getattr(self.geocoder, "name", ""), exc)
            location = ""
        if not location:
            location = coordinate_string(common.latitude, common.longitude)
        return common.with_location(location)

from __future__ import annotations

import math
from datetime import datetime
from typing import Any

from classifieds.models import AdCategory
from classifieds.services.ads.errors import ValidationError
from classifieds.services.ads.payloads import (
    CommercialVehicleDetails,
    CommonFields,
    CreateAdCommand,
    PropertyDetails,
    VehicleDetails,
)

MAX_IMAGES = 20
MIN_VEHICLE_YEAR = 1900


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _number(value: Any) -> float | None:
    if isinstance(value, bool) or value is None:
        return None
    try:
        num = float(value) if isinstance(value, (int, float)) else float(str(value).strip())
    except (TypeError, ValueError, OverflowError):
        return None
    # Rejects inf and nan.
    return num if math.isfinite(num) else None


def _integer(value: Any) -> int | None:
    num = _number(value)
    if num is None or num != int(num):
        return None
    return int(num)


def _flag(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


def _text(value: Any) -> str | None:
    if _is_blank(value):
        return None
    return str(value).strip()


class _Errors:
    def __init__(self):
        self.fields: dict[str, str] = {}

    def add(self, field: str, message: str) -> None:
        self.fields.setdefault(field, message)

    def raise_if_any(self) -> None:
        if self.fields:
            raise ValidationError(self.fields)


def _string_list(raw: Any, field: str, errors: _Errors) -> tuple[str, ...]:
    if raw is None:
        return ()
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        errors.add(field, f"{field} must be an array of strings")
        return ()
    return tuple(item.strip() for item in raw if item.strip())


def _required_text(data: dict, key: str, errors: _Errors) -> str:
    value = _text(data.get(key))
    if value is None:
        errors.add(key, f"{key} is required")
        return ""
    return value


def _bounded_number(
    data: dict,
    key: str,
    errors: _Errors,
    *,
    required: bool,
    integer: bool = False,
    minimum: float | None = None,
    exclusive_minimum: bool = False,
    maximum: float | None = None,
    message: str = "",
):
    raw = data.get(key)
    if _is_blank(raw):
        if required:
            errors.add(key, f"{key} is required")
        return None
    value = _integer(raw) if integer else _number(raw)
    if value is None:
        errors.add(key, f"{key} must be {'an integer' if integer else 'a number'}")
        return None
    too_small = minimum is not None and (value <= minimum if exclusive_minimum else value < minimum)
    too_large = maximum is not None and value > maximum
    if too_small or too_large:
        errors.add(key, message or f"{key} is out of range")
        return None
    return value


def _parse_common(data: dict, errors: _Errors) -> CommonFields:
    description = _required_text(data, "description", errors)
    price = _bounded_number(data, "price", errors, required=True, minimum=0, message="price must be a non-negative number")

    latitude = _bounded_number(data, "latitude", errors, required=False, minimum=-90, maximum=90, message="latitude must be between -90 and 90")
    longitude = _bounded_number(data, "longitude", errors, required=False, minimum=-180, maximum=180, message="longitude must be between -180 and 180")
    if (latitude is None) != (longitude is None) and not ({"latitude", "longitude"} & set(errors.fields)):
        errors.add("latitude" if latitude is None else "longitude", "latitude and longitude must be supplied together")

    location = _text(data.get("location"))
    if location is None and (latitude is None or longitude is None):
        errors.add("location", "location is required unless latitude and longitude are supplied")

    images = _string_list(data.get("images"), "images", errors)
    if len(images) > MAX_IMAGES:
        errors.add("images", f"Maximum {MAX_IMAGES} images allowed")

    return CommonFields(
        description=description,
        price=float(price or 0.0),
        location=location,
        latitude=latitude,
        longitude=longitude,
        images=images,
        link=_text(data.get("link")),
    )


def _parse_property(data: dict, errors: _Errors) -> PropertyDetails:
    property_type = _required_text(data, "propertyType", errors)
    bedrooms = _bounded_number(data, "bedrooms", errors, required=True, integer=True, minimum=0, message="bedrooms must be a non-negative number")
    bathrooms = _bounded_number(data, "bathrooms", errors, required=True, integer=True, minimum=0, message="bathrooms must be a non-negative number")
    area = _bounded_number(data, "areaSqft", errors, required=True, minimum=0, exclusive_minimum=True, message="areaSqft must be a positive number")
    floor = _bounded_number(data, "floor", errors, required=False, integer=True, minimum=0, message="floor must be a non-negative number")
    return PropertyDetails(
        property_type=property_type,
        bedrooms=int(bedrooms or 0),
        bathrooms=int(bathrooms or 0),
        area_sqft=float(area or 0.0),
        floor=floor,
        is_furnished=_flag(data.get("isFurnished")),
        has_parking=_flag(data.get("hasParking")),
        has_garden=_flag(data.get("hasGarden")),
        amenities=_string_list(data.get("amenities"), "amenities", errors),
    )


def _vehicle_kwargs(data: dict, errors: _Errors) -> dict:
    max_year = datetime.utcnow().year + 1
    year = _bounded_number(
        data, "year", errors, required=True, integer=True,
        minimum=MIN_VEHICLE_YEAR, maximum=max_year,
        message=f"year must be between {MIN_VEHICLE_YEAR} and {max_year}",
    )
    mileage = _bounded_number(data, "mileage", errors, required=True, integer=True, minimum=0, message="mileage must be a non-negative number")
    return {
        "vehicle_type": _required_text(data, "vehicleType", errors),
        "manufacturer_id": _required_text(data, "manufacturerId", errors),
        "model_id": _required_text(data, "modelId", errors),
        "variant_id": _text(data.get("variantId")),
        "year": int(year or 0),
        "mileage": int(mileage or 0),
        "transmission_type_id": _required_text(data, "transmissionTypeId", errors),
        "fuel_type_id": _required_text(data, "fuelTypeId", errors),
        "color": _required_text(data, "color", errors),
        "is_first_owner": _flag(data.get("isFirstOwner")),
        "has_insurance": _flag(data.get("hasInsurance")),
        "has_rc_book": _flag(data.get("hasRcBook")),
        "additional_features": _string_list(data.get("additionalFeatures"), "additionalFeatures", errors),
    }


def _parse_vehicle(data: dict, errors: _Errors) -> VehicleDetails:
    return VehicleDetails(**_vehicle_kwargs(data, errors))


def _parse_commercial(data: dict, errors: _Errors) -> CommercialVehicleDetails:
    kwargs = _vehicle_kwargs(data, errors)
    kwargs.update(
        commercial_vehicle_type=_text(data.get("commercialVehicleType")),
        body_type=_text(data.get("bodyType")),
        payload_capacity=_bounded_number(data, "payloadCapacity", errors, required=False, minimum=0, message="payloadCapacity must be a non-negative number"),
        payload_unit=_text(data.get("payloadUnit")),
        axle_count=_bounded_number(data, "axleCount", errors, required=False, integer=True, minimum=0, message="axleCount must be a non-negative number"),
        has_fitness=_flag(data.get("hasFitness")),
        has_permit=_flag(data.get("hasPermit")),
        seating_capacity=_bounded_number(data, "seatingCapacity", errors, required=False, integer=True, minimum=1, message="seatingCapacity must be at least 1"),
    )
    return CommercialVehicleDetails(**kwargs)


_SUBTYPE_PARSERS = {
    "property": _parse_property,
    "vehicle": _parse_vehicle,
    "commercial": _parse_commercial,
}


def parse_create_payload(body: Any, *, owner_id: int = 0, owner_type: str = "user") -> CreateAdCommand:
    """Turn a raw create body into a ``CreateAdCommand`` or raise ``ValidationError``.

    Common fields may sit at the top level or under ``data``. Exactly one
    category payload (``property``, ``vehicle`` or ``commercial``) must be
    present and it must match the category.
    """
    if not isinstance(body, dict):
        raise ValidationError({"body": "request body must be a JSON object"})
    errors = _Errors()

    category = (_text(body.get("category")) or "").lower()
    if category not in AdCategory.ALL:
        errors.add("category", f"category must be one of {', '.join(AdCategory.ALL)}")
        errors.raise_if_any()

    common_src = body.get("data") if isinstance(body.get("data"), dict) else body
    common = _parse_common(common_src, errors)

    expected = AdCategory.PAYLOAD_KEYS[category]
    for key in _SUBTYPE_PARSERS:
        if key != expected and body.get(key) is not None:
            errors.add(key, f"Only {expected} data should be provided for {category} advertisements")
    raw_details = body.get(expected)
    if not isinstance(raw_details, dict):
        errors.add(expected, f"{expected} data is required for {category} advertisements")
        errors.raise_if_any()

    details = _SUBTYPE_PARSERS[expected](raw_details, errors)
    errors.raise_if_any()
    return CreateAdCommand(
        category=category,
        common=common,
        details=details,
        owner_id=int(owner_id or 0),
        owner_type=(owner_type or "user").strip().lower(),
    )


def ensure_commercial_fields(details: CommercialVehicleDetails) -> None:
    if not details.has_commercial_fields():
        raise ValidationError(
            {
                "commercial": (
                    "At least one commercial-specific field (commercialVehicleType, bodyType, "
                    "payloadCapacity, axleCount, or seatingCapacity) must be provided"
                )
            }
        )


def ensure_location(common: CommonFields) -> None:
    if _is_blank(common.location):
        raise ValidationError({"location": "location is required"})

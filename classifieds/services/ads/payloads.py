from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class CommonFields:
    description: str
    price: float
    location: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    images: tuple[str, ...] = ()
    link: str | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def with_location(self, location: str) -> "CommonFields":
        return replace(self, location=location)


@dataclass(frozen=True)
class PropertyDetails:
    property_type: str
    bedrooms: int
    bathrooms: int
    area_sqft: float
    floor: int | None = None
    is_furnished: bool = False
    has_parking: bool = False
    has_garden: bool = False
    amenities: tuple[str, ...] = ()


@dataclass(frozen=True)
class VehicleDetails:
    vehicle_type: str
    manufacturer_id: str
    model_id: str
    year: int
    mileage: int
    transmission_type_id: str
    fuel_type_id: str
    color: str
    variant_id: str | None = None
    is_first_owner: bool = False
    has_insurance: bool = False
    has_rc_book: bool = False
    additional_features: tuple[str, ...] = ()


@dataclass(frozen=True)
class CommercialVehicleDetails(VehicleDetails):
    commercial_vehicle_type: str | None = None
    body_type: str | None = None
    payload_capacity: float | None = None
    payload_unit: str | None = None
    axle_count: int | None = None
    has_fitness: bool = False
    has_permit: bool = False
    seating_capacity: int | None = None

    COMMERCIAL_FIELDS = (
        "commercial_vehicle_type",
        "body_type",
        "payload_capacity",
        "axle_count",
        "seating_capacity",
    )

    def has_commercial_fields(self) -> bool:
        return any(getattr(self, name) not in (None, "") for name in self.COMMERCIAL_FIELDS)


# Exactly one of these rides along with every create command.
SubtypeDetails = PropertyDetails | VehicleDetails | CommercialVehicleDetails


@dataclass(frozen=True)
class CreateAdCommand:
    category: str
    common: CommonFields
    details: SubtypeDetails
    owner_id: int = 0
    owner_type: str = "user"

    def with_details(self, details: SubtypeDetails) -> "CreateAdCommand":
        return replace(self, details=details)

    def with_common(self, common: CommonFields) -> "CreateAdCommand":
        return replace(self, common=common)

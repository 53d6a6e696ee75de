from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.orm import selectinload

from classifieds.models import Ad, AdCategory, CommercialVehicleAd, PropertyAd, VehicleAd
from classifieds.services.ads.errors import ValidationError
from classifieds.services.ads.location_hierarchy import LocationHierarchy, manhattan_distance_km
from classifieds.services.ads.repository import live_ads_clause
from classifieds.services.ads.serializers import serialize_list_item

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = 20
MAX_LIMIT = 100
DEFAULT_RADII_KM = (50, 100, 200, 500, 1000)

SORT_COLUMNS = {
    "createdAt": Ad.created_at,
    "updatedAt": Ad.updated_at,
    "price": Ad.price,
    "title": Ad.title,
    "category": Ad.category,
}

# Attribute filters owned by each subtype family.
PROPERTY_FILTERS = (
    "property_types",
    "min_bedrooms",
    "max_bedrooms",
    "min_area",
    "max_area",
    "is_furnished",
    "has_parking",
)
VEHICLE_FILTERS = (
    "manufacturer_ids",
    "model_ids",
    "variant_ids",
    "fuel_type_ids",
    "transmission_type_ids",
    "min_year",
    "max_year",
    "max_mileage",
)

# Request key -> (attribute, kind).
_FILTER_FIELDS = {
    "category": ("category", "text"),
    "search": ("search", "text"),
    "location": ("location", "text"),
    "minPrice": ("min_price", "number"),
    "maxPrice": ("max_price", "number"),
    "latitude": ("latitude", "number"),
    "longitude": ("longitude", "number"),
    "propertyTypes": ("property_types", "list"),
    "minBedrooms": ("min_bedrooms", "int"),
    "maxBedrooms": ("max_bedrooms", "int"),
    "minArea": ("min_area", "number"),
    "maxArea": ("max_area", "number"),
    "isFurnished": ("is_furnished", "bool"),
    "hasParking": ("has_parking", "bool"),
    "manufacturerIds": ("manufacturer_ids", "list"),
    "modelIds": ("model_ids", "list"),
    "variantIds": ("variant_ids", "list"),
    "fuelTypeIds": ("fuel_type_ids", "list"),
    "transmissionTypeIds": ("transmission_type_ids", "list"),
    "minYear": ("min_year", "int"),
    "maxYear": ("max_year", "int"),
    "maxMileage": ("max_mileage", "int"),
}


def _coerce(raw: Any, kind: str, name: str):
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return None
    if kind == "text":
        return str(raw).strip()
    if kind == "list":
        items = raw if isinstance(raw, (list, tuple)) else str(raw).split(",")
        values = tuple(str(item).strip() for item in items if str(item).strip())
        return values or None
    if kind == "bool":
        if isinstance(raw, bool):
            return raw
        text = str(raw).strip().lower()
        if text in ("1", "true", "yes", "on"):
            return True
        if text in ("0", "false", "no", "off"):
            return False
        raise ValidationError({name: f"{name} must be a boolean"})
    try:
        if isinstance(raw, bool):
            raise ValueError
        value = float(raw)
    except (TypeError, ValueError, OverflowError):
        value = math.nan
    if not math.isfinite(value):
        raise ValidationError({name: f"{name} must be a number"})
    if kind == "int":
        return int(value)
    return value


def _clamp_int(raw: Any, default: int, minimum: int, maximum: int) -> int:
    try:
        value = int(float(raw))
    except (TypeError, ValueError, OverflowError):
        value = default
    return max(minimum, min(value, maximum))


@dataclass(frozen=True)
class ListFilters:
    category: str | None = None
    search: str | None = None
    location: str | None = None
    min_price: float | None = None
    max_price: float | None = None
    latitude: float | None = None
    longitude: float | None = None
    page: int = 1
    limit: int = DEFAULT_LIMIT
    sort_by: str = "createdAt"
    sort_order: str = "DESC"
    property_types: tuple[str, ...] | None = None
    min_bedrooms: int | None = None
    max_bedrooms: int | None = None
    min_area: float | None = None
    max_area: float | None = None
    is_furnished: bool | None = None
    has_parking: bool | None = None
    manufacturer_ids: tuple[str, ...] | None = None
    model_ids: tuple[str, ...] | None = None
    variant_ids: tuple[str, ...] | None = None
    fuel_type_ids: tuple[str, ...] | None = None
    transmission_type_ids: tuple[str, ...] | None = None
    min_year: int | None = None
    max_year: int | None = None
    max_mileage: int | None = None

    @classmethod
    def from_mapping(cls, data: Any) -> "ListFilters":
        data = data if hasattr(data, "get") else {}
        values: dict[str, Any] = {}
        for key, (attr, kind) in _FILTER_FIELDS.items():
            values[attr] = _coerce(data.get(key), kind, key)
        if values["category"] is not None:
            values["category"] = values["category"].lower()
            if values["category"] not in AdCategory.ALL:
                raise ValidationError({"category": f"category must be one of {', '.join(AdCategory.ALL)}"})
        if (values["latitude"] is None) != (values["longitude"] is None):
            raise ValidationError({"latitude": "latitude and longitude must be supplied together"})
        sort_by = str(data.get("sortBy") or "createdAt").strip()
        sort_order = str(data.get("sortOrder") or "DESC").strip().upper()
        return cls(
            page=_clamp_int(data.get("page"), 1, 1, 1_000_000),
            limit=_clamp_int(data.get("limit"), DEFAULT_LIMIT, 1, MAX_LIMIT),
            sort_by=sort_by if sort_by in SORT_COLUMNS else "createdAt",
            sort_order=sort_order if sort_order in ("ASC", "DESC") else "DESC",
            **values,
        )

    def has_geo(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def has_property_filters(self) -> bool:
        return any(getattr(self, name) is not None for name in PROPERTY_FILTERS)

    def has_vehicle_filters(self) -> bool:
        return any(getattr(self, name) is not None for name in VEHICLE_FILTERS)

    def _narrowing(self) -> dict[str, Any]:
        skip = {"page", "limit", "sort_by", "sort_order"}
        return {
            name: getattr(self, name)
            for name in self.__dataclass_fields__
            if name not in skip and getattr(self, name) is not None
        }

    def is_unfiltered(self) -> bool:
        return not self._narrowing()

    def is_category_location_only(self) -> bool:
        return set(self._narrowing()) == {"category", "location"}


@dataclass
class ListPage:
    data: list[dict] = field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = DEFAULT_LIMIT
    search_radius_km: int | None = None

    def to_dict(self) -> dict:
        total_pages = int(math.ceil(self.total / self.limit)) if self.limit else 0
        return {
            "data": self.data,
            "total": int(self.total),
            "page": int(self.page),
            "limit": int(self.limit),
            "totalPages": total_pages,
            "hasNext": self.page < total_pages,
            "hasPrev": self.page > 1,
            "searchRadiusKm": self.search_radius_km,
        }


def _subtype_ids(model, conditions: list):
    return select(model.ad_id).where(*conditions)


def _vehicle_conditions(model, f: ListFilters) -> list:
    conds = []
    if f.manufacturer_ids:
        conds.append(model.manufacturer_id.in_(f.manufacturer_ids))
    if f.model_ids:
        conds.append(model.model_id.in_(f.model_ids))
    if f.variant_ids:
        conds.append(model.variant_id.in_(f.variant_ids))
    if f.fuel_type_ids:
        conds.append(model.fuel_type_id.in_(f.fuel_type_ids))
    if f.transmission_type_ids:
        conds.append(model.transmission_type_id.in_(f.transmission_type_ids))
    if f.min_year is not None:
        conds.append(model.year >= f.min_year)
    if f.max_year is not None:
        conds.append(model.year <= f.max_year)
    if f.max_mileage is not None:
        conds.append(model.mileage <= f.max_mileage)
    return conds


def _property_conditions(f: ListFilters) -> list:
    conds = []
    if f.property_types:
        conds.append(PropertyAd.property_type.in_(f.property_types))
    if f.min_bedrooms is not None:
        conds.append(PropertyAd.bedrooms >= f.min_bedrooms)
    if f.max_bedrooms is not None:
        conds.append(PropertyAd.bedrooms <= f.max_bedrooms)
    if f.min_area is not None:
        conds.append(PropertyAd.area_sqft >= f.min_area)
    if f.max_area is not None:
        conds.append(PropertyAd.area_sqft <= f.max_area)
    if f.is_furnished is not None:
        conds.append(PropertyAd.is_furnished.is_(f.is_furnished))
    if f.has_parking is not None:
        conds.append(PropertyAd.has_parking.is_(f.has_parking))
    return conds


class ListQueryEngine:
    """Filtered, sorted, paginated listing of visible ads.

    With viewer coordinates the query is first bounded to the smallest radius
    of the ladder that yields a match; when none does, geography is dropped
    and the remaining filters run unbounded.
    """

    def __init__(self, hierarchy: LocationHierarchy | None = None, *, radii_km=DEFAULT_RADII_KM):
        self.hierarchy = hierarchy or LocationHierarchy()
        self.radii_km = tuple(sorted(int(r) for r in radii_km))

    def filtered_query(self, f: ListFilters):
        q = Ad.query.filter(
            Ad.is_active.is_(True),
            Ad.is_approved.is_(True),
            live_ads_clause(),
        )
        if f.category:
            q = q.filter(Ad.category == f.category)
        if f.search:
            like = f"%{f.search}%"
            q = q.filter(or_(Ad.title.ilike(like), Ad.description.ilike(like)))
        if f.location:
            q = q.filter(Ad.location.ilike(f"%{f.location}%"))
        if f.min_price is not None:
            q = q.filter(Ad.price >= f.min_price)
        if f.max_price is not None:
            q = q.filter(Ad.price <= f.max_price)
        if f.has_property_filters():
            # Property predicates only make sense for property ads.
            q = q.filter(Ad.category == AdCategory.PROPERTY)
            q = q.filter(Ad.id.in_(_subtype_ids(PropertyAd, _property_conditions(f))))
        if f.has_vehicle_filters():
            q = q.filter(Ad.category.in_(AdCategory.VEHICLES))
            q = q.filter(
                or_(
                    Ad.id.in_(_subtype_ids(VehicleAd, _vehicle_conditions(VehicleAd, f))),
                    Ad.id.in_(_subtype_ids(CommercialVehicleAd, _vehicle_conditions(CommercialVehicleAd, f))),
                )
            )
        return q

    def _distance(self, f: ListFilters):
        return manhattan_distance_km(Ad.latitude, Ad.longitude, f.latitude, f.longitude)

    def _within(self, q, f: ListFilters, radius_km: int):
        return q.filter(
            Ad.latitude.isnot(None),
            Ad.longitude.isnot(None),
            self._distance(f) <= float(radius_km),
        )

    def _ordered(self, q, f: ListFilters, *leading):
        column = SORT_COLUMNS.get(f.sort_by, Ad.created_at)
        direction = column.asc() if f.sort_order == "ASC" else column.desc()
        return q.order_by(*leading, direction, Ad.id.desc())

    def _eager(self, q):
        return q.options(
            selectinload(Ad.property_details),
            selectinload(Ad.vehicle_details),
            selectinload(Ad.commercial_vehicle_details),
        )

    def _offset(self, f: ListFilters) -> int:
        return (f.page - 1) * f.limit

    def _plain_page(self, f: ListFilters) -> ListPage:
        q = self.filtered_query(f)
        total = q.order_by(None).count()
        rows = self._ordered(self._eager(q), f).offset(self._offset(f)).limit(f.limit).all()
        return ListPage(
            data=[serialize_list_item(ad) for ad in rows],
            total=total,
            page=f.page,
            limit=f.limit,
        )

    def _geo_page(self, f: ListFilters, radius_km: int, total: int) -> ListPage:
        score = self.hierarchy.score_expression(f.latitude, f.longitude, Ad.latitude, Ad.longitude).label("location_score")
        distance = self._distance(f).label("distance_km")
        q = self._within(self.filtered_query(f), f, radius_km)
        q = self._eager(q).add_columns(score, distance)
        rows = self._ordered(q, f, score.desc()).offset(self._offset(f)).limit(f.limit).all()
        data = [
            serialize_list_item(ad, location_score=int(row_score or 0), distance_km=float(row_distance or 0.0))
            for ad, row_score, row_distance in rows
        ]
        return ListPage(data=data, total=total, page=f.page, limit=f.limit, search_radius_km=radius_km)

    def run(self, f: ListFilters) -> ListPage:
        if not f.has_geo():
            return self._plain_page(f)
        base = self.filtered_query(f)
        for radius_km in self.radii_km:
            total = self._within(base, f, radius_km).order_by(None).count()
            if total > 0:
                logger.info("ads_geo_radius_hit radius_km=%s total=%s", radius_km, total)
                return self._geo_page(f, radius_km, total)
        logger.info("ads_geo_fallback_exhausted radii=%s", ",".join(str(r) for r in self.radii_km))
        return self._plain_page(f)

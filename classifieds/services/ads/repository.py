from __future__ import annotations

import json
from datetime import datetime

from sqlalchemy import func, or_, update
from sqlalchemy.orm import selectinload

from classifieds.extensions import db
from classifieds.models import (
    Ad,
    AdCategory,
    CommercialVehicleAd,
    Favorite,
    PropertyAd,
    VehicleAd,
)
from classifieds.services.ads.payloads import (
    CommercialVehicleDetails,
    CreateAdCommand,
    PropertyDetails,
    VehicleDetails,
)


def _property_row(ad_id: int, d: PropertyDetails) -> PropertyAd:
    return PropertyAd(
        ad_id=ad_id,
        property_type=d.property_type,
        bedrooms=d.bedrooms,
        bathrooms=d.bathrooms,
        area_sqft=d.area_sqft,
        floor=d.floor,
        is_furnished=d.is_furnished,
        has_parking=d.has_parking,
        has_garden=d.has_garden,
        amenities_json=json.dumps(list(d.amenities)),
    )


def _vehicle_columns(d: VehicleDetails) -> dict:
    return {
        "vehicle_type": d.vehicle_type,
        "manufacturer_id": d.manufacturer_id,
        "model_id": d.model_id,
        "variant_id": d.variant_id,
        "year": d.year,
        "mileage": d.mileage,
        "transmission_type_id": d.transmission_type_id,
        "fuel_type_id": d.fuel_type_id,
        "color": d.color,
        "is_first_owner": d.is_first_owner,
        "has_insurance": d.has_insurance,
        "has_rc_book": d.has_rc_book,
        "additional_features_json": json.dumps(list(d.additional_features)),
    }


def _vehicle_row(ad_id: int, d: VehicleDetails) -> VehicleAd:
    return VehicleAd(ad_id=ad_id, **_vehicle_columns(d))


def _commercial_row(ad_id: int, d: CommercialVehicleDetails) -> CommercialVehicleAd:
    return CommercialVehicleAd(
        ad_id=ad_id,
        commercial_vehicle_type=d.commercial_vehicle_type,
        body_type=d.body_type,
        payload_capacity=d.payload_capacity,
        payload_unit=d.payload_unit,
        axle_count=d.axle_count,
        has_fitness=d.has_fitness,
        has_permit=d.has_permit,
        seating_capacity=d.seating_capacity,
        **_vehicle_columns(d),
    )


# Payload type -> (row builder, categories it may be stored under).
SUBTYPE_WRITERS = {
    PropertyDetails: (_property_row, {AdCategory.PROPERTY}),
    VehicleDetails: (_vehicle_row, {AdCategory.PRIVATE_VEHICLE, AdCategory.TWO_WHEELER}),
    CommercialVehicleDetails: (_commercial_row, {AdCategory.COMMERCIAL_VEHICLE}),
}


def live_ads_clause():
    return or_(Ad.is_deleted.is_(False), Ad.is_deleted.is_(None))


class AdRepository:
    """Storage access for ads and the records hanging off them.

    Writes only stage rows on the session; committing is the caller's call.
    """

    def __init__(self, *, auto_approve: bool = False):
        self.auto_approve = bool(auto_approve)

    def add_ad(self, command: CreateAdCommand, *, title: str) -> Ad:
        common = command.common
        now = datetime.utcnow()
        ad = Ad(
            owner_id=int(command.owner_id),
            owner_type=command.owner_type,
            category=command.category,
            title=title[:200],
            description=common.description,
            price=float(common.price),
            link=common.link,
            location=common.location or "",
            latitude=common.latitude,
            longitude=common.longitude,
            is_active=True,
            is_approved=self.auto_approve,
            sold_out=False,
            is_deleted=False,
            view_count=0,
            created_at=now,
            updated_at=now,
        )
        ad.images = common.images
        db.session.add(ad)
        db.session.flush()
        return ad

    def add_subtype(self, ad: Ad, details):
        entry = SUBTYPE_WRITERS.get(type(details))
        if entry is None:
            raise TypeError(f"unsupported ad details {type(details).__name__}")
        build, categories = entry
        if ad.category not in categories:
            raise ValueError(f"details {type(details).__name__} do not match category {ad.category}")
        row = build(int(ad.id), details)
        db.session.add(row)
        db.session.flush()
        return row

    def get_live(self, ad_id: int) -> Ad | None:
        return (
            Ad.query
            .options(
                selectinload(Ad.property_details),
                selectinload(Ad.vehicle_details),
                selectinload(Ad.commercial_vehicle_details),
            )
            .filter(Ad.id == int(ad_id), live_ads_clause())
            .first()
        )

    def favorites_count(self, ad_id: int) -> int:
        return int(
            db.session.query(func.count(Favorite.id)).filter(Favorite.ad_id == int(ad_id)).scalar() or 0
        )

    def is_favorited(self, ad_id: int, user_id: int | None) -> bool:
        if user_id is None:
            return False
        return (
            Favorite.query.filter_by(ad_id=int(ad_id), user_id=int(user_id)).first() is not None
        )

    def favorited_ids(self, user_id: int | None, ad_ids: list[int]) -> set[int]:
        if user_id is None or not ad_ids:
            return set()
        rows = (
            db.session.query(Favorite.ad_id)
            .filter(Favorite.user_id == int(user_id), Favorite.ad_id.in_([int(i) for i in ad_ids]))
            .all()
        )
        return {int(r[0]) for r in rows}

    def increment_views(self, ad_id: int) -> None:
        db.session.execute(
            update(Ad).where(Ad.id == int(ad_id)).values(view_count=Ad.view_count + 1, updated_at=Ad.updated_at)
        )
        db.session.commit()

from __future__ import annotations

from classifieds.models import Ad


def _owner(ad: Ad) -> dict | None:
    owner = getattr(ad, "owner", None)
    return owner.to_summary() if owner is not None else None


def _subtype_section(ad: Ad) -> dict:
    if ad.property_details is not None:
        return {"propertyDetails": ad.property_details.to_dict()}
    if ad.vehicle_details is not None:
        return {"vehicleDetails": ad.vehicle_details.to_dict()}
    if ad.commercial_vehicle_details is not None:
        return {"commercialVehicleDetails": ad.commercial_vehicle_details.to_dict()}
    return {}


def serialize_list_item(ad: Ad, *, location_score: int | None = None, distance_km: float | None = None) -> dict:
    item = ad.to_dict()
    item["postedBy"] = int(ad.owner_id)
    item["user"] = _owner(ad)
    item.update(_subtype_section(ad))
    if location_score is not None:
        item["locationScore"] = int(location_score)
    if distance_km is not None:
        item["distanceKm"] = round(float(distance_km), 2)
    return item


def serialize_detail(ad: Ad, *, inventory_names: dict | None = None) -> dict:
    """Full single-ad view; vehicle sections carry resolved inventory records."""
    view = ad.to_dict()
    view["postedBy"] = int(ad.owner_id)
    view["user"] = _owner(ad)
    sections = _subtype_section(ad)
    for key in ("vehicleDetails", "commercialVehicleDetails"):
        if key in sections:
            names = inventory_names or {}
            for name_key in ("manufacturer", "model", "variant", "transmissionType", "fuelType"):
                sections[key][name_key] = names.get(name_key)
    view.update(sections)
    return view


def annotate_favorites(items: list[dict], favorited_ids: set[int]) -> list[dict]:
    return [dict(item, isFavorite=int(item.get("id") or 0) in favorited_ids) for item in items]

from __future__ import annotations

import logging
from dataclasses import replace

from classifieds.services.ads.inventory_gateway import InventoryGateway
from classifieds.services.ads.payloads import CommercialVehicleDetails

logger = logging.getLogger(__name__)

# Inventory vehicle types treated as commercial even without explicit flags.
_COMMERCIAL_BODY_DEFAULTS = {
    "truck": {
        "commercial_vehicle_type": "truck",
        "body_type": "flatbed",
        "payload_capacity": 5000.0,
        "payload_unit": "kg",
        "axle_count": 2,
        "seating_capacity": 3,
    },
}


def commercial_defaults(model: dict | None) -> dict:
    """Commercial defaults implied by an inventory model record (snake_case keys)."""
    if not model:
        return {}
    if model.get("isCommercialVehicle"):
        return {
            "commercial_vehicle_type": (model.get("commercialVehicleType") or None),
            "body_type": (model.get("commercialBodyType") or None),
            "payload_capacity": model.get("defaultPayloadCapacity"),
            "payload_unit": model.get("defaultPayloadUnit"),
            "axle_count": model.get("defaultAxleCount"),
            "seating_capacity": model.get("defaultSeatingCapacity"),
        }
    vehicle_type = str(model.get("vehicleType") or "").strip().lower()
    base = _COMMERCIAL_BODY_DEFAULTS.get(vehicle_type)
    if base is None:
        return {}
    return {
        **base,
        "payload_capacity": model.get("defaultPayloadCapacity") or base["payload_capacity"],
        "payload_unit": model.get("defaultPayloadUnit") or base["payload_unit"],
        "axle_count": model.get("defaultAxleCount") or base["axle_count"],
        "seating_capacity": model.get("defaultSeatingCapacity") or base["seating_capacity"],
    }


def apply_commercial_defaults(details: CommercialVehicleDetails, gateway: InventoryGateway) -> CommercialVehicleDetails:
    """Fill absent commercial fields from the inventory model; the seller's values always win."""
    model = gateway.get_model(details.model_id)
    defaults = commercial_defaults(model)
    updates = {
        name: value
        for name, value in defaults.items()
        if value not in (None, "") and getattr(details, name) in (None, "")
    }
    if not updates:
        return details
    logger.info("commercial_defaults_applied model_id=%s fields=%s", details.model_id, ",".join(sorted(updates)))
    return replace(details, **updates)

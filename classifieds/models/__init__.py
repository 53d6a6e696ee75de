from classifieds.models.user import User
from classifieds.models.ad import Ad, AdCategory
from classifieds.models.property_ad import PropertyAd
from classifieds.models.vehicle_ad import VehicleAd
from classifieds.models.commercial_vehicle_ad import CommercialVehicleAd
from classifieds.models.favorite import Favorite
from classifieds.models.idempotency_key import IdempotencyKey
from classifieds.models.outbox_event import OutboxEvent

__all__ = [
    "User",
    "Ad",
    "AdCategory",
    "PropertyAd",
    "VehicleAd",
    "CommercialVehicleAd",
    "Favorite",
    "IdempotencyKey",
    "OutboxEvent",
]

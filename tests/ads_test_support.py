from __future__ import annotations

import os
import time
import unittest

from classifieds import create_app
from classifieds.extensions import db
from classifieds.integrations.chat.base import ChatDirectory, ChatRoomSummary
from classifieds.integrations.geocoding.base import GeocodeResult
from classifieds.integrations.geocoding.mock_provider import MockGeocodingProvider
from classifieds.integrations.inventory.catalog_provider import CatalogInventoryProvider
from classifieds.models import User
from classifieds.services.ads.container import init_ads_services
from classifieds.utils import cache_layer
from classifieds.utils.jwt_utils import create_access_token


CATALOG = {
    "manufacturers": {
        "mfr-maruti": {"name": "Maruti Suzuki"},
        "mfr-tata": {"name": "Tata Motors"},
    },
    "models": {
        "mdl-swift": {"name": "Swift", "displayName": "Maruti Swift", "vehicleType": "car"},
        "mdl-ace": {
            "name": "Ace",
            "displayName": "Tata Ace",
            "vehicleType": "truck",
            "isCommercialVehicle": True,
            "commercialVehicleType": "mini_truck",
            "commercialBodyType": "open",
            "defaultPayloadCapacity": 750,
            "defaultPayloadUnit": "kg",
            "defaultAxleCount": 2,
            "defaultSeatingCapacity": 2,
        },
        "mdl-bus": {"name": "Starbus", "vehicleType": "bus"},
    },
    "variants": {"var-vxi": {"name": "VXi"}},
    "transmissionTypes": {"tr-manual": {"name": "Manual"}},
    "fuelTypes": {"fuel-petrol": {"name": "Petrol"}, "fuel-diesel": {"name": "Diesel"}},
}

PLACES = {
    (9.2648, 76.787): GeocodeResult(city="Pathanamthitta", state="Kerala", country="India"),
}

_ENV_KEYS = (
    "SQLALCHEMY_DATABASE_URI",
    "DATABASE_URL",
    "ENABLE_CACHE",
    "CACHE_REDIS_URL",
    "REDIS_URL",
    "ADS_AUTO_APPROVE",
    "ADS_VIEW_COUNT_QUEUE",
    "ADS_REGION_HIERARCHY_JSON",
    "ADS_GEO_RADII_KM",
    "GEOCODING_PROVIDER",
    "INVENTORY_PROVIDER",
    "CHAT_SERVICE_URL",
    "CLASSIFIEDS_ENV",
)


class FakeChatDirectory(ChatDirectory):
    name = "fake"

    def __init__(self, rooms=None):
        self.rooms = list(rooms or [])

    def rooms_for_ad(self, ad_id: int, *, limit: int = 10):
        return [room for room in self.rooms if room.id.startswith(f"{ad_id}-")][:limit]


def property_body(**overrides) -> dict:
    body = {
        "category": "property",
        "description": "2BHK Flat",
        "price": 8500000,
        "location": "Pune",
        "property": {"propertyType": "apartment", "bedrooms": 2, "bathrooms": 2, "areaSqft": 1200},
    }
    body.update(overrides)
    return body


def vehicle_body(**vehicle_overrides) -> dict:
    vehicle = {
        "vehicleType": "car",
        "manufacturerId": "mfr-maruti",
        "modelId": "mdl-swift",
        "variantId": "var-vxi",
        "year": 2020,
        "mileage": 32000,
        "transmissionTypeId": "tr-manual",
        "fuelTypeId": "fuel-petrol",
        "color": "Red",
    }
    vehicle.update(vehicle_overrides)
    return {
        "category": "private_vehicle",
        "description": "Single owner, serviced",
        "price": 550000,
        "location": "Kochi, Kerala",
        "vehicle": vehicle,
    }


def commercial_body(**commercial_overrides) -> dict:
    commercial = {
        "vehicleType": "truck",
        "manufacturerId": "mfr-tata",
        "modelId": "mdl-ace",
        "year": 2019,
        "mileage": 81000,
        "transmissionTypeId": "tr-manual",
        "fuelTypeId": "fuel-diesel",
        "color": "White",
    }
    commercial.update(commercial_overrides)
    return {
        "category": "commercial_vehicle",
        "description": "Goods carrier",
        "price": 420000,
        "location": "Thrissur, Kerala",
        "commercial": commercial,
    }


class AdsApiTestCase(unittest.TestCase):
    """Boots the app on in-memory sqlite with the memory cache and fake collaborators."""

    @classmethod
    def setUpClass(cls):
        cls._saved_env = {key: os.getenv(key) for key in _ENV_KEYS}
        db_uri = "sqlite:///:memory:"
        os.environ["SQLALCHEMY_DATABASE_URI"] = db_uri
        os.environ["DATABASE_URL"] = db_uri
        os.environ["ENABLE_CACHE"] = "true"
        os.environ["CACHE_REDIS_URL"] = ""
        os.environ["REDIS_URL"] = ""
        os.environ["ADS_AUTO_APPROVE"] = "true"
        os.environ["ADS_VIEW_COUNT_QUEUE"] = ""
        os.environ["ADS_REGION_HIERARCHY_JSON"] = ""
        os.environ["ADS_GEO_RADII_KM"] = ""
        os.environ["GEOCODING_PROVIDER"] = "disabled"
        os.environ["INVENTORY_PROVIDER"] = "catalog"
        os.environ["CHAT_SERVICE_URL"] = ""
        os.environ["CLASSIFIEDS_ENV"] = "test"
        cls.app = create_app()
        cls.app.config.update(TESTING=True)
        cls.client = cls.app.test_client()

    @classmethod
    def tearDownClass(cls):
        for key, value in cls._saved_env.items():
            if value is None:
                os.environ.pop(key, None)
            else:
                os.environ[key] = value

    def setUp(self):
        cache_layer._reset_cache_state_for_tests()
        self.geocoder = MockGeocodingProvider(PLACES)
        self.chat = FakeChatDirectory()
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.create_all()
            self.services = init_ads_services(
                self.app,
                inventory_provider=CatalogInventoryProvider(CATALOG),
                geocoder=self.geocoder,
                chat=self.chat,
            )
            self.seller_id = self._make_user("seller", role="dealer")
            self.viewer_id = self._make_user("viewer")
        self.seller_headers = self._auth(self.seller_id)
        self.viewer_headers = self._auth(self.viewer_id)

    def _make_user(self, label: str, role: str = "user") -> int:
        stamp = str(time.time_ns())
        user = User(name=label.title(), email=f"{label}-{stamp}@classifieds.test", role=role, is_verified=True)
        db.session.add(user)
        db.session.commit()
        return int(user.id)

    def _auth(self, user_id: int, **extra) -> dict:
        headers = {"Authorization": f"Bearer {create_access_token(user_id)}"}
        headers.update(extra)
        return headers

    def create(self, body: dict, *, key: str | None = None, expect: int = 201) -> dict:
        headers = self.seller_headers if key is None else self._auth(self.seller_id, **{"Idempotency-Key": key})
        res = self.client.post("/api/v2/ads", json=body, headers=headers)
        self.assertEqual(res.status_code, expect, res.get_json())
        return res.get_json()


def chat_room(ad_id: int, index: int, *, buyer_id: int, seller_id: int) -> ChatRoomSummary:
    return ChatRoomSummary(
        id=f"{ad_id}-{index}",
        buyer_id=buyer_id,
        seller_id=seller_id,
        last_message="Is it available?",
        last_message_at=f"2026-03-{index:02d}T10:00:00",
    )

from __future__ import annotations

import json
from unittest.mock import patch

from ads_test_support import AdsApiTestCase, commercial_body, property_body, vehicle_body

from classifieds.extensions import db
from classifieds.models import Ad, CommercialVehicleAd, OutboxEvent, PropertyAd, VehicleAd
from classifieds.services.ads.repository import AdRepository


class AdsCreateTestCase(AdsApiTestCase):
    def test_property_ad_title_and_detail_view(self):
        data = self.create(property_body())
        self.assertTrue(data["title"].startswith("2BHK apartment in Pune"))
        self.assertEqual(data["category"], "property")
        self.assertEqual(data["propertyDetails"]["bedrooms"], 2)
        self.assertEqual(data["propertyDetails"]["areaSqft"], 1200.0)
        self.assertEqual(data["user"]["id"], self.seller_id)
        self.assertEqual(data["ownerType"], "dealer")
        self.assertNotIn("vehicleDetails", data)

    def test_common_fields_accepted_under_data(self):
        body = {
            "category": "property",
            "data": {"description": "Sea view villa", "price": 12000000, "location": "Goa, India"},
            "property": {"propertyType": "villa", "bedrooms": 0, "bathrooms": 3, "areaSqft": 3000},
        }
        data = self.create(body)
        self.assertEqual(data["title"], "villa in Goa")
        self.assertEqual(data["price"], 12000000.0)

    def test_vehicle_ad_title_uses_inventory_display_name(self):
        data = self.create(vehicle_body())
        self.assertEqual(data["title"], "Maruti Swift 2020 (Red)")
        details = data["vehicleDetails"]
        self.assertEqual(details["manufacturer"], {"id": "mfr-maruti", "name": "Maruti Suzuki"})
        self.assertEqual(details["model"]["displayName"], "Maruti Swift")
        self.assertEqual(details["fuelType"]["name"], "Petrol")

    def test_invalid_manufacturer_rejected_and_nothing_persisted(self):
        res = self.client.post(
            "/api/v2/ads",
            json=vehicle_body(manufacturerId="mfr-unknown"),
            headers=self.seller_headers,
        )
        self.assertEqual(res.status_code, 400)
        body = res.get_json()
        self.assertFalse(body["ok"])
        self.assertEqual(body["error"]["code"], "INVALID_REFERENCE")
        self.assertIn("manufacturerId", body["error"]["fields"])
        with self.app.app_context():
            self.assertEqual(Ad.query.count(), 0)
            self.assertEqual(VehicleAd.query.count(), 0)
            self.assertEqual(OutboxEvent.query.count(), 0)

    def test_invalid_model_reported_after_valid_manufacturer(self):
        res = self.client.post(
            "/api/v2/ads",
            json=vehicle_body(modelId="mdl-nope"),
            headers=self.seller_headers,
        )
        self.assertEqual(res.status_code, 400)
        self.assertEqual(list(res.get_json()["error"]["fields"]), ["modelId"])

    def test_create_requires_authentication(self):
        res = self.client.post("/api/v2/ads", json=property_body())
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.get_json(), {"ok": False, "message": "Unauthorized"})

    def test_missing_fields_collected_per_field(self):
        body = property_body(property={"bedrooms": -1, "bathrooms": 1})
        body.pop("description")
        res = self.client.post("/api/v2/ads", json=body, headers=self.seller_headers)
        self.assertEqual(res.status_code, 400)
        fields = res.get_json()["error"]["fields"]
        self.assertEqual(fields["description"], "description is required")
        self.assertEqual(fields["propertyType"], "propertyType is required")
        self.assertIn("bedrooms", fields)
        self.assertEqual(fields["areaSqft"], "areaSqft is required")

    def test_non_finite_numbers_rejected_and_nothing_persisted(self):
        body = property_body(price=float("nan"))
        body["property"]["bedrooms"] = "inf"
        res = self.client.post("/api/v2/ads", json=body, headers=self.seller_headers)
        self.assertEqual(res.status_code, 400)
        error = res.get_json()["error"]
        self.assertEqual(error["code"], "VALIDATION_FAILED")
        self.assertEqual(set(error["fields"]), {"price", "bedrooms"})
        with self.app.app_context():
            self.assertEqual(Ad.query.count(), 0)

    def test_mismatched_category_payload_rejected(self):
        body = property_body(vehicle={"vehicleType": "car"})
        res = self.client.post("/api/v2/ads", json=body, headers=self.seller_headers)
        self.assertEqual(res.status_code, 400)
        self.assertIn("vehicle", res.get_json()["error"]["fields"])

    def test_commercial_defaults_filled_from_inventory_model(self):
        data = self.create(commercial_body())
        details = data["commercialVehicleDetails"]
        self.assertEqual(details["commercialVehicleType"], "mini_truck")
        self.assertEqual(details["bodyType"], "open")
        self.assertEqual(details["payloadCapacity"], 750.0)
        self.assertEqual(details["seatingCapacity"], 2)
        self.assertEqual(data["title"], "Tata Ace 2019 (White)")

    def test_seller_commercial_values_win_over_defaults(self):
        data = self.create(commercial_body(bodyType="container", payloadCapacity=1000))
        details = data["commercialVehicleDetails"]
        self.assertEqual(details["bodyType"], "container")
        self.assertEqual(details["payloadCapacity"], 1000.0)
        self.assertEqual(details["commercialVehicleType"], "mini_truck")

    def test_commercial_without_any_commercial_field_rejected(self):
        res = self.client.post(
            "/api/v2/ads",
            json=commercial_body(manufacturerId="mfr-tata", modelId="mdl-bus", vehicleType="bus"),
            headers=self.seller_headers,
        )
        self.assertEqual(res.status_code, 400)
        self.assertIn("commercial", res.get_json()["error"]["fields"])

    def test_each_ad_has_exactly_one_subtype_row(self):
        ids = [
            self.create(property_body())["id"],
            self.create(vehicle_body())["id"],
            self.create(commercial_body())["id"],
        ]
        with self.app.app_context():
            for ad_id in ids:
                rows = (
                    PropertyAd.query.filter_by(ad_id=ad_id).count()
                    + VehicleAd.query.filter_by(ad_id=ad_id).count()
                    + CommercialVehicleAd.query.filter_by(ad_id=ad_id).count()
                )
                self.assertEqual(rows, 1)

    def test_subtype_failure_rolls_back_parent_ad(self):
        with patch.object(AdRepository, "add_subtype", side_effect=RuntimeError("disk full")):
            res = self.client.post("/api/v2/ads", json=property_body(), headers=self.seller_headers)
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.get_json()["error"]["code"], "TRANSACTION_FAILED")
        with self.app.app_context():
            self.assertEqual(Ad.query.count(), 0)
            self.assertEqual(PropertyAd.query.count(), 0)
            self.assertEqual(OutboxEvent.query.count(), 0)

    def test_outbox_event_enqueued_after_commit(self):
        data = self.create(vehicle_body())
        with self.app.app_context():
            events = OutboxEvent.query.all()
            self.assertEqual(len(events), 1)
            event = events[0]
            self.assertEqual(event.event_name, "ad.created")
            self.assertEqual(event.status, "pending")
            self.assertEqual(
                json.loads(event.payload_json),
                {"adId": data["id"], "category": "private_vehicle", "userId": self.seller_id, "userType": "dealer"},
            )

    def test_outbox_failure_does_not_fail_create(self):
        with patch.object(self.services.outbox, "enqueue", side_effect=RuntimeError("outbox down")):
            data = self.create(property_body())
        with self.app.app_context():
            self.assertIsNotNone(db.session.get(Ad, data["id"]))
            self.assertEqual(OutboxEvent.query.count(), 0)

    def test_create_drops_list_and_detail_cache_tags(self):
        cache = self.services.cache
        with patch.object(cache, "invalidate_lists", wraps=cache.invalidate_lists) as lists, patch.object(
            cache, "invalidate_by_id", wraps=cache.invalidate_by_id
        ) as by_id:
            data = self.create(property_body())
        lists.assert_called_once_with()
        by_id.assert_called_once_with(data["id"])

    def test_location_resolved_from_coordinates(self):
        body = property_body(latitude=9.2648, longitude=76.787)
        body.pop("location")
        data = self.create(body)
        self.assertEqual(data["location"], "Pathanamthitta, Kerala, India")
        self.assertEqual(data["title"], "2BHK apartment in Pathanamthitta")
        self.assertEqual(self.geocoder.calls, [(9.2648, 76.787)])

    def test_geocoding_failure_falls_back_to_coordinates(self):
        body = property_body(latitude=12.34567, longitude=76.5)
        body.pop("location")
        data = self.create(body)
        self.assertEqual(data["location"], "12.3457, 76.5000")
        self.assertEqual(data["geoPoint"], {"type": "Point", "coordinates": [76.5, 12.34567]})

    def test_location_required_without_coordinates(self):
        body = property_body()
        body.pop("location")
        res = self.client.post("/api/v2/ads", json=body, headers=self.seller_headers)
        self.assertEqual(res.status_code, 400)
        self.assertIn("location", res.get_json()["error"]["fields"])

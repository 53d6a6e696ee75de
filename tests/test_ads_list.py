from __future__ import annotations

from unittest.mock import patch

from ads_test_support import AdsApiTestCase, property_body, vehicle_body

from classifieds.extensions import db
from classifieds.models import Ad, Favorite
from classifieds.services.ads.cache import LIST_TAG
from classifieds.services.ads.errors import ValidationError
from classifieds.services.ads.query_engine import ListFilters
from classifieds.utils import cache_layer


def _located(location: str, latitude: float, longitude: float, **extra) -> dict:
    return property_body(location=location, latitude=latitude, longitude=longitude, **extra)


class AdsListTestCase(AdsApiTestCase):
    def test_plain_list_is_newest_first_and_paginated(self):
        ids = [self.create(property_body(description=f"Flat {i}"))["id"] for i in range(3)]
        res = self.client.get("/api/v2/ads?limit=2")
        self.assertEqual(res.status_code, 200)
        page = res.get_json()
        self.assertEqual([item["id"] for item in page["data"]], [ids[2], ids[1]])
        self.assertEqual(page["total"], 3)
        self.assertEqual(page["totalPages"], 2)
        self.assertTrue(page["hasNext"])
        self.assertFalse(page["hasPrev"])
        self.assertIsNone(page["searchRadiusKm"])

    def test_limit_is_clamped(self):
        page = self.client.get("/api/v2/ads?limit=500").get_json()
        self.assertEqual(page["limit"], 100)

    def test_unapproved_and_deleted_ads_hidden(self):
        visible = self.create(property_body())["id"]
        hidden = self.create(property_body())["id"]
        deleted = self.create(property_body())["id"]
        with self.app.app_context():
            db.session.get(Ad, hidden).is_approved = False
            db.session.get(Ad, deleted).is_deleted = True
            db.session.commit()
        self.services.cache.invalidate_lists()
        page = self.client.get("/api/v2/ads").get_json()
        self.assertEqual([item["id"] for item in page["data"]], [visible])

    def test_category_location_list_served_from_cache_until_create(self):
        self.create(property_body(location="Mumbai, Maharashtra"))
        engine = self.services.list.engine
        with patch.object(engine, "run", wraps=engine.run) as run:
            first = self.client.post("/api/v2/ads/list", json={"category": "property", "location": "Mumbai"}).get_json()
            second = self.client.post("/api/v2/ads/list", json={"category": "property", "location": "Mumbai"}).get_json()
            self.assertEqual(run.call_count, 1)
            self.assertEqual(first, second)
            self.assertEqual(first["total"], 1)

            self.create(property_body(location="Mumbai, Maharashtra"))
            third = self.client.post("/api/v2/ads/list", json={"category": "property", "location": "Mumbai"}).get_json()
            self.assertEqual(run.call_count, 2)
            self.assertEqual(third["total"], 2)

    def test_unfiltered_list_served_from_cache_until_create(self):
        first_id = self.create(property_body())["id"]
        engine = self.services.list.engine
        with patch.object(engine, "run", wraps=engine.run) as run:
            first = self.client.get("/api/v2/ads")
            second = self.client.get("/api/v2/ads")
            self.assertEqual(run.call_count, 1)
            self.assertEqual(first.get_json(), second.get_json())
            self.assertEqual([item["id"] for item in second.get_json()["data"]], [first_id])

            new_id = self.create(property_body(description="Sea view"))["id"]
            third = self.client.get("/api/v2/ads").get_json()
            self.assertEqual(run.call_count, 2)
            self.assertEqual([item["id"] for item in third["data"]], [new_id, first_id])
            self.assertEqual(third["total"], 2)

    def test_filtered_lists_bypass_cache(self):
        self.create(property_body())
        engine = self.services.list.engine
        with patch.object(engine, "run", wraps=engine.run) as run:
            self.client.get("/api/v2/ads?search=Flat")
            self.client.get("/api/v2/ads?search=Flat")
        self.assertEqual(run.call_count, 2)
        self.assertEqual(cache_layer.get_tag_members(LIST_TAG), [])

    def test_cache_keys_for_cacheable_shapes(self):
        cache = self.services.cache
        unfiltered = cache.list_key(ListFilters.from_mapping({}))
        catloc = cache.list_key(ListFilters.from_mapping({"category": "property", "location": "Mumbai"}))
        self.assertTrue(unfiltered.startswith("ads:v2:list:all:"))
        self.assertTrue(catloc.startswith("ads:v2:list:catloc:"))
        self.assertIn("location=mumbai", catloc)
        self.assertIsNone(cache.list_key(ListFilters.from_mapping({"category": "property", "minPrice": 10})))
        self.assertIsNone(cache.list_key(ListFilters.from_mapping({"latitude": 9.0, "longitude": 76.0})))

    def test_favorites_annotated_per_viewer_not_cached(self):
        ad_id = self.create(property_body())["id"]
        with self.app.app_context():
            db.session.add(Favorite(user_id=self.viewer_id, ad_id=ad_id))
            db.session.commit()
        mine = self.client.get("/api/v2/ads", headers=self.viewer_headers).get_json()
        anonymous = self.client.get("/api/v2/ads").get_json()
        self.assertTrue(mine["data"][0]["isFavorite"])
        self.assertFalse(anonymous["data"][0]["isFavorite"])

    def test_price_and_search_filters_compose(self):
        cheap = self.create(property_body(description="Cosy studio", price=100000))["id"]
        self.create(property_body(description="Cosy penthouse", price=90000000))
        self.create(property_body(description="Office floor", price=120000))
        page = self.client.get("/api/v2/ads?search=cosy&maxPrice=200000").get_json()
        self.assertEqual([item["id"] for item in page["data"]], [cheap])

    def test_property_filters_force_property_category(self):
        self.create(vehicle_body())
        flat = self.create(property_body())["id"]
        page = self.client.post("/api/v2/ads/list", json={"minBedrooms": 2}).get_json()
        self.assertEqual([item["id"] for item in page["data"]], [flat])

    def test_conflicting_category_filters_yield_empty_page(self):
        self.create(property_body())
        page = self.client.post(
            "/api/v2/ads/list",
            json={"category": "private_vehicle", "minBedrooms": 1},
        ).get_json()
        self.assertEqual(page["total"], 0)
        self.assertEqual(page["data"], [])

    def test_vehicle_filters_match_across_vehicle_subtypes(self):
        car = self.create(vehicle_body())["id"]
        self.create(vehicle_body(fuelTypeId="fuel-diesel"))
        self.create(property_body())
        page = self.client.get("/api/v2/ads?fuelTypeIds=fuel-petrol&minYear=2015").get_json()
        self.assertEqual([item["id"] for item in page["data"]], [car])

    def test_sort_by_price_ascending(self):
        high = self.create(property_body(price=300))["id"]
        low = self.create(property_body(price=100))["id"]
        page = self.client.get("/api/v2/ads?sortBy=price&sortOrder=asc").get_json()
        self.assertEqual([item["id"] for item in page["data"]], [low, high])

    def test_bad_numeric_filter_rejected(self):
        res = self.client.get("/api/v2/ads?minPrice=cheap")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.get_json()["error"]["code"], "VALIDATION_FAILED")

    def test_non_finite_numeric_filters_rejected(self):
        for query in ("minBedrooms=inf", "maxPrice=nan", "minPrice=-Infinity", "latitude=nan&longitude=76.7"):
            res = self.client.get(f"/api/v2/ads?{query}")
            self.assertEqual(res.status_code, 400, query)
            self.assertEqual(res.get_json()["error"]["code"], "VALIDATION_FAILED", query)
        with self.assertRaises(ValidationError) as ctx:
            ListFilters.from_mapping({"minBedrooms": float("inf")})
        self.assertIn("minBedrooms", ctx.exception.fields)

    def test_non_finite_paging_falls_back_to_defaults(self):
        self.create(property_body())
        res = self.client.get("/api/v2/ads?page=inf&limit=nan")
        self.assertEqual(res.status_code, 200)
        page = res.get_json()
        self.assertEqual(page["page"], 1)
        self.assertEqual(page["total"], 1)
        filters = ListFilters.from_mapping({"page": float("inf"), "limit": float("-inf")})
        self.assertEqual(filters.page, 1)

    def test_lone_latitude_rejected(self):
        with self.assertRaises(ValidationError):
            ListFilters.from_mapping({"latitude": "9.1"})


class AdsGeoListTestCase(AdsApiTestCase):
    VIEWER = {"latitude": 9.26, "longitude": 76.78}

    def test_nearest_radius_wins_with_district_score(self):
        near = self.create(_located("Konni, Pathanamthitta", 9.27, 76.79))["id"]
        self.create(_located("Kochi, Kerala", 9.93, 76.27))
        page = self.client.post("/api/v2/ads/list", json=dict(self.VIEWER)).get_json()
        self.assertEqual(page["searchRadiusKm"], 50)
        self.assertEqual([item["id"] for item in page["data"]], [near])
        self.assertEqual(page["data"][0]["locationScore"], 3)
        self.assertAlmostEqual(page["data"][0]["distanceKm"], 2.23, places=2)

    def test_radius_grows_until_a_match(self):
        state = self.create(_located("Kochi, Kerala", 9.93, 76.27))["id"]
        page = self.client.post("/api/v2/ads/list", json=dict(self.VIEWER)).get_json()
        self.assertEqual(page["searchRadiusKm"], 200)
        self.assertEqual([item["id"] for item in page["data"]], [state])
        self.assertEqual(page["data"][0]["locationScore"], 2)

    def test_rural_viewer_gets_country_tier_match_at_1000km(self):
        far = self.create(_located("Bengaluru, Karnataka", 12.97, 77.59))["id"]
        page = self.client.post(
            "/api/v2/ads/list",
            json=dict(self.VIEWER, category="property"),
        ).get_json()
        self.assertEqual(page["searchRadiusKm"], 1000)
        self.assertEqual([item["id"] for item in page["data"]], [far])
        self.assertEqual(page["data"][0]["locationScore"], 1)

    def test_exhausted_radii_fall_back_to_unbounded_query(self):
        ad_id = self.create(_located("Konni, Pathanamthitta", 9.27, 76.79))["id"]
        page = self.client.post(
            "/api/v2/ads/list",
            json={"latitude": 51.5, "longitude": -0.12, "category": "property"},
        ).get_json()
        self.assertIsNone(page["searchRadiusKm"])
        self.assertEqual([item["id"] for item in page["data"]], [ad_id])
        self.assertNotIn("locationScore", page["data"][0])

    def test_score_orders_before_recency(self):
        district = self.create(_located("Konni, Pathanamthitta", 9.27, 76.79))["id"]
        # Newer, and just west of the district boundary.
        state = self.create(_located("Kottarakkara, Kerala", 9.26, 76.65))["id"]
        page = self.client.post("/api/v2/ads/list", json=dict(self.VIEWER)).get_json()
        self.assertEqual(page["searchRadiusKm"], 50)
        self.assertEqual([item["id"] for item in page["data"]], [district, state])
        self.assertEqual([item["locationScore"] for item in page["data"]], [3, 2])

    def test_geo_results_never_hit_list_cache(self):
        self.create(_located("Konni, Pathanamthitta", 9.27, 76.79))
        self.client.post("/api/v2/ads/list", json=dict(self.VIEWER))
        self.assertEqual(cache_layer.get_tag_members(LIST_TAG), [])

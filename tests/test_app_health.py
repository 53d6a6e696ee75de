from __future__ import annotations

import os
import unittest
import uuid
from unittest.mock import patch

from flask import Flask

from ads_test_support import AdsApiTestCase

from classifieds.utils.observability import init_sentry


class AppHealthTestCase(AdsApiTestCase):
    def test_health_reports_db_and_cache(self):
        res = self.client.get("/api/health")
        self.assertEqual(res.status_code, 200)
        body = res.get_json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["db"], "ok")
        self.assertEqual(body["cache"]["backend"], "memory")

    def test_generates_request_id_when_missing(self):
        res = self.client.get("/api/health")
        rid = (res.headers.get("X-Request-ID") or "").strip()
        self.assertTrue(rid)
        uuid.UUID(rid)

    def test_echoes_request_id_when_provided(self):
        res = self.client.get("/api/health", headers={"X-Request-ID": "rid-ads-123"})
        self.assertEqual(res.headers.get("X-Request-ID"), "rid-ads-123")

    def test_error_payload_includes_trace_id(self):
        res = self.client.post("/api/v2/ads", json={"category": "property"}, headers=self.seller_headers)
        self.assertEqual(res.status_code, 400)
        body = res.get_json()
        self.assertFalse(body["ok"])
        self.assertEqual(body["trace_id"], res.headers.get("X-Request-ID"))

    def test_unknown_api_route_uses_error_envelope(self):
        res = self.client.get("/api/v2/nothing-here")
        self.assertEqual(res.status_code, 404)
        body = res.get_json()
        self.assertEqual(body["error"]["code"], "NOT_FOUND")
        self.assertEqual(body["status"], 404)


class SentryOptionalInitTestCase(unittest.TestCase):
    def test_sentry_init_is_noop_without_dsn(self):
        app = Flask(__name__)
        with patch.dict(os.environ, {"SENTRY_DSN": ""}, clear=False):
            init_sentry(app)


if __name__ == "__main__":
    unittest.main()

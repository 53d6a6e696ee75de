from __future__ import annotations

import requests

from classifieds.integrations.common import IntegrationError, IntegrationTimeoutError, json_body
from classifieds.integrations.inventory.base import InventoryProvider


class HttpInventoryProvider(InventoryProvider):
    name = "http"

    def __init__(self, *, base_url: str, timeout: float, api_key: str = ""):
        self.base_url = base_url.rstrip("/")
        self.timeout = float(timeout)
        self.api_key = api_key

    def lookup(self, kind: str, ref_id: str) -> dict | None:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        url = f"{self.base_url}/{kind}/{requests.utils.quote(str(ref_id), safe='')}"
        try:
            r = requests.get(url, headers=headers, timeout=self.timeout)
        except requests.Timeout as exc:
            raise IntegrationTimeoutError(f"inventory_timeout {kind}") from exc
        except requests.RequestException as exc:
            raise IntegrationError(f"inventory_request_failed {kind}: {exc}") from exc
        if r.status_code == 404:
            return None
        if r.status_code >= 400:
            raise IntegrationError(f"inventory_http_{r.status_code} {kind}")
        data = json_body(r, "inventory")
        if isinstance(data, dict) and isinstance(data.get("data"), dict):
            data = data["data"]
        if not isinstance(data, dict) or data.get("isActive") is False:
            return None
        data.setdefault("id", str(ref_id))
        return data

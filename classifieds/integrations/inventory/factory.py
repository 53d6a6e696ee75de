from __future__ import annotations

import os

from classifieds.integrations.common import IntegrationMisconfiguredError, timeout_seconds
from classifieds.integrations.inventory.base import InventoryProvider
from classifieds.integrations.inventory.catalog_provider import CatalogInventoryProvider
from classifieds.integrations.inventory.http_provider import HttpInventoryProvider


def build_inventory_provider() -> InventoryProvider:
    base_url = (os.getenv("INVENTORY_SERVICE_URL") or "").strip()
    mode = (os.getenv("INVENTORY_PROVIDER") or ("http" if base_url else "catalog")).strip().lower()
    if mode == "http":
        if not base_url:
            raise IntegrationMisconfiguredError("INTEGRATION_MISCONFIGURED:missing INVENTORY_SERVICE_URL")
        return HttpInventoryProvider(
            base_url=base_url,
            timeout=timeout_seconds("INVENTORY_TIMEOUT_MS", 2000),
            api_key=(os.getenv("INVENTORY_API_KEY") or "").strip(),
        )
    if mode == "catalog":
        path = (os.getenv("INVENTORY_CATALOG_PATH") or "").strip()
        if not path:
            # Empty catalog: every vehicle reference is rejected.
            return CatalogInventoryProvider()
        return CatalogInventoryProvider.from_file(path)
    raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:unknown inventory provider {mode}")

from __future__ import annotations

import json

from classifieds.integrations.common import IntegrationMisconfiguredError
from classifieds.integrations.inventory.base import InventoryKind, InventoryProvider


class CatalogInventoryProvider(InventoryProvider):
    """Inventory backed by a static catalog, keyed ``{kind: {id: record}}``."""

    name = "catalog"

    def __init__(self, catalog: dict | None = None):
        self.catalog: dict[str, dict[str, dict]] = {}
        for kind in InventoryKind.ALL:
            records = (catalog or {}).get(kind) or {}
            self.catalog[kind] = {str(k): dict(v, id=str(k)) for k, v in records.items()}

    @classmethod
    def from_file(cls, path: str) -> "CatalogInventoryProvider":
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            raise IntegrationMisconfiguredError(f"INTEGRATION_MISCONFIGURED:inventory catalog {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise IntegrationMisconfiguredError("INTEGRATION_MISCONFIGURED:inventory catalog must be an object")
        return cls(data)

    def lookup(self, kind: str, ref_id: str) -> dict | None:
        record = self.catalog.get(kind, {}).get(str(ref_id))
        return dict(record) if record is not None else None

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout

from classifieds.integrations.common import IntegrationError, timeout_seconds
from classifieds.integrations.inventory.base import InventoryKind, InventoryProvider
from classifieds.services.ads.errors import InvalidReference, InventoryUnavailable

logger = logging.getLogger(__name__)

# Payload field -> inventory collection, in the order errors are reported.
REFERENCE_FIELDS = (
    ("manufacturerId", InventoryKind.MANUFACTURER),
    ("modelId", InventoryKind.MODEL),
    ("variantId", InventoryKind.VARIANT),
    ("transmissionTypeId", InventoryKind.TRANSMISSION_TYPE),
    ("fuelTypeId", InventoryKind.FUEL_TYPE),
)

# Detail view key -> inventory collection.
DISPLAY_KINDS = {
    "manufacturer": InventoryKind.MANUFACTURER,
    "model": InventoryKind.MODEL,
    "variant": InventoryKind.VARIANT,
    "transmissionType": InventoryKind.TRANSMISSION_TYPE,
    "fuelType": InventoryKind.FUEL_TYPE,
}


def _display_record(record: dict | None) -> dict | None:
    if not record:
        return None
    out = {"id": str(record.get("id") or ""), "name": record.get("name") or ""}
    if record.get("displayName"):
        out["displayName"] = record["displayName"]
    return out


class InventoryGateway:
    """Validates vehicle references against inventory and resolves names.

    Independent lookups run concurrently on a shared thread pool, each bounded
    by ``timeout`` seconds.
    """

    def __init__(self, provider: InventoryProvider, *, timeout: float | None = None, max_workers: int = 5):
        self.provider = provider
        self.timeout = float(timeout or timeout_seconds("INVENTORY_TIMEOUT_MS", 2000))
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="inventory")

    def _lookup_many(self, refs: dict[str, tuple[str, str]]) -> dict[str, dict | None | Exception]:
        futures = {
            name: self._pool.submit(self.provider.lookup, kind, ref_id)
            for name, (kind, ref_id) in refs.items()
        }
        results: dict[str, dict | None | Exception] = {}
        for name, future in futures.items():
            try:
                results[name] = future.result(timeout=self.timeout)
            except FutureTimeout:
                future.cancel()
                results[name] = IntegrationError(f"inventory_timeout {refs[name][0]}")
            except Exception as exc:
                # Provider failures of any kind count as degraded.
                if not isinstance(exc, IntegrationError):
                    exc = IntegrationError(f"inventory_failed {refs[name][0]}: {exc}")
                results[name] = exc
        return results

    def assert_references_valid(
        self,
        manufacturer_id: str,
        model_id: str,
        variant_id: str | None = None,
        transmission_type_id: str | None = None,
        fuel_type_id: str | None = None,
    ) -> None:
        supplied = {
            "manufacturerId": manufacturer_id,
            "modelId": model_id,
            "variantId": variant_id,
            "transmissionTypeId": transmission_type_id,
            "fuelTypeId": fuel_type_id,
        }
        refs = {
            field: (kind, str(supplied[field]))
            for field, kind in REFERENCE_FIELDS
            if supplied.get(field)
        }
        results = self._lookup_many(refs)
        for field, _kind in REFERENCE_FIELDS:
            if field not in results:
                continue
            outcome = results[field]
            if isinstance(outcome, Exception):
                logger.warning("inventory_check_failed field=%s err=%s", field, outcome)
                raise InventoryUnavailable("Inventory service unavailable, try again later")
            if outcome is None:
                raise InvalidReference(field)

    def get_model(self, model_id: str) -> dict | None:
        """Model record or ``None``; lookup failures degrade to ``None``."""
        if not model_id:
            return None
        outcome = self._lookup_many({"model": (InventoryKind.MODEL, str(model_id))})["model"]
        if isinstance(outcome, Exception):
            logger.warning("inventory_model_lookup_degraded model_id=%s err=%s", model_id, outcome)
            return None
        return outcome

    def resolve_display_name(self, model_id: str) -> str | None:
        record = self.get_model(model_id)
        if not record:
            return None
        return record.get("displayName") or record.get("name") or None

    def resolve_names(self, refs: dict[str, str | None]) -> dict[str, dict | None]:
        """Map ``{"manufacturer": id, ...}`` to display records, ``None`` when unresolved."""
        wanted = {
            key: (DISPLAY_KINDS[key], str(ref_id))
            for key, ref_id in refs.items()
            if key in DISPLAY_KINDS and ref_id
        }
        results = self._lookup_many(wanted)
        out: dict[str, dict | None] = {key: None for key in DISPLAY_KINDS}
        for key, outcome in results.items():
            if isinstance(outcome, Exception):
                logger.warning("inventory_name_degraded kind=%s err=%s", key, outcome)
                continue
            out[key] = _display_record(outcome)
        return out

from __future__ import annotations


class InventoryKind:
    MANUFACTURER = "manufacturers"
    MODEL = "models"
    VARIANT = "variants"
    TRANSMISSION_TYPE = "transmissionTypes"
    FUEL_TYPE = "fuelTypes"

    ALL = (MANUFACTURER, MODEL, VARIANT, TRANSMISSION_TYPE, FUEL_TYPE)


class InventoryProvider:
    """Read access to vehicle reference data owned by the inventory service.

    ``lookup`` returns the record as a dict (at least ``id`` and ``name``) or
    ``None`` when the id does not resolve. Transport failures raise
    ``IntegrationError``.
    """

    name = "unknown"

    def lookup(self, kind: str, ref_id: str) -> dict | None:
        raise NotImplementedError

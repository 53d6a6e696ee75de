from __future__ import annotations

import logging
from dataclasses import dataclass

from classifieds.extensions import db
from classifieds.models import AdCategory
from classifieds.services.ads.commercial_intent import apply_commercial_defaults
from classifieds.services.ads.errors import AdsError, TransactionFailure
from classifieds.services.ads.inventory_gateway import InventoryGateway
from classifieds.services.ads.payloads import (
    CommercialVehicleDetails,
    CreateAdCommand,
    PropertyDetails,
    VehicleDetails,
)
from classifieds.services.ads.repository import AdRepository
from classifieds.services.ads.titles import LocationResolver, property_title, vehicle_title
from classifieds.services.ads.validators import ensure_commercial_fields, ensure_location

logger = logging.getLogger(__name__)


class WriteState:
    VALIDATING = "validating"
    WRITING = "writing"
    COMMITTED = "committed"
    ABORTED = "aborted"


@dataclass
class WriteOutcome:
    ad_id: int
    title: str
    command: CreateAdCommand
    state: str = WriteState.COMMITTED


class TransactionalAdWriter:
    """Creates an ad and its single subtype record as one unit.

    Everything that needs I/O outside the database (geocoding, inventory
    checks, model names) happens while validating, before the transaction
    opens. Nothing is visible to readers until both rows commit.
    """

    def __init__(
        self,
        repository: AdRepository,
        inventory: InventoryGateway,
        location_resolver: LocationResolver,
    ):
        self.repository = repository
        self.inventory = inventory
        self.location_resolver = location_resolver

    def _prepare(self, command: CreateAdCommand) -> tuple[CreateAdCommand, str]:
        common = self.location_resolver.resolve(command.common)
        ensure_location(common)
        command = command.with_common(common)

        details = command.details
        if isinstance(details, CommercialVehicleDetails):
            details = apply_commercial_defaults(details, self.inventory)
            ensure_commercial_fields(details)
            command = command.with_details(details)

        if isinstance(details, PropertyDetails):
            return command, property_title(details, common.location)

        if isinstance(details, VehicleDetails):
            self.inventory.assert_references_valid(
                details.manufacturer_id,
                details.model_id,
                variant_id=details.variant_id,
                transmission_type_id=details.transmission_type_id,
                fuel_type_id=details.fuel_type_id,
            )
            model_name = self.inventory.resolve_display_name(details.model_id)
            return command, vehicle_title(details, model_name)

        raise TypeError(f"unsupported ad details {type(details).__name__}")

    def write(self, command: CreateAdCommand) -> WriteOutcome:
        state = WriteState.VALIDATING
        try:
            command, title = self._prepare(command)
        except AdsError as exc:
            logger.info("ad_write_%s during=%s category=%s code=%s", WriteState.ABORTED, state, command.category, exc.code)
            raise

        state = WriteState.WRITING
        try:
            ad = self.repository.add_ad(command, title=title)
            self.repository.add_subtype(ad, command.details)
            db.session.commit()
            ad_id = int(ad.id)
        except Exception as exc:
            db.session.rollback()
            logger.exception("ad_write_%s during=%s category=%s", WriteState.ABORTED, state, command.category)
            raise TransactionFailure("Failed to save advertisement, please retry") from exc

        logger.info(
            "ad_write_%s ad_id=%s category=%s vehicle=%s",
            WriteState.COMMITTED,
            ad_id,
            command.category,
            command.category in AdCategory.VEHICLES,
        )
        return WriteOutcome(ad_id=ad_id, title=title, command=command)

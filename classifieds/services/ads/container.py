from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from classifieds.integrations.chat.base import ChatDirectory
from classifieds.integrations.chat.factory import build_chat_directory
from classifieds.integrations.geocoding.base import GeocodingProvider
from classifieds.integrations.geocoding.factory import build_geocoding_provider
from classifieds.integrations.inventory.base import InventoryProvider
from classifieds.integrations.inventory.factory import build_inventory_provider
from classifieds.services.ads.cache import AdsCache
from classifieds.services.ads.inventory_gateway import InventoryGateway
from classifieds.services.ads.location_hierarchy import LocationHierarchy
from classifieds.services.ads.orchestrators import (
    CreateAdOrchestrator,
    GetAdOrchestrator,
    ListAdsOrchestrator,
)
from classifieds.services.ads.query_engine import ListQueryEngine
from classifieds.services.ads.repository import AdRepository
from classifieds.services.ads.titles import LocationResolver
from classifieds.services.ads.writer import TransactionalAdWriter
from classifieds.services.outbox_service import OutboxService
from classifieds.utils.idempotency import IdempotencyStore

EXTENSION_KEY = "ads_v2"
IDEMPOTENCY_SCOPE = "ads:v2:create"


@dataclass
class AdsServices:
    create: CreateAdOrchestrator
    list: ListAdsOrchestrator
    get: GetAdOrchestrator
    cache: AdsCache
    outbox: OutboxService
    idempotency: IdempotencyStore
    inventory: InventoryGateway
    repository: AdRepository


def init_ads_services(
    app,
    *,
    inventory_provider: InventoryProvider | None = None,
    geocoder: GeocodingProvider | None = None,
    chat: ChatDirectory | None = None,
    hierarchy: LocationHierarchy | None = None,
) -> AdsServices:
    """Build the ads pipeline once and park it on ``app.extensions``.

    Any collaborator left as ``None`` comes from its environment-driven
    factory.
    """
    cfg = app.config
    repository = AdRepository(auto_approve=bool(cfg.get("ADS_AUTO_APPROVE", False)))
    inventory = InventoryGateway(inventory_provider or build_inventory_provider())
    cache = AdsCache(
        list_ttl_seconds=int(cfg.get("ADS_LIST_CACHE_TTL_SECONDS", 300)),
        detail_ttl_seconds=int(cfg.get("ADS_DETAIL_CACHE_TTL_SECONDS", 900)),
    )
    outbox = OutboxService(retention_days=int(cfg.get("OUTBOX_RETENTION_DAYS", 7)))
    idempotency = IdempotencyStore(
        scope=IDEMPOTENCY_SCOPE,
        ttl_seconds=int(cfg.get("IDEMPOTENCY_TTL_SECONDS", 900)),
    )
    writer = TransactionalAdWriter(
        repository,
        inventory,
        LocationResolver(geocoder or build_geocoding_provider()),
    )
    engine = ListQueryEngine(
        hierarchy or LocationHierarchy.from_env(),
        radii_km=cfg.get("ADS_GEO_RADII_KM") or (50, 100, 200, 500, 1000),
    )
    services = AdsServices(
        create=CreateAdOrchestrator(
            writer=writer,
            repository=repository,
            inventory=inventory,
            idempotency=idempotency,
            outbox=outbox,
            cache=cache,
        ),
        list=ListAdsOrchestrator(engine=engine, repository=repository, cache=cache),
        get=GetAdOrchestrator(
            repository=repository,
            inventory=inventory,
            chat=chat or build_chat_directory(),
            cache=cache,
        ),
        cache=cache,
        outbox=outbox,
        idempotency=idempotency,
        inventory=inventory,
        repository=repository,
    )
    app.extensions[EXTENSION_KEY] = services
    return services


def get_ads_services() -> AdsServices:
    return current_app.extensions[EXTENSION_KEY]

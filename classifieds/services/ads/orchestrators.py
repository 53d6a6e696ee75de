from __future__ import annotations

import logging
import os
from dataclasses import dataclass

from classifieds.extensions import db
from classifieds.integrations.chat.base import ChatDirectory
from classifieds.services.ads.cache import AdsCache
from classifieds.services.ads.errors import (
    IdempotencyConflict,
    IdempotencyInProgress,
    NotFound,
    ValidationError,
)
from classifieds.services.ads.inventory_gateway import InventoryGateway
from classifieds.services.ads.query_engine import ListFilters, ListQueryEngine
from classifieds.services.ads.repository import AdRepository
from classifieds.services.ads.serializers import annotate_favorites, serialize_detail
from classifieds.services.ads.validators import parse_create_payload
from classifieds.services.ads.writer import TransactionalAdWriter, WriteOutcome
from classifieds.services.outbox_service import OutboxService
from classifieds.utils.idempotency import IdempotencyStore, hash_request
from classifieds.utils.observability import log_json

logger = logging.getLogger(__name__)

AD_CREATED_EVENT = "ad.created"
MAX_CHAT_SUMMARIES = 10


def _queue_view_counts() -> bool:
    return (os.getenv("ADS_VIEW_COUNT_QUEUE") or "").strip().lower() in ("1", "true", "yes", "on")


def _inventory_names(inventory: InventoryGateway, ad) -> dict:
    subtype = ad.subtype
    if subtype is None or not hasattr(subtype, "inventory_refs"):
        return {}
    return inventory.resolve_names(subtype.inventory_refs())


def parse_ad_id(raw) -> int:
    text = str(raw or "").strip()
    if not text.isdigit() or int(text) <= 0:
        raise ValidationError({"id": "id must be a positive integer"}, message="Invalid advertisement id")
    return int(text)


@dataclass
class CreateResult:
    payload: dict
    replayed: bool = False


@dataclass
class ReadResult:
    payload: dict
    cache_status: str = "bypass"


class CreateAdOrchestrator:
    def __init__(
        self,
        *,
        writer: TransactionalAdWriter,
        repository: AdRepository,
        inventory: InventoryGateway,
        idempotency: IdempotencyStore,
        outbox: OutboxService,
        cache: AdsCache,
    ):
        self.writer = writer
        self.repository = repository
        self.inventory = inventory
        self.idempotency = idempotency
        self.outbox = outbox
        self.cache = cache

    def execute(self, body, *, owner, idempotency_key: str | None = None, route: str = "/api/v2/ads") -> CreateResult:
        if idempotency_key:
            outcome, stored, _code = self.idempotency.claim(
                idempotency_key,
                request_hash=hash_request(method="POST", path=route, payload=body),
                user_id=int(owner.id),
            )
            if outcome == "hit":
                log_json(logger, "ads.create.replayed", ad_id=(stored or {}).get("id"))
                return CreateResult(payload=stored, replayed=True)
            if outcome == "conflict":
                raise IdempotencyConflict("This Idempotency-Key was already used with a different request payload.")
            if outcome == "in_progress":
                raise IdempotencyInProgress("A request with this Idempotency-Key is still being processed.")

        try:
            command = parse_create_payload(body, owner_id=int(owner.id), owner_type=owner.owner_type)
            written = self.writer.write(command)
        except Exception:
            if idempotency_key:
                self.idempotency.release(idempotency_key)
            raise

        self._after_commit(written.ad_id, written.command)
        payload = self._created_view(written)

        if idempotency_key:
            try:
                self.idempotency.set(idempotency_key, payload, status_code=201)
            except Exception:
                db.session.rollback()
                logger.exception("idempotency_store_failed ad_id=%s", written.ad_id)
                self.idempotency.release(idempotency_key)
        log_json(logger, "ads.create.committed", ad_id=written.ad_id, category=written.command.category)
        return CreateResult(payload=payload)

    def _created_view(self, written: WriteOutcome) -> dict:
        """Response body for a committed ad. Never raises: the ad already exists."""
        try:
            ad = self.repository.get_live(written.ad_id)
            try:
                names = _inventory_names(self.inventory, ad)
            except Exception:
                logger.warning("ad_names_degraded ad_id=%s", written.ad_id, exc_info=True)
                names = {}
            return serialize_detail(ad, inventory_names=names)
        except Exception:
            db.session.rollback()
            logger.exception("ad_view_build_failed ad_id=%s", written.ad_id)
            return {"id": int(written.ad_id), "title": written.title, "category": written.command.category}

    def _after_commit(self, ad_id: int, command) -> None:
        try:
            self.outbox.enqueue(
                AD_CREATED_EVENT,
                {
                    "adId": int(ad_id),
                    "category": command.category,
                    "userId": int(command.owner_id),
                    "userType": command.owner_type,
                },
            )
        except Exception:
            db.session.rollback()
            log_json(logger, "ads.outbox.enqueue_failed", level="warning", ad_id=ad_id)
        try:
            self.cache.invalidate_lists()
            self.cache.invalidate_by_id(ad_id)
        except Exception:
            log_json(logger, "ads.cache.invalidate_failed", level="warning", ad_id=ad_id)


class ListAdsOrchestrator:
    def __init__(self, *, engine: ListQueryEngine, repository: AdRepository, cache: AdsCache):
        self.engine = engine
        self.repository = repository
        self.cache = cache

    def execute(self, filters: ListFilters, *, viewer_id: int | None = None) -> ReadResult:
        key = self.cache.list_key(filters)
        page = None
        status = "bypass"
        if key:
            page = self.cache.get(key)
            status = "hit" if page is not None else "miss"
        if page is None:
            page = self.engine.run(filters).to_dict()
            if key:
                self.cache.set_list(key, page)

        items = page.get("data") or []
        favorited = self.repository.favorited_ids(viewer_id, [int(item["id"]) for item in items])
        return ReadResult(payload=dict(page, data=annotate_favorites(items, favorited)), cache_status=status)


class GetAdOrchestrator:
    def __init__(
        self,
        *,
        repository: AdRepository,
        inventory: InventoryGateway,
        chat: ChatDirectory,
        cache: AdsCache,
    ):
        self.repository = repository
        self.inventory = inventory
        self.chat = chat
        self.cache = cache

    def _chat_rooms(self, ad_id: int) -> list[dict]:
        try:
            rooms = self.chat.rooms_for_ad(ad_id, limit=MAX_CHAT_SUMMARIES)
        except Exception as exc:
            logger.warning("chat_summaries_degraded ad_id=%s err=%s", ad_id, exc)
            return []
        return [room.to_dict() for room in rooms[:MAX_CHAT_SUMMARIES]]

    def _build_view(self, ad, viewer_id: int | None) -> dict:
        view = serialize_detail(ad, inventory_names=_inventory_names(self.inventory, ad))
        chats = self._chat_rooms(int(ad.id))
        view.update(
            {
                "favoritesCount": self.repository.favorites_count(int(ad.id)),
                "isFavorited": self.repository.is_favorited(int(ad.id), viewer_id),
                "chats": chats,
                "chatsCount": len(chats),
                "hasUserChat": viewer_id is not None and any(c.get("buyerId") == viewer_id for c in chats),
            }
        )
        # Count the view being served.
        view["viewCount"] = int(view.get("viewCount") or 0) + 1
        return view

    def record_view(self, ad_id: int) -> None:
        """Fire-and-forget view counter; never fails the read."""
        try:
            if _queue_view_counts():
                from classifieds.tasks.ads_tasks import record_ad_view

                record_ad_view.delay(int(ad_id))
                return
            self.repository.increment_views(ad_id)
        except Exception:
            db.session.rollback()
            logger.warning("ad_view_count_failed ad_id=%s", ad_id, exc_info=True)

    def execute(self, raw_id, *, viewer_id: int | None = None) -> ReadResult:
        ad_id = parse_ad_id(raw_id)
        view = self.cache.get_detail(ad_id, viewer_id)
        status = "hit" if view is not None else "miss"
        if view is None:
            ad = self.repository.get_live(ad_id)
            if ad is None:
                raise NotFound("Advertisement not found")
            view = self._build_view(ad, viewer_id)
            self.cache.set_detail(ad_id, viewer_id, view)
        self.record_view(ad_id)
        return ReadResult(payload=view, cache_status=status)

from __future__ import annotations

import logging

from classifieds.utils import cache_layer

logger = logging.getLogger(__name__)

PREFIX = "ads:v2"
LIST_TAG = f"{PREFIX}:tag:list"


def by_id_tag(ad_id: int) -> str:
    return f"{PREFIX}:tag:byId:{int(ad_id)}"


def detail_key(ad_id: int, viewer_id: int | None) -> str:
    viewer = str(int(viewer_id)) if viewer_id is not None else "anonymous"
    return f"{PREFIX}:getById:{int(ad_id)}:{viewer}"


class AdsCache:
    """Tagged cache for ad list pages and per-viewer detail views.

    Every list entry is indexed under one list tag and every detail entry
    under its ad's tag, so invalidation is "drop the whole tag". Cache
    trouble is logged and otherwise ignored.
    """

    def __init__(self, *, list_ttl_seconds: int = 300, detail_ttl_seconds: int = 900):
        self.list_ttl_seconds = int(list_ttl_seconds)
        self.detail_ttl_seconds = int(detail_ttl_seconds)

    def list_key(self, filters) -> str | None:
        """Key for the two cacheable list shapes, ``None`` for everything else."""
        paging = {
            "page": filters.page,
            "limit": filters.limit,
            "sortBy": filters.sort_by,
            "sortOrder": filters.sort_order,
        }
        if filters.is_unfiltered():
            return cache_layer.build_cache_key(f"{PREFIX}:list:all", paging)
        if filters.is_category_location_only():
            paging["category"] = filters.category
            paging["location"] = (filters.location or "").strip().lower()
            return cache_layer.build_cache_key(f"{PREFIX}:list:catloc", paging)
        return None

    def get(self, key: str):
        return cache_layer.get_json(key)

    def set_list(self, key: str, value) -> None:
        if cache_layer.set_json(key, value, self.list_ttl_seconds):
            cache_layer.add_tag_member(LIST_TAG, key, self.list_ttl_seconds)

    def get_detail(self, ad_id: int, viewer_id: int | None):
        return cache_layer.get_json(detail_key(ad_id, viewer_id))

    def set_detail(self, ad_id: int, viewer_id: int | None, value) -> None:
        key = detail_key(ad_id, viewer_id)
        if cache_layer.set_json(key, value, self.detail_ttl_seconds):
            cache_layer.add_tag_member(by_id_tag(ad_id), key, self.detail_ttl_seconds)

    def _invalidate_tag(self, tag: str) -> int:
        members = cache_layer.get_tag_members(tag)
        removed = cache_layer.delete(*members) if members else 0
        cache_layer.delete(tag)
        logger.info("ads_cache_invalidated tag=%s keys=%s", tag, removed)
        return removed

    def invalidate_lists(self) -> int:
        return self._invalidate_tag(LIST_TAG)

    def invalidate_by_id(self, ad_id: int) -> int:
        return self._invalidate_tag(by_id_tag(ad_id))

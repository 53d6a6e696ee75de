from __future__ import annotations

import time

from celery import shared_task

from classifieds.extensions import db
from classifieds.services.ads.container import get_ads_services
from classifieds.tasks._common import task_log


@shared_task(
    bind=True,
    name="classifieds.tasks.ads_tasks.record_ad_view",
    max_retries=3,
    ignore_result=True,
)
def record_ad_view(self, ad_id: int, trace_id: str = ""):
    """Bump an ad's view counter off the request path."""
    started = time.perf_counter()
    try:
        get_ads_services().repository.increment_views(int(ad_id))
    except Exception as exc:
        db.session.rollback()
        task_log("record_ad_view", status="failed", started_at=started, trace_id=trace_id, ad_id=ad_id, error=str(exc))
        if int(self.request.retries or 0) < int(self.max_retries or 0):
            raise self.retry(exc=exc, countdown=5 * (2 ** int(self.request.retries or 0)))
        return {"ok": False}
    task_log("record_ad_view", status="ok", started_at=started, trace_id=trace_id, ad_id=ad_id)
    return {"ok": True}


@shared_task(name="classifieds.tasks.ads_tasks.purge_idempotency_keys")
def purge_idempotency_keys(trace_id: str = ""):
    started = time.perf_counter()
    removed = get_ads_services().idempotency.purge_expired()
    task_log("purge_idempotency_keys", status="ok", started_at=started, trace_id=trace_id, removed=removed)
    return {"ok": True, "removed": removed}

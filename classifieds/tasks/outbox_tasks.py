from __future__ import annotations

import time

from celery import shared_task

from classifieds.services.ads.container import get_ads_services
from classifieds.tasks._common import task_log


@shared_task(name="classifieds.tasks.outbox_tasks.outbox_cleanup")
def outbox_cleanup(retention_days: int | None = None, trace_id: str = ""):
    started = time.perf_counter()
    removed = get_ads_services().outbox.cleanup(retention_days)
    task_log("outbox_cleanup", status="ok", started_at=started, trace_id=trace_id, removed=removed)
    return {"ok": True, "removed": removed}

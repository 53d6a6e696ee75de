from __future__ import annotations

import json
import os

from celery import Celery
from celery.signals import task_failure, task_retry


_SIGNALS_BOUND = False


def _broker_url() -> str:
    return (
        (os.getenv("CELERY_BROKER_URL") or "").strip()
        or (os.getenv("REDIS_URL") or "").strip()
        or "redis://localhost:6379/0"
    )


def _result_backend(broker_url: str) -> str:
    return (
        (os.getenv("CELERY_RESULT_BACKEND") or "").strip()
        or (os.getenv("REDIS_URL") or "").strip()
        or broker_url
    )


def _interval_seconds(name: str, default: int, minimum: int = 60) -> float:
    raw = (os.getenv(name) or str(default)).strip()
    try:
        value = int(raw)
    except Exception:
        value = default
    return float(max(minimum, value))


def _bind_task_observers(flask_app) -> None:
    global _SIGNALS_BOUND
    if _SIGNALS_BOUND:
        return

    @task_failure.connect(weak=False)
    def _on_task_failure(sender=None, task_id=None, exception=None, args=None, kwargs=None, **extra):
        payload = {
            "event": "celery.task_failure",
            "task": getattr(sender, "name", "") if sender is not None else "",
            "task_id": str(task_id or ""),
            "trace_id": str((kwargs or {}).get("trace_id") or ""),
            "exception": str(exception or ""),
        }
        flask_app.logger.error(json.dumps(payload))

    @task_retry.connect(weak=False)
    def _on_task_retry(request=None, reason=None, **extra):
        payload = {
            "event": "celery.task_retry",
            "task": str(getattr(request, "task", "") or ""),
            "task_id": str(getattr(request, "id", "") or ""),
            "reason": str(reason or ""),
            "retry_count": int(getattr(request, "retries", 0) or 0),
        }
        flask_app.logger.warning(json.dumps(payload))

    _SIGNALS_BOUND = True


def create_celery_app(flask_app) -> Celery:
    broker = _broker_url()
    celery = Celery(flask_app.import_name, broker=broker, backend=_result_backend(broker))
    celery.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        broker_connection_retry_on_startup=True,
        timezone="UTC",
        enable_utc=True,
        beat_schedule={
            "outbox-cleanup": {
                "task": "classifieds.tasks.outbox_tasks.outbox_cleanup",
                "schedule": _interval_seconds("OUTBOX_CLEANUP_INTERVAL_SECONDS", 3600),
            },
            "idempotency-purge": {
                "task": "classifieds.tasks.ads_tasks.purge_idempotency_keys",
                "schedule": _interval_seconds("IDEMPOTENCY_PURGE_INTERVAL_SECONDS", 900),
            },
        },
    )

    class FlaskContextTask(celery.Task):
        def __call__(self, *args, **kwargs):
            with flask_app.app_context():
                return self.run(*args, **kwargs)

    celery.Task = FlaskContextTask
    celery.autodiscover_tasks(["classifieds.tasks"], related_name="ads_tasks")
    celery.autodiscover_tasks(["classifieds.tasks"], related_name="outbox_tasks")
    _bind_task_observers(flask_app)
    return celery

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta

from classifieds.extensions import db
from classifieds.models import OutboxEvent

logger = logging.getLogger(__name__)


class OutboxStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = {COMPLETED, FAILED}
    ALLOWED = {
        PENDING: {PROCESSING},
        PROCESSING: {COMPLETED, FAILED},
        COMPLETED: set(),
        FAILED: set(),
    }


class OutboxService:
    """Durable post-commit event queue.

    Producers only ``enqueue``; consumers drive each event through
    pending -> processing -> completed | failed. Terminal events are purged by
    ``cleanup`` once older than the retention window.
    """

    def __init__(self, *, retention_days: int = 7):
        self.retention_days = int(retention_days)

    def enqueue(self, event_name: str, payload: dict) -> OutboxEvent:
        row = OutboxEvent(
            event_name=str(event_name),
            payload_json=json.dumps(payload or {}, separators=(",", ":"), default=str),
            status=OutboxStatus.PENDING,
            retry_count=0,
            created_at=datetime.utcnow(),
        )
        db.session.add(row)
        db.session.commit()
        logger.info("outbox_enqueued event=%s id=%s", row.event_name, row.id)
        return row

    def pending(self, limit: int = 100) -> list[OutboxEvent]:
        return (
            OutboxEvent.query
            .filter(OutboxEvent.status == OutboxStatus.PENDING)
            .order_by(OutboxEvent.created_at.asc(), OutboxEvent.id.asc())
            .limit(int(limit))
            .all()
        )

    def _transition(self, event_id: int, target: str, *, error: str | None = None) -> OutboxEvent:
        row = db.session.get(OutboxEvent, int(event_id))
        if row is None:
            raise LookupError(f"outbox_event_not_found {event_id}")
        current = row.status or OutboxStatus.PENDING
        if target not in OutboxStatus.ALLOWED.get(current, set()):
            raise ValueError(f"invalid_outbox_transition {current}->{target}")
        now = datetime.utcnow()
        row.status = target
        row.updated_at = now
        if target in OutboxStatus.TERMINAL:
            row.processed_at = now
        if target == OutboxStatus.FAILED:
            row.error = (error or "")[:2000]
            row.retry_count = int(row.retry_count or 0) + 1
        db.session.commit()
        return row

    def mark_processing(self, event_id: int) -> OutboxEvent:
        return self._transition(event_id, OutboxStatus.PROCESSING)

    def mark_completed(self, event_id: int) -> OutboxEvent:
        return self._transition(event_id, OutboxStatus.COMPLETED)

    def mark_failed(self, event_id: int, error: str) -> OutboxEvent:
        return self._transition(event_id, OutboxStatus.FAILED, error=error)

    def cleanup(self, retention_days: int | None = None) -> int:
        days = int(retention_days if retention_days is not None else self.retention_days)
        cutoff = datetime.utcnow() - timedelta(days=days)
        removed = (
            OutboxEvent.query
            .filter(
                OutboxEvent.status.in_(sorted(OutboxStatus.TERMINAL)),
                OutboxEvent.processed_at < cutoff,
            )
            .delete(synchronize_session=False)
        )
        db.session.commit()
        logger.info("outbox_cleanup removed=%s retention_days=%s", int(removed or 0), days)
        return int(removed or 0)

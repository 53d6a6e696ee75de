from datetime import datetime
import json

from classifieds.extensions import db


class OutboxEvent(db.Model):
    __tablename__ = "outbox_events"
    __table_args__ = (
        db.Index("ix_outbox_events_status_created", "status", "created_at"),
    )

    id = db.Column(db.Integer, primary_key=True)

    event_name = db.Column(db.String(80), nullable=False, index=True)
    payload_json = db.Column(db.Text, nullable=False, default="{}")
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    retry_count = db.Column(db.Integer, nullable=False, default=0, server_default="0")
    error = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    processed_at = db.Column(db.DateTime, nullable=True, index=True)

    @property
    def payload(self) -> dict:
        try:
            parsed = json.loads(self.payload_json or "{}")
        except Exception:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    def to_dict(self) -> dict:
        return {
            "id": int(self.id),
            "event_name": self.event_name,
            "payload": self.payload,
            "status": self.status,
            "retry_count": int(self.retry_count or 0),
            "error": self.error,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "processed_at": self.processed_at.isoformat() if self.processed_at else None,
        }

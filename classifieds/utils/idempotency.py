from __future__ import annotations

import hashlib
import json
import os
from datetime import datetime, timedelta
from typing import Any

from flask import current_app, has_request_context, request
from sqlalchemy.exc import IntegrityError

from classifieds.extensions import db
from classifieds.models import IdempotencyKey


def _env_int(name: str, default: int, *, minimum: int = 1, maximum: int = 86400) -> int:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        value = int(default)
    else:
        try:
            value = int(raw)
        except Exception:
            value = int(default)
    if value < minimum:
        value = minimum
    if value > maximum:
        value = maximum
    return value


def idempotency_ttl_seconds() -> int:
    return _env_int("IDEMPOTENCY_TTL_SECONDS", 900)


def _canonical_json(payload: Any) -> str:
    try:
        return json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    except Exception:
        return str(payload)


def hash_request(*, method: str, path: str, payload: Any) -> str:
    canonical = _canonical_json(payload)
    raw = f"{method.strip().upper()}|{path.strip()}|{canonical}".encode("utf-8")
    return hashlib.sha256(raw).hexdigest()


def get_idempotency_key() -> str | None:
    if not has_request_context():
        return None
    k = request.headers.get("Idempotency-Key") or request.headers.get("X-Idempotency-Key")
    if not k or not k.strip():
        return None
    return k.strip()[:128]


class IdempotencyStore:
    """Database-backed key -> response store with TTL expiry.

    A first writer inserts an ``in_progress`` claim row; the unique
    ``(scope, key)`` constraint makes that insert the atomic set-if-absent, so
    a concurrent writer with the same key sees either the claim or the final
    response, never an empty slot.
    """

    def __init__(self, *, scope: str, ttl_seconds: int | None = None, claim_timeout_seconds: int = 120):
        self.scope = str(scope or "").strip()
        self.ttl_seconds = int(ttl_seconds or idempotency_ttl_seconds())
        self.claim_timeout_seconds = int(claim_timeout_seconds)

    def _find(self, key: str) -> IdempotencyKey | None:
        return IdempotencyKey.query.filter_by(scope=self.scope, key=key).first()

    def _drop(self, row: IdempotencyKey) -> None:
        db.session.delete(row)
        db.session.commit()

    def get(self, key: str) -> Any | None:
        row = self._find(key)
        if row is None or row.status != IdempotencyKey.STATUS_COMPLETED:
            return None
        if row.is_expired():
            self._drop(row)
            return None
        try:
            return json.loads(row.response_json or "null")
        except Exception:
            return None

    def set(self, key: str, value: Any, ttl_seconds: int | None = None, *, status_code: int = 200) -> None:
        now = datetime.utcnow()
        ttl = int(ttl_seconds or self.ttl_seconds)
        row = self._find(key)
        if row is None:
            row = IdempotencyKey(scope=self.scope, key=key, created_at=now)
            db.session.add(row)
        row.status = IdempotencyKey.STATUS_COMPLETED
        row.response_json = json.dumps(value, separators=(",", ":"), default=str)
        row.status_code = int(status_code or 200)
        row.updated_at = now
        row.expires_at = now + timedelta(seconds=ttl)
        db.session.commit()

    def claim(self, key: str, *, request_hash: str, user_id: int | None = None, _retry: bool = True):
        """Reserve ``key`` for one write.

        Returns one of ``("hit", body, status_code)``, ``("conflict", None, 409)``,
        ``("in_progress", None, 409)`` or ``("miss", row, 0)``.
        """
        now = datetime.utcnow()
        row = self._find(key)
        if row is not None and row.is_expired(now):
            self._drop(row)
            row = None

        if row is not None:
            if (row.request_hash or "").strip() and row.request_hash != request_hash:
                return ("conflict", None, 409)
            if row.status == IdempotencyKey.STATUS_COMPLETED:
                try:
                    body = json.loads(row.response_json or "null")
                except Exception:
                    body = None
                return ("hit", body, int(row.status_code or 200))
            stale_before = now - timedelta(seconds=self.claim_timeout_seconds)
            if row.updated_at and row.updated_at > stale_before:
                return ("in_progress", None, 409)
            # The previous writer died mid-flight; take the claim over.
            row.user_id = int(user_id) if user_id is not None else row.user_id
            row.updated_at = now
            db.session.commit()
            return ("miss", row, 0)

        row = IdempotencyKey(
            key=key,
            scope=self.scope,
            user_id=int(user_id) if user_id is not None else None,
            request_hash=request_hash,
            status=IdempotencyKey.STATUS_IN_PROGRESS,
            created_at=now,
            updated_at=now,
            expires_at=now + timedelta(seconds=self.ttl_seconds),
        )
        db.session.add(row)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            if not _retry:
                raise
            current_app.logger.info("idempotency_claim_race scope=%s key=%s", self.scope, key)
            return self.claim(key, request_hash=request_hash, user_id=user_id, _retry=False)
        return ("miss", row, 0)

    def release(self, key: str) -> None:
        """Drop an unfinished claim so the client can retry after a failure."""
        try:
            db.session.rollback()
            row = self._find(key)
            if row is not None and row.status == IdempotencyKey.STATUS_IN_PROGRESS:
                self._drop(row)
        except Exception:
            db.session.rollback()
            current_app.logger.exception("idempotency_release_failed scope=%s key=%s", self.scope, key)

    def purge_expired(self) -> int:
        removed = (
            IdempotencyKey.query
            .filter(IdempotencyKey.scope == self.scope, IdempotencyKey.expires_at <= datetime.utcnow())
            .delete(synchronize_session=False)
        )
        db.session.commit()
        return int(removed or 0)

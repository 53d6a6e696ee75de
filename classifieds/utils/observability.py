from __future__ import annotations

import hashlib
import json
import os
import time
import uuid
from datetime import datetime

from flask import g, request

REQUEST_ID_HEADER = "X-Request-Id"
MAX_REQUEST_ID_LEN = 64

# Never shipped to Sentry.
REDACTED_HEADERS = frozenset(
    {"authorization", "cookie", "set-cookie", "idempotency-key", "x-idempotency-key"}
)


def get_request_id() -> str:
    try:
        return getattr(g, "request_id", "") or ""
    except RuntimeError:
        # Outside an app/request context (celery, CLI).
        return ""


def log_json(logger, event: str, *, level: str = "info", **fields) -> None:
    """One compact JSON line per event, tagged with the current request id."""
    payload = {"event": event, "trace_id": get_request_id()}
    payload.update(fields)
    getattr(logger, level)(json.dumps(payload, separators=(",", ":"), default=str))


def _sentry_sample_rate() -> float:
    try:
        rate = float((os.getenv("SENTRY_TRACES_SAMPLE_RATE") or "0").strip())
    except ValueError:
        return 0.0
    return max(0.0, min(rate, 1.0))


def _scrub_sentry_event(event, hint):
    headers = (event.get("request") or {}).get("headers")
    if isinstance(headers, dict):
        for name in headers:
            if name.lower() in REDACTED_HEADERS:
                headers[name] = "[REDACTED]"
    return event


def init_sentry(app) -> None:
    dsn = (os.getenv("SENTRY_DSN") or "").strip()
    if not dsn:
        app.logger.info("sentry_disabled_no_dsn")
        return
    try:
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
    except ImportError as e:
        app.logger.warning("sentry_init_failed err=%s", e)
        return
    sentry_sdk.init(
        dsn=dsn,
        environment=(os.getenv("SENTRY_ENVIRONMENT") or os.getenv("CLASSIFIEDS_ENV") or "dev"),
        release=(os.getenv("GIT_SHA") or "unknown"),
        integrations=[FlaskIntegration()],
        send_default_pii=False,
        traces_sample_rate=_sentry_sample_rate(),
        before_send=_scrub_sentry_event,
    )
    app.logger.info("sentry_enabled")


def _client_fingerprint(salt: str) -> str:
    ip = request.headers.get("X-Forwarded-For", request.remote_addr or "")
    return hashlib.sha256(f"{salt}:{ip or ''}".encode("utf-8")).hexdigest()[:16]


def install_request_observers(app) -> None:
    """Tag every request with an id and emit one JSON access line per response.

    The access line records which ad cache answered (``hit``, ``miss`` or
    ``bypass``) when the handler set ``g.ads_cache_status``.
    """

    @app.before_request
    def _begin_request():
        incoming = (request.headers.get(REQUEST_ID_HEADER) or "").strip()
        g.request_id = (incoming or uuid.uuid4().hex)[:MAX_REQUEST_ID_LEN]
        g.request_started_at = time.perf_counter()

    @app.after_request
    def _finish_request(response):
        rid = get_request_id() or uuid.uuid4().hex
        response.headers[REQUEST_ID_HEADER] = rid
        started = getattr(g, "request_started_at", None)
        app.logger.info(
            json.dumps(
                {
                    "ts": datetime.utcnow().isoformat(),
                    "request_id": rid,
                    "method": request.method,
                    "path": request.path,
                    "status": int(response.status_code),
                    "latency_ms": None if started is None else round((time.perf_counter() - started) * 1000.0, 2),
                    "user_id": getattr(g, "auth_user_id", None),
                    "cache": getattr(g, "ads_cache_status", None),
                    "client": _client_fingerprint(app.config.get("SECRET_KEY", "classifieds")),
                }
            )
        )
        return response

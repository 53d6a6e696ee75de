import os
from pathlib import Path

import click
from flask import Flask, g, jsonify, request
from sqlalchemy import text
from werkzeug.exceptions import HTTPException

from classifieds.extensions import cors, db, migrate
from classifieds.services.ads.container import get_ads_services, init_ads_services
from classifieds.services.ads.errors import AdsError
from classifieds.segments.segment_ads_v2 import ads_v2_bp
from classifieds.utils import cache_layer
from classifieds.utils.jwt_utils import user_id_from_header
from classifieds.utils.observability import init_sentry, install_request_observers

PRODUCTION_ENVS = ("prod", "production")
MIGRATIONS_DIR = Path(__file__).resolve().parents[1] / "migrations"


def _resolve_alembic_head() -> str:
    from alembic.config import Config
    from alembic.script import ScriptDirectory

    try:
        cfg = Config(str(MIGRATIONS_DIR / "alembic.ini"))
        cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
        heads = ScriptDirectory.from_config(cfg).get_heads()
    except Exception:
        return "unknown"
    return heads[0] if heads else "unknown"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in ("1", "true", "yes", "on")


def _env_int(name: str, default: int, *, minimum: int = 1, maximum: int = 100000) -> int:
    raw = (os.getenv(name) or "").strip()
    try:
        value = int(raw) if raw else int(default)
    except ValueError:
        value = int(default)
    return max(minimum, min(value, maximum))


def _env_radii(name: str) -> tuple[int, ...] | None:
    """Comma-separated positive km values, deduplicated and ascending."""
    radii = set()
    for part in (os.getenv(name) or "").split(","):
        try:
            value = int(part.strip())
        except ValueError:
            continue
        if value > 0:
            radii.add(value)
    return tuple(sorted(radii)) or None


def _database_url(env: str) -> str:
    url = os.getenv("SQLALCHEMY_DATABASE_URI") or os.getenv("DATABASE_URL")
    if url:
        return url
    if env in PRODUCTION_ENVS:
        raise RuntimeError("DATABASE_URL (or SQLALCHEMY_DATABASE_URI) must be set in production")
    instance_dir = Path(__file__).resolve().parents[1] / "instance"
    instance_dir.mkdir(parents=True, exist_ok=True)
    return f"sqlite:///{(instance_dir / 'classifieds.db').as_posix()}"


def _configure(app: Flask, env: str) -> None:
    secret = (os.getenv("SECRET_KEY") or "").strip()
    if env in PRODUCTION_ENVS and len(secret) < 16:
        raise RuntimeError("SECRET_KEY must be set and at least 16 chars in production")
    app.config["SECRET_KEY"] = secret or "dev-secret"
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False

    database_url = _database_url(env)
    app.config["SQLALCHEMY_DATABASE_URI"] = database_url
    if not database_url.startswith("sqlite://"):
        pool = {
            "pool_pre_ping": True,
            "pool_size": _env_int("DB_POOL_SIZE", 5, maximum=200),
            "pool_timeout": _env_int("DB_POOL_TIMEOUT", 30, maximum=300),
            "pool_recycle": _env_int("DB_POOL_RECYCLE", 1800, minimum=60, maximum=86400),
        }
        app.config["SQLALCHEMY_ENGINE_OPTIONS"] = pool
        app.logger.info("db_pool size=%s timeout=%s recycle=%s", pool["pool_size"], pool["pool_timeout"], pool["pool_recycle"])

    app.config.update(
        ADS_AUTO_APPROVE=_env_bool("ADS_AUTO_APPROVE", False),
        ADS_LIST_CACHE_TTL_SECONDS=_env_int("ADS_LIST_CACHE_TTL_SECONDS", 300, maximum=86400),
        ADS_DETAIL_CACHE_TTL_SECONDS=_env_int("ADS_DETAIL_CACHE_TTL_SECONDS", 900, maximum=86400),
        IDEMPOTENCY_TTL_SECONDS=_env_int("IDEMPOTENCY_TTL_SECONDS", 900, maximum=86400),
        ADS_GEO_RADII_KM=_env_radii("ADS_GEO_RADII_KM"),
        OUTBOX_RETENTION_DAYS=_env_int("OUTBOX_RETENTION_DAYS", 7, maximum=3650),
    )

    origins = [o.strip() for o in (os.getenv("CORS_ORIGINS") or "").split(",") if o.strip()]
    if not origins and env not in PRODUCTION_ENVS:
        origins = ["*"]
    cors.init_app(app, resources={r"/api/*": {"origins": origins}})


def _error_payload(error: dict, status: int) -> dict:
    payload = {"ok": False, "error": error, "status": int(status)}
    rid = (getattr(g, "request_id", "") or "").strip()
    if rid:
        payload["trace_id"] = rid
    return payload


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(AdsError)
    def _ads_error(error: AdsError):
        if error.status >= 500:
            app.logger.error("ads_request_failed path=%s code=%s", request.path, error.code)
        else:
            app.logger.info("ads_request_rejected path=%s code=%s status=%s", request.path, error.code, error.status)
        return jsonify(_error_payload(error.to_dict(), error.status)), error.status

    @app.errorhandler(HTTPException)
    def _http_error(error: HTTPException):
        if not request.path.startswith("/api/"):
            return error
        status = int(error.code or 500)
        body = {"code": error.name.upper().replace(" ", "_"), "message": error.description or error.name}
        return jsonify(_error_payload(body, status)), status

    @app.errorhandler(Exception)
    def _unhandled_error(error: Exception):
        app.logger.exception("unhandled_exception path=%s", request.path)
        db.session.rollback()
        body = {"code": "INTERNAL_ERROR", "message": "Internal server error"}
        return jsonify(_error_payload(body, 500)), 500


def _register_cli(app: Flask) -> None:
    @app.cli.command("outbox-cleanup")
    @click.option("--retention-days", "retention_days", type=int, default=None, help="Override OUTBOX_RETENTION_DAYS")
    def outbox_cleanup(retention_days: int | None):
        removed = get_ads_services().outbox.cleanup(retention_days)
        click.echo(f"outbox_cleanup_ok removed={removed}")

    @app.cli.command("idempotency-purge")
    def idempotency_purge():
        removed = get_ads_services().idempotency.purge_expired()
        click.echo(f"idempotency_purge_ok removed={removed}")


def create_app():
    app = Flask(__name__)
    init_sentry(app)

    env = (os.getenv("CLASSIFIEDS_ENV") or "dev").strip().lower()
    _configure(app, env)

    db.init_app(app)
    migrate.init_app(app, db, directory=str(MIGRATIONS_DIR))
    install_request_observers(app)
    init_ads_services(app)

    _register_error_handlers(app)
    app.register_blueprint(ads_v2_bp)
    _register_cli(app)

    @app.get("/api/health")
    def health():
        try:
            with db.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            db_state = "ok"
        except Exception as e:
            app.logger.warning("health_db_failed err=%s", e)
            db_state = "fail"
        return jsonify(
            {
                "ok": db_state == "ok",
                "service": "classifieds-ads",
                "env": env,
                "db": db_state,
                "cache": cache_layer.cache_stats(),
                "alembic_head": _resolve_alembic_head(),
            }
        )

    @app.before_request
    def _begin_request_state():
        db.session.rollback()
        g.auth_user_id = user_id_from_header(request.headers.get("Authorization", ""))
        g.ads_cache_status = None

    @app.teardown_request
    def _release_session(exc):
        if exc is not None:
            db.session.rollback()
        db.session.remove()

    return app

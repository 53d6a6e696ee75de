from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from classifieds.extensions import db
from classifieds.models import User
from classifieds.services.ads.container import get_ads_services
from classifieds.services.ads.errors import ValidationError
from classifieds.services.ads.query_engine import ListFilters
from classifieds.utils.idempotency import get_idempotency_key
from classifieds.utils.jwt_utils import user_id_from_header


ads_v2_bp = Blueprint("ads_v2_bp", __name__, url_prefix="/api/v2/ads")


def _current_user() -> User | None:
    uid = user_id_from_header(request.headers.get("Authorization", ""))
    if uid is None:
        return None
    return db.session.get(User, uid)


def _viewer_id() -> int | None:
    user = _current_user()
    return int(user.id) if user is not None else None


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if body is None:
        return {}
    if not isinstance(body, dict):
        raise ValidationError({"body": "request body must be a JSON object"})
    return body


@ads_v2_bp.post("")
def create_ad():
    user = _current_user()
    if user is None:
        return jsonify({"ok": False, "message": "Unauthorized"}), 401

    result = get_ads_services().create.execute(
        _json_body(),
        owner=user,
        idempotency_key=get_idempotency_key(),
        route=request.path,
    )
    resp = jsonify(result.payload)
    resp.status_code = 201
    if result.replayed:
        resp.headers["Idempotent-Replayed"] = "true"
    return resp


def _list_response(source):
    filters = ListFilters.from_mapping(source)
    result = get_ads_services().list.execute(filters, viewer_id=_viewer_id())
    g.ads_cache_status = result.cache_status
    current_app.logger.info(
        "ads_list_served cache=%s total=%s radius_km=%s",
        result.cache_status,
        result.payload.get("total"),
        result.payload.get("searchRadiusKm"),
    )
    return jsonify(result.payload), 200


@ads_v2_bp.get("")
def list_ads():
    return _list_response(request.args)


@ads_v2_bp.post("/list")
def list_ads_filtered():
    return _list_response(_json_body())


@ads_v2_bp.get("/<ad_id>")
def get_ad(ad_id):
    result = get_ads_services().get.execute(ad_id, viewer_id=_viewer_id())
    g.ads_cache_status = result.cache_status
    return jsonify(result.payload), 200

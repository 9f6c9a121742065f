"""Health check endpoint."""

from __future__ import annotations

from flask import Blueprint, current_app
from sqlalchemy import text

from authority.api.deps import json_response, timing
from authority.core.extensions import db, get_refresh_store, get_signing_key_store

bp = Blueprint("health", __name__)


@bp.get("/health")
@timing
def healthcheck():
    """Return application, database, refresh store and signing key health."""

    db_status = "ok"
    try:
        db.session.execute(text("SELECT 1"))
    except Exception:  # pragma: no cover - depends on DB backend
        current_app.logger.exception("healthcheck.db_error")
        db_status = "fail"

    store_status = "ok"
    try:
        store = get_refresh_store()
        if current_app.extensions.get("redis_client") is not None:
            current_app.extensions["redis_client"].ping()
        store_kind = type(store).__name__
    except Exception:  # pragma: no cover - depends on Redis availability
        current_app.logger.exception("healthcheck.refresh_store_error")
        store_status = "fail"
        store_kind = None

    key_status = "ok"
    try:
        get_signing_key_store().current_key()
    except Exception:
        current_app.logger.exception("healthcheck.signing_key_error")
        key_status = "fail"

    healthy = db_status == key_status == store_status == "ok"
    payload = {
        "status": "ok" if healthy else "degraded",
        "db": db_status,
        "refresh_store": store_status,
        "refresh_store_backend": store_kind,
        "signing_key": key_status,
        "version": current_app.config.get("APP_VERSION", "dev"),
    }
    return json_response(payload, status=200 if healthy else 503)

"""Application factory wiring Flask extensions, blueprints and key rotation."""

from __future__ import annotations

import atexit
import logging

from flask import Flask
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

from authority.core.config import BaseConfig, get_config
from authority.core.logger import configure_logging, init_app as init_logging

log = logging.getLogger(__name__)

SCHEDULER_KEY = "authority.key_rotation_scheduler"


def _init_proxy(app: Flask) -> None:
    # Trust a single hop for X-Forwarded-* when running behind a reverse proxy
    if app.config.get("USE_PROXYFIX", True):
        app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)


def _init_cors(app: Flask) -> None:
    """Configure CORS for API endpoints from ``CORS_ORIGINS``.

    A blank value or ``"*"`` allows any origin but disables credential support.
    """
    raw_origins = app.config.get("CORS_ORIGINS", "")
    origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
    wildcard = len(origins) == 0 or origins == ["*"]

    CORS(
        app,
        resources={r"/api/*": {"origins": "*" if wildcard else origins}},
        supports_credentials=not wildcard,
        max_age=app.config.get("CORS_MAX_AGE", 600),
    )


def start_key_rotation(app: Flask):
    """Start the background signing key rotation for ``app``.

    The scheduler runs each tick inside an application context so the SQL
    store gets a fresh session, and is stopped at interpreter exit.

    :returns: The running :class:`KeyRotationScheduler`.
    """
    from authority.core.extensions import get_signing_key_store
    from authority.services.keys.scheduler import KeyRotationScheduler

    scheduler = app.extensions.get(SCHEDULER_KEY)
    if scheduler is None:
        scheduler = KeyRotationScheduler(
            get_signing_key_store,
            app.config["KEY_ROTATION_INTERVAL"],
            context_factory=app.app_context,
        )
        app.extensions[SCHEDULER_KEY] = scheduler
        atexit.register(scheduler.stop)
    scheduler.start()
    return scheduler


def create_app(
    config: str | type[BaseConfig] | object | None = None,
    *,
    instance_relative_config: bool = True,
    instance_config_filename: str = "config.py",
) -> Flask:
    """Build and configure the Flask application."""

    app = Flask(__name__, instance_relative_config=instance_relative_config)

    app.config.from_object(get_config() if config is None else config)
    if instance_relative_config and instance_config_filename:
        app.config.from_pyfile(instance_config_filename, silent=True)

    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    _init_proxy(app)

    from authority.core import extensions

    extensions.init_app(app)

    init_logging(app)

    _init_cors(app)

    from authority.api import init_app as init_api

    init_api(app)

    from authority.core import errors

    errors.init_app(app)

    from authority import cli as app_cli

    app_cli.init_app(app)

    if app.config.get("KEY_ROTATION_ENABLED"):
        start_key_rotation(app)

    return app

"""Global Flask extension instances and lazily-built service singletons."""

from __future__ import annotations

import logging

import redis  # type: ignore[import-untyped]
from flask import Flask, current_app
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from sqlalchemy import MetaData

log = logging.getLogger(__name__)

# Global naming convention for all constraints
convention = {
    "ix": "ix_%(table_name)s_%(column_0_name)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

# Global singletons (import-safe)
db: SQLAlchemy = SQLAlchemy(session_options={"autoflush": False}, metadata=metadata)
migrate = Migrate(render_as_batch=True)
limiter = Limiter(key_func=get_remote_address)
redis_client: redis.Redis | None = None

# app.extensions keys for the objects built on first use
REFRESH_STORE_KEY = "authority.refresh_store"
SIGNING_KEY_STORE_KEY = "authority.signing_key_store"
TOKEN_AUTHORITY_KEY = "authority.token_authority"


def init_app(app: Flask) -> None:
    """Initialize SQLAlchemy, migrations, rate limiting and Redis.

    Parameters
    ----------
    app: flask.Flask
        Application used to bind extension instances. This call imports the
        :mod:`authority.models` package to ensure SQLAlchemy metadata is ready
        for migrations.

    Raises
    ------
    RuntimeError
        If ``REDIS_URL`` is configured but the server does not answer ``PING``,
        or is missing while ``REQUIRE_DURABLE_REFRESH_STORE`` is set.
    """
    db.init_app(app)

    # Ensure models are imported so Alembic sees metadata
    from authority import models as _models  # noqa: F401

    migrate.init_app(app, db)
    limiter.init_app(app)

    global redis_client
    redis_url = app.config.get("REDIS_URL")
    if not redis_url:
        if app.config.get("REQUIRE_DURABLE_REFRESH_STORE"):
            raise RuntimeError(
                "REDIS_URL is required: refresh tokens must be shared by all workers"
            )
        redis_client = None
        app.extensions.pop("redis_client", None)
        return

    redis_client = redis.Redis.from_url(redis_url)
    try:
        redis_client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
    app.extensions["redis_client"] = redis_client


def get_redis() -> redis.Redis:
    """Return the initialized Redis client."""
    if redis_client is None:
        raise RuntimeError("Redis client is not initialized. Call init_app() first.")
    return redis_client


def get_refresh_store():
    """Return the application's refresh token store.

    Redis-backed when ``REDIS_URL`` is configured, otherwise a process-local
    in-memory store (single worker only).
    """
    store = current_app.extensions.get(REFRESH_STORE_KEY)
    if store is None:
        if current_app.extensions.get("redis_client") is not None:
            from authority.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore

            store = RedisRefreshTokenStore(get_redis())
        else:
            from authority.services._shared.ports import InMemoryRefreshTokenStore

            log.warning("REDIS_URL not set; refresh tokens are kept in process memory")
            store = InMemoryRefreshTokenStore()
        current_app.extensions[REFRESH_STORE_KEY] = store
    return store


def get_signing_key_store():
    """Return the SQL-backed signing key store, creating the first key if needed.

    Must be called inside an application context once the ``signing_keys``
    table exists.
    """
    store = current_app.extensions.get(SIGNING_KEY_STORE_KEY)
    if store is None:
        from authority.services.keys.service import SigningKeyService

        store = SigningKeyService()
        current_app.extensions[SIGNING_KEY_STORE_KEY] = store
    return store


def get_token_authority():
    """Return the :class:`~authority.services.auth.service.TokenAuthority` for this app."""
    authority = current_app.extensions.get(TOKEN_AUTHORITY_KEY)
    if authority is None:
        from authority.infra.jwt.jwt_token_provider import JWTTokenProvider
        from authority.services.auth.dto import AuthTokenConfig
        from authority.services.auth.service import TokenAuthority
        from authority.services.identity.service import IdentityService

        cfg = current_app.config
        authority = TokenAuthority(
            identities=IdentityService(),
            key_store=get_signing_key_store(),
            refresh_store=get_refresh_store(),
            refresh_secret=cfg["REFRESH_SIGNING_SECRET"],
            token_provider=JWTTokenProvider(),
            token_cfg=AuthTokenConfig(
                access_expires=cfg["ACCESS_TOKEN_TTL"],
                refresh_expires=cfg["REFRESH_TOKEN_TTL"],
                key_grace_period=cfg["KEY_GRACE_PERIOD"],
            ),
        )
        current_app.extensions[TOKEN_AUTHORITY_KEY] = authority
    return authority

"""Pytest fixtures configuring an isolated transactional database layer.

Each test runs inside a SAVEPOINT-backed transaction against an in-memory
SQLite database so data changes never leak between cases. Service singletons
cached on the app (token authority, stores) are dropped after every test so
each one starts with its own signing key.
"""

from __future__ import annotations

import os

import pytest
from authority.core.config import TestingConfig
from authority.core.extensions import (
    REFRESH_STORE_KEY,
    SIGNING_KEY_STORE_KEY,
    TOKEN_AUTHORITY_KEY,
)
from authority.core.extensions import db as _db  # Flask-SQLAlchemy instance
from authority.factory import create_app  # application factory under test
from authority.services._shared.ports import (
    InMemoryIdentityResolver,
    InMemoryRefreshTokenStore,
    InMemorySigningKeyStore,
)
from authority.services.auth.service import TokenAuthority
from sqlalchemy.orm import scoped_session, sessionmaker

REFRESH_SECRET = "unit-test-refresh-secret-0123456789abcdef"


class TestConfig(TestingConfig):
    """Testing configuration for creating the Flask app.

    Notes
    -----
    - Uses an in-memory SQLite database for speed.
    - Never starts the key rotation thread nor talks to Redis.
    """

    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    REDIS_URL = None
    KEY_ROTATION_ENABLED = False
    RATELIMIT_ENABLED = False
    LOG_LEVEL = "WARNING"


@pytest.fixture(scope="session")
def app():
    """Create a Flask application configured for testing.

    Returns
    -------
    flask.Flask
        Application instance with :class:`TestConfig` applied.
    """
    # Ensure env-based config does not leak into tests
    os.environ.pop("DATABASE_URL", None)
    os.environ.pop("REDIS_URL", None)
    app = create_app(TestConfig)
    app.logger.setLevel("WARNING")
    return app


@pytest.fixture(scope="session")
def db(app):
    """Create database tables once per test session.

    Yields
    ------
    flask_sqlalchemy.SQLAlchemy
        Database extension bound to the testing application.
    """
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="session")
def connection(db):
    """Keep a dedicated DBAPI connection open for the whole session."""
    conn = db.engine.connect()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def session(db, connection):
    """Provide a SQLAlchemy session wrapped in a nested transaction.

    Notes
    -----
    The session joins the connection in SAVEPOINT mode, so a Unit of Work's
    ``commit()``/``rollback()`` only release or roll back its own SAVEPOINT
    and the outer transaction is rolled back after the test.
    """
    # 1) Top-level transaction plus an outer SAVEPOINT that is never released
    top_trans = connection.begin()
    connection.begin_nested()

    # 2) Every session transaction becomes a SAVEPOINT inside it
    SessionFactory = sessionmaker(
        bind=connection, autoflush=False, join_transaction_mode="create_savepoint"
    )
    scoped = scoped_session(SessionFactory)

    # 3) Monkey-patch db.session so app code uses this scoped session
    original_session = db.session
    db.session.remove()
    db.session = scoped

    try:
        yield scoped
    finally:
        scoped.remove()
        db.session = original_session
        top_trans.rollback()


@pytest.fixture(autouse=True)
def _reset_app_singletons(app):
    """Forget stores and the authority cached on ``app.extensions``."""
    yield
    for key in (REFRESH_STORE_KEY, SIGNING_KEY_STORE_KEY, TOKEN_AUTHORITY_KEY):
        app.extensions.pop(key, None)


@pytest.fixture
def client(app, session):
    """Return a Flask test client sharing the transactional session."""
    return app.test_client()


@pytest.fixture(scope="session")
def faker():
    """Provide a :class:`faker.Faker` instance seeded for deterministic tests."""
    from faker import Faker

    fk = Faker()
    Faker.seed(1337)
    return fk


# -- In-memory authority wiring ----------------------------------------------
@pytest.fixture
def identities() -> InMemoryIdentityResolver:
    """Directory holding ``alice`` (id 42) with password ``wonderland``."""
    resolver = InMemoryIdentityResolver()
    resolver.add_user(user_id=42, username="alice", password="wonderland")
    return resolver


@pytest.fixture
def key_store() -> InMemorySigningKeyStore:
    return InMemorySigningKeyStore()


@pytest.fixture
def refresh_store() -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore()


@pytest.fixture
def refresh_secret() -> str:
    return REFRESH_SECRET


@pytest.fixture
def authority(identities, key_store, refresh_store) -> TokenAuthority:
    """A token authority wired entirely to in-memory stores."""
    return TokenAuthority(
        identities=identities,
        key_store=key_store,
        refresh_store=refresh_store,
        refresh_secret=REFRESH_SECRET,
    )


# -- Hook up Factory Boy to pytest SQLAlchemy session --------------------------
@pytest.fixture(autouse=True)
def _factories_session(session):
    """Point the factories at this test's transactional session."""
    from tests.factories import bind_session

    bind_session(session)
    yield
    bind_session(None)

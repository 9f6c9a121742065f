"""Application settings with environment-based simple classes."""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from datetime import timedelta
from typing import Final

from dotenv import load_dotenv

# Public selector env var (keep neutral name to avoid collisions)
ENV_VAR: Final[str] = "APP_ENV"  # 'development' | 'testing' | 'production'

# Loads .env in development (no-op when absent)
load_dotenv()

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|s|m|h|d)")
_UNITS: Final[Mapping[str, str]] = {
    "ms": "milliseconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def env_bool(name: str, default: bool = False) -> bool:
    """Parse a boolean flag from an environment variable.

    Parameters
    ----------
    name: str
        Environment variable to inspect.
    default: bool, optional
        Value returned when the variable is unset. Defaults to ``False``.

    Returns
    -------
    bool
        ``True`` if the value resembles ``{"1", "true", "yes", "y", "on"}``
        ignoring case; otherwise ``False`` or ``default`` when missing.
    """
    val = os.getenv(name)
    if val is None:
        return default
    return str(val).strip().lower() in {"1", "true", "yes", "y", "on"}


def parse_duration(raw: str) -> timedelta:
    """Parse a Go-style duration (``"90s"``, ``"1h30m"``, ``"7d"``) or plain seconds.

    Parameters
    ----------
    raw: str
        Text to parse. Whitespace is ignored.

    Returns
    -------
    datetime.timedelta
        Parsed duration.

    Raises
    ------
    ValueError
        If ``raw`` is empty or contains anything but number/unit pairs.
    """
    text = raw.strip().lower()
    if not text:
        raise ValueError("empty duration")
    if re.fullmatch(r"\d+(?:\.\d+)?", text):
        return timedelta(seconds=float(text))
    if not re.fullmatch(rf"(?:{_DURATION_PART.pattern})+", text):
        raise ValueError(f"invalid duration: {raw!r}")
    total = timedelta(0)
    for amount, unit in _DURATION_PART.findall(text):
        total += timedelta(**{_UNITS[unit]: float(amount)})
    return total


def env_duration(name: str, default: timedelta) -> timedelta:
    """Read a duration from the environment, falling back on unset or garbage values."""
    val = os.getenv(name)
    if val is None:
        return default
    try:
        return parse_duration(val)
    except ValueError:
        return default


class BaseConfig:
    """Base configuration shared across environments.

    Attributes
    ----------
    API_BASE_PREFIX: str
        Root path for registering API blueprints.
    SECRET_KEY: str
        Flask secret. Unused for tokens; kept for extensions that expect it.
    REFRESH_SIGNING_SECRET: str
        Non-rotating HMAC secret for refresh tokens (``JWT_SIGNING_KEY``).
    ACCESS_TOKEN_TTL: timedelta
        Access token lifetime (``ACCESS_TOKEN_TTL``, default 15 minutes).
    REFRESH_TOKEN_TTL: timedelta
        Refresh token lifetime (``REFRESH_TOKEN_TTL``, default 7 days).
    KEY_ROTATION_INTERVAL: timedelta
        Interval of the background signing key rotation.
    KEY_ROTATION_ENABLED: bool
        Whether this process runs the rotation scheduler.
    KEY_GRACE_PERIOD: timedelta
        How long a retired signing key still verifies access tokens.
    SQLALCHEMY_DATABASE_URI: str
        Signing key and credential database (``DATABASE_URL``).
    REDIS_URL: str | None
        Refresh token store. ``None`` selects the in-memory store.
    REQUIRE_DURABLE_REFRESH_STORE: bool
        Refuse to start without ``REDIS_URL``. Set in production, where the
        process-local store would split refresh tokens across workers and
        lose them on restart.
    LOG_LEVEL: str
        Root logging verbosity (``INFO`` by default).
    CORS_ORIGINS: str
        Comma-separated list of allowed origins for CORS.
    AUTH_LOGIN_RATE_LIMIT: str
        Flask-Limiter expression applied to ``/auth/login``.

    Notes
    -----
    Values are primarily sourced from environment variables, enabling
    configuration without code changes.
    """

    API_BASE_PREFIX = "/api"

    # Secrets
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_ME")
    REFRESH_SIGNING_SECRET = os.getenv("JWT_SIGNING_KEY", "CHANGE_ME_REFRESH_SIGNING_SECRET_0000")

    # Token lifetimes & rotation
    ACCESS_TOKEN_TTL = env_duration("ACCESS_TOKEN_TTL", timedelta(minutes=15))
    REFRESH_TOKEN_TTL = env_duration("REFRESH_TOKEN_TTL", timedelta(days=7))
    KEY_ROTATION_INTERVAL = env_duration("KEY_ROTATION_INTERVAL", timedelta(minutes=15))
    KEY_ROTATION_ENABLED = env_bool("KEY_ROTATION_ENABLED", True)
    KEY_GRACE_PERIOD = env_duration("KEY_GRACE_PERIOD", timedelta(0))

    # Persistence
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL", "sqlite:///./authority.db")
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ECHO = env_bool("SQLALCHEMY_ECHO", False)
    REDIS_URL = os.getenv("REDIS_URL") or None
    REQUIRE_DURABLE_REFRESH_STORE = False

    # Flask & JSON
    JSON_SORT_KEYS = False
    PROPAGATE_EXCEPTIONS = False

    # Logging, CORS, throttling
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    USE_PROXYFIX = env_bool("USE_PROXYFIX", True)
    AUTH_LOGIN_RATE_LIMIT = os.getenv("AUTH_LOGIN_RATE_LIMIT", "5 per minute")
    RATELIMIT_STORAGE_URI = os.getenv("RATELIMIT_STORAGE_URI", "memory://")
    RATELIMIT_ENABLED = env_bool("RATELIMIT_ENABLED", True)

    # Flask built-ins
    DEBUG = False
    TESTING = False


class DevelopmentConfig(BaseConfig):
    """Configuration tailored for local development.

    Notes
    -----
    Enables debug mode by default and honors ``SQLALCHEMY_ECHO`` for verbose
    SQL logging when requested.
    """

    APP_ENV = "development"
    DEBUG = env_bool("FLASK_DEBUG", True)
    CORS_MAX_AGE = 600  # 10 minutes


class TestingConfig(BaseConfig):
    """Configuration for automated test runs.

    Notes
    -----
    - Forces ``TESTING`` mode and disables the background rotation thread.
    - Uses an in-memory SQLite database unless ``TEST_DATABASE_URL`` is set.
    - Always uses the in-memory refresh store and disables rate limiting.
    """

    APP_ENV = "testing"
    TESTING = True
    DEBUG = False
    SQLALCHEMY_DATABASE_URI = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")
    REDIS_URL = None
    KEY_ROTATION_ENABLED = False
    RATELIMIT_ENABLED = False
    PROPAGATE_EXCEPTIONS = True
    REFRESH_SIGNING_SECRET = "testing-refresh-secret-with-enough-entropy-0123456789"


class ProductionConfig(BaseConfig):
    """Configuration defaults for production deployments.

    Notes
    -----
    - Keeps debug and SQL echoing disabled.
    - Requires ``REDIS_URL``: startup fails instead of falling back to the
      in-memory refresh store.
    - The rotation thread is opt-in (``KEY_ROTATION_ENABLED=true``). Enable it
      in exactly one process, or rotate from cron with ``flask keys rotate``.
    """

    APP_ENV = "production"
    REQUIRE_DURABLE_REFRESH_STORE = True
    KEY_ROTATION_ENABLED = env_bool("KEY_ROTATION_ENABLED", False)
    DEBUG = False
    SQLALCHEMY_ECHO = False
    PROPAGATE_EXCEPTIONS = False


# Map names -> classes (simple, explicit)
CONFIG_MAP: Mapping[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing": TestingConfig,
    "production": ProductionConfig,
}


def get_config() -> type[BaseConfig]:
    """Return the configuration class inferred from ``APP_ENV``.

    Returns
    -------
    type[BaseConfig]
        Class to pass to :meth:`flask.Config.from_object`.

    Notes
    -----
    Falls back to :class:`DevelopmentConfig` when ``APP_ENV`` is unset or
    unknown.
    """
    name = os.getenv(ENV_VAR, "development").strip().lower()
    return CONFIG_MAP.get(name, DevelopmentConfig)

# authority/services/auth/dto.py
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param username: Login name.
    :type username: str
    :param password: Raw password (to be verified).
    :type password: str
    """

    username: str
    password: str

    def __repr__(self) -> str:
        return f"LoginIn(username={self.username!r}, password='***')"


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Encoded refresh JWT.
    :type refresh_token: str
    """

    refresh_token: str


# ------------------------------ Claims ------------------------------------ #


def _epoch(dt: datetime) -> int:
    return int(dt.timestamp())


def _from_epoch(value: Any) -> datetime:
    if isinstance(value, bool) or not isinstance(value, int | float):
        raise ValueError("exp must be numeric")
    return datetime.fromtimestamp(int(value), tz=UTC)


def _require_user_id(value: Any) -> int:
    # bool is an int subclass; a JSON ``true`` is never an identity
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError("user_id must be an integer")
    return value


def _require_str(value: Any, name: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{name} must be a non-empty string")
    return value


@dataclass(frozen=True, slots=True)
class AccessClaims:
    """
    Claims carried inside an access token.

    Wire names: ``access_uuid``, ``user_id``, ``authorized``, ``exp``.
    """

    access_id: str
    user_id: int
    expires_at: datetime
    authorized: bool = True

    REQUIRED = ("access_uuid", "user_id", "authorized", "exp")

    def to_claims(self) -> dict[str, Any]:
        return {
            "access_uuid": self.access_id,
            "user_id": self.user_id,
            "authorized": self.authorized,
            "exp": _epoch(self.expires_at),
        }

    @classmethod
    def from_claims(cls, payload: Mapping[str, Any]) -> AccessClaims:
        """
        Build typed claims from a verified payload.

        :raises ValueError: If a claim is missing or has the wrong type.
        """
        if payload.get("authorized") is not True:
            raise ValueError("token is not an authorized access token")
        return cls(
            access_id=_require_str(payload.get("access_uuid"), "access_uuid"),
            user_id=_require_user_id(payload.get("user_id")),
            expires_at=_from_epoch(payload.get("exp")),
        )


@dataclass(frozen=True, slots=True)
class RefreshClaims:
    """
    Claims carried inside a refresh token.

    Wire names: ``refresh_uuid``, ``user_id``, ``exp``.
    """

    refresh_id: str
    user_id: int
    expires_at: datetime

    REQUIRED = ("refresh_uuid", "user_id", "exp")

    def to_claims(self) -> dict[str, Any]:
        return {
            "refresh_uuid": self.refresh_id,
            "user_id": self.user_id,
            "exp": _epoch(self.expires_at),
        }

    @classmethod
    def from_claims(cls, payload: Mapping[str, Any]) -> RefreshClaims:
        return cls(
            refresh_id=_require_str(payload.get("refresh_uuid"), "refresh_uuid"),
            user_id=_require_user_id(payload.get("user_id")),
            expires_at=_from_epoch(payload.get("exp")),
        )


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPair:
    """
    Result of a successful issuance.

    :param access_token: Encoded access JWT.
    :param refresh_token: Encoded refresh JWT.
    :param access_id: Identifier embedded in the access token.
    :param refresh_id: Identifier embedded in the refresh token and its record.
    :param access_expires_at: Access token expiry (UTC).
    :param refresh_expires_at: Refresh token expiry (UTC).
    """

    access_token: str
    refresh_token: str
    access_id: str
    refresh_id: str
    access_expires_at: datetime
    refresh_expires_at: datetime

    def __repr__(self) -> str:
        return f"TokenPair(access_id={self.access_id!r}, refresh_id={self.refresh_id!r})"


# ------------------------ Config DTO (optional) --------------------------- #


@dataclass(frozen=True, slots=True)
class AuthTokenConfig:
    """
    Token emission configuration.

    :param access_expires: Access token lifetime.
    :type access_expires: timedelta
    :param refresh_expires: Refresh token lifetime.
    :type refresh_expires: timedelta
    :param key_grace_period: How long a retired signing key still verifies
        access tokens. ``timedelta(0)`` makes rotation invalidate them at once.
    :type key_grace_period: timedelta
    """

    access_expires: timedelta = timedelta(minutes=15)
    refresh_expires: timedelta = timedelta(days=7)
    key_grace_period: timedelta = timedelta(0)

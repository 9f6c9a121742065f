"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and never import Flask, HTTP, or
SQLAlchemy. They are the stable contract between stores, the token authority
and the transport layer.

The translation to HTTP responses (RFC 7807) is handled by
``authority/core/errors.py`` via ``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass

# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from stores or domain logic.
    - The API layer translates them to ``APIError`` instances.
    """

    pass


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in a store or repository.

    :param entity: Entity name (e.g., "RefreshToken").
    :type entity: str
    :param key: Identifier or search key (never a secret value).
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a uniqueness rule is violated.

    :param entity: Entity name (e.g., "RefreshToken").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:  # pragma: no cover
        return f"Conflict on {self.entity}: {self.detail}"


class DuplicateTokenError(ConflictError):
    """Raised by a refresh token store when the record id already exists."""

    def __init__(self, token_id: str) -> None:
        super().__init__("RefreshToken", f"id already registered: {token_id}")


# --------------------------------------------------------------------------- #
# Caller-visible authentication failures
# --------------------------------------------------------------------------- #


class AuthenticationError(ServiceError):
    """
    Base for failures the caller must see as "unauthorized".

    The message carried here is for logs only; the transport layer replaces it
    with an opaque one so that failure kinds cannot be told apart.
    """

    code = "unauthorized"

    def __init__(self, message: str = "Authentication failed") -> None:
        super().__init__(message)


class InvalidCredentialsError(AuthenticationError):
    code = "invalid_credentials"

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


class InvalidTokenError(AuthenticationError):
    """Malformed token, bad signature, unexpected algorithm or unknown record."""

    code = "invalid_token"

    def __init__(self, message: str = "Invalid token") -> None:
        super().__init__(message)


class TokenExpiredError(AuthenticationError):
    """Correctly signed token whose ``exp`` has passed."""

    code = "token_expired"

    def __init__(self) -> None:
        super().__init__("Token expired")


class TokenMismatchError(AuthenticationError):
    """Stored refresh record is not bound to the identifiers inside the token."""

    code = "token_mismatch"

    def __init__(self) -> None:
        super().__init__("Refresh token does not match its stored record")


class UnknownUserError(AuthenticationError):
    code = "unknown_user"

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User no longer exists: {user_id}")
        self.user_id = user_id


# --------------------------------------------------------------------------- #
# Infrastructure failures
# --------------------------------------------------------------------------- #


class KeyStoreError(ServiceError):
    """The signing key store could not serve the request."""

    def __init__(self, message: str = "Signing key store unavailable") -> None:
        super().__init__(message)


class NoActiveKeyError(KeyStoreError):
    def __init__(self) -> None:
        super().__init__("No active signing key")


class RotationFailedError(KeyStoreError):
    def __init__(self, message: str = "Signing key rotation failed") -> None:
        super().__init__(message)


class SigningUnavailableError(ServiceError):
    """Issuance or verification could not obtain a signing key."""

    def __init__(self, message: str = "Signing key unavailable") -> None:
        super().__init__(message)


class RefreshStoreError(ServiceError):
    """The refresh token store's durability layer failed."""

    def __init__(self, message: str = "Refresh token store unavailable") -> None:
        super().__init__(message)


class PersistenceFailedError(ServiceError):
    """Issuance or redemption aborted because the refresh store failed."""

    def __init__(self, message: str = "Refresh token could not be persisted") -> None:
        super().__init__(message)

"""Service layer public API.

Re-exports
----------
- Base primitives (from ``authority.services._shared.base``)
    * :class:`BaseService`

- Token authority (from ``authority.services.auth``)
    * :class:`TokenAuthority`
    * DTOs: :class:`LoginIn`, :class:`RefreshIn`, :class:`TokenPair`,
      :class:`AccessClaims`, :class:`RefreshClaims`, :class:`AuthTokenConfig`

- Signing keys (from ``authority.services.keys``)
    * :class:`SigningKeyService`
    * :class:`KeyRotationScheduler`

- Identity (from ``authority.services.identity``)
    * :class:`IdentityService`
"""

from __future__ import annotations

from authority.services._shared.base import BaseService
from authority.services.auth.dto import (
    AccessClaims,
    AuthTokenConfig,
    LoginIn,
    RefreshClaims,
    RefreshIn,
    TokenPair,
)
from authority.services.auth.service import TokenAuthority
from authority.services.identity.service import IdentityService
from authority.services.keys.scheduler import KeyRotationScheduler
from authority.services.keys.service import SigningKeyService

__all__ = [
    "BaseService",
    "TokenAuthority",
    "LoginIn",
    "RefreshIn",
    "TokenPair",
    "AccessClaims",
    "RefreshClaims",
    "AuthTokenConfig",
    "SigningKeyService",
    "KeyRotationScheduler",
    "IdentityService",
]

"""
authority.services._shared.ports
================================

Collection of *ports* (hexagonal interfaces) that define the contracts the
token authority depends on.

Modules
-------
- :mod:`signing_key_store`:
    Defines :class:`~.SigningKeyStore` and :class:`~.SigningKeyView`: the
    rotating HMAC key ledger.

- :mod:`refresh_token_store`:
    Defines :class:`~.RefreshTokenStore` and :class:`~.RefreshTokenRecord`:
    the single-use refresh token ledger with atomic ``take``.

- :mod:`identity_resolver`:
    Defines :class:`~.IdentityResolver` and :class:`~.CredentialRecord`: the
    external user directory.

- :mod:`token_provider`:
    Defines :class:`~.TokenProvider`: encoding/decoding of signed claims.

Design Notes
------------
Concrete adapters (SQLAlchemy, Redis, PyJWT) live under
``authority.services.*`` and ``authority.infra``; in-memory doubles live next
to their port.
"""

from __future__ import annotations

from .identity_resolver import CredentialRecord, IdentityResolver, InMemoryIdentityResolver
from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RefreshTokenStore,
)
from .signing_key_store import (
    InMemorySigningKeyStore,
    SigningKeyStore,
    SigningKeyView,
    generate_secret,
)
from .token_provider import TokenProvider

__all__ = [
    "CredentialRecord",
    "IdentityResolver",
    "InMemoryIdentityResolver",
    "InMemoryRefreshTokenStore",
    "InMemorySigningKeyStore",
    "RefreshTokenRecord",
    "RefreshTokenStore",
    "SigningKeyStore",
    "SigningKeyView",
    "TokenProvider",
    "generate_secret",
]

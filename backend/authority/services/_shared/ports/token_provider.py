from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from authority.services.auth.dto import AccessClaims, RefreshClaims


class TokenProvider(Protocol):
    """
    Port for encoding and decoding signed bearer tokens.

    Implementations must accept exactly one symmetric algorithm and must map
    every decoding failure onto ``InvalidTokenError`` except a correctly
    signed token past its ``exp``, which maps onto ``TokenExpiredError``.
    """

    def encode_access(self, claims: AccessClaims, *, secret: str, key_id: str | None) -> str: ...

    def encode_refresh(self, claims: RefreshClaims, *, secret: str) -> str: ...

    def decode_access(self, token: str, *, secret: str) -> AccessClaims: ...

    def decode_refresh(self, token: str, *, secret: str) -> RefreshClaims: ...

    def get_key_id(self, token: str) -> str | None:
        """Read the unverified ``kid`` header. Never trust it beyond key selection."""

# authority/infra/jwt/jwt_token_provider.py
from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any, TypeVar

import jwt

from authority.services._shared.errors import InvalidTokenError, TokenExpiredError
from authority.services._shared.ports import TokenProvider
from authority.services.auth.dto import AccessClaims, RefreshClaims

ALGORITHM = "HS256"

C = TypeVar("C")


@dataclass(slots=True)
class JWTTokenProvider(TokenProvider):
    """
    PyJWT adapter signing claims with a single symmetric algorithm.

    The verifier pins ``algorithms`` to :data:`ALGORITHM`, so tokens using any
    other ``alg`` (``none``, RS256 with a forged public key, ...) are rejected
    before the signature is even considered.

    :param algorithm: HMAC algorithm used for both signing and verification.
    :param leeway: Clock skew tolerance (seconds) applied to ``exp``.
    """

    algorithm: str = ALGORITHM
    leeway: int = 0

    # -------------------- encoding --------------------

    def encode_access(self, claims: AccessClaims, *, secret: str, key_id: str | None) -> str:
        headers = {"kid": key_id} if key_id is not None else None
        return jwt.encode(claims.to_claims(), secret, algorithm=self.algorithm, headers=headers)

    def encode_refresh(self, claims: RefreshClaims, *, secret: str) -> str:
        return jwt.encode(claims.to_claims(), secret, algorithm=self.algorithm)

    # -------------------- decoding --------------------

    def decode_access(self, token: str, *, secret: str) -> AccessClaims:
        return self._decode(token, secret, AccessClaims.REQUIRED, AccessClaims.from_claims)

    def decode_refresh(self, token: str, *, secret: str) -> RefreshClaims:
        return self._decode(token, secret, RefreshClaims.REQUIRED, RefreshClaims.from_claims)

    def get_key_id(self, token: str) -> str | None:
        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError("Malformed token header") from exc
        kid = header.get("kid")
        if kid is None:
            return None
        if not isinstance(kid, str):
            raise InvalidTokenError("Malformed key id")
        return kid

    def _decode(
        self,
        token: str,
        secret: str,
        required: tuple[str, ...],
        build: Callable[[Mapping[str, Any]], C],
    ) -> C:
        # Signature is verified before registered claims, so ExpiredSignatureError
        # is only raised for tokens signed with ``secret``.
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[self.algorithm],
                leeway=self.leeway,
                options={"require": list(required)},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenExpiredError() from exc
        except jwt.InvalidTokenError as exc:
            raise InvalidTokenError(f"Token rejected: {type(exc).__name__}") from exc

        try:
            return build(payload)
        except ValueError as exc:
            raise InvalidTokenError(f"Malformed claims: {exc}") from exc

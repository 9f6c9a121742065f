# authority/services/auth/service.py
from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from datetime import datetime
from functools import lru_cache
from uuid import uuid4

from werkzeug.security import check_password_hash, generate_password_hash

from authority.services._shared.base import BaseService
from authority.services._shared.errors import (
    InvalidCredentialsError,
    InvalidTokenError,
    PersistenceFailedError,
    SigningUnavailableError,
    TokenMismatchError,
    UnknownUserError,
)
from authority.services._shared.ports import (
    CredentialRecord,
    IdentityResolver,
    RefreshTokenRecord,
    RefreshTokenStore,
    SigningKeyStore,
    SigningKeyView,
    TokenProvider,
)
from authority.services.auth.dto import (
    AccessClaims,
    AuthTokenConfig,
    LoginIn,
    RefreshClaims,
    RefreshIn,
    TokenPair,
)

log = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def _dummy_password_hash() -> str:
    # Checked when the username is unknown so both login failures cost one hash
    return generate_password_hash(secrets.token_urlsafe(16))


class TokenAuthority(BaseService):
    """
    Issue, verify and rotate authentication tokens.

    Access tokens are signed with the signing key store's active key and carry
    its id in the ``kid`` header. Refresh tokens are signed with a separate,
    non-rotating secret; their server-side record is what makes them
    single-use and revocable.

    The authority keeps no state between calls: every operation asks its
    stores again.

    :param identities: User directory resolving credential records.
    :param key_store: Source of the active (and recently retired) signing keys.
    :param refresh_store: Single-use ledger of outstanding refresh tokens.
    :param refresh_secret: HMAC secret for refresh tokens.
    :param token_provider: Token codec; defaults to the PyJWT adapter.
    :param token_cfg: Lifetimes and retired-key grace window.
    :param clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        *,
        identities: IdentityResolver,
        key_store: SigningKeyStore,
        refresh_store: RefreshTokenStore,
        refresh_secret: str,
        token_provider: TokenProvider | None = None,
        token_cfg: AuthTokenConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        super().__init__()
        if not refresh_secret:
            raise ValueError("A refresh signing secret is required")
        if token_provider is None:
            from authority.infra.jwt.jwt_token_provider import JWTTokenProvider

            token_provider = JWTTokenProvider()
        self.identities = identities
        self.key_store = key_store
        self.refresh_store = refresh_store
        self.tokens = token_provider
        self.cfg = token_cfg or AuthTokenConfig()
        self._refresh_secret = refresh_secret
        self._clock = clock or self.now_utc

    # ------------------------------------------------------------------ #
    # Issuance
    # ------------------------------------------------------------------ #

    def login(self, dto: LoginIn) -> TokenPair:
        """
        Authenticate credentials and issue a fresh token pair.

        :param dto: Login input.
        :type dto: LoginIn
        :returns: Newly issued token pair.
        :rtype: TokenPair
        :raises InvalidCredentialsError: Unknown username or wrong password
            (indistinguishable).
        """
        record = self.identities.find_by_username(dto.username)
        if record is None:
            check_password_hash(_dummy_password_hash(), dto.password)
            raise InvalidCredentialsError()
        if not check_password_hash(record.password_hash, dto.password):
            raise InvalidCredentialsError()
        return self.generate_tokens(record)

    def generate_tokens(self, identity: CredentialRecord) -> TokenPair:
        """
        Issue an access/refresh pair for an already authenticated identity.

        The refresh record is persisted before the pair is returned; if that
        fails nothing is returned.

        :param identity: Resolved credential record.
        :returns: Newly issued token pair.
        :raises SigningUnavailableError: If no signing key can be obtained.
        :raises PersistenceFailedError: If the refresh record cannot be stored.
        """
        now = self._clock()
        access_expires_at = now + self.cfg.access_expires
        refresh_expires_at = now + self.cfg.refresh_expires
        access_id = str(uuid4())
        refresh_id = str(uuid4())

        key = self._active_key()
        access_token = self.tokens.encode_access(
            AccessClaims(access_id=access_id, user_id=identity.id, expires_at=access_expires_at),
            secret=key.secret,
            key_id=key.kid,
        )
        refresh_token = self.tokens.encode_refresh(
            RefreshClaims(refresh_id=refresh_id, user_id=identity.id, expires_at=refresh_expires_at),
            secret=self._refresh_secret,
        )

        record = RefreshTokenRecord(
            id=refresh_id,
            user_id=identity.id,
            token=refresh_token,
            expires_at=refresh_expires_at,
            created_at=now,
        )
        try:
            self.refresh_store.create(record)
        except Exception as exc:
            log.error("tokens.persist_failed", extra={"user_id": identity.id}, exc_info=True)
            raise PersistenceFailedError() from exc

        log.info("tokens.issued", extra={"user_id": identity.id, "key_id": key.kid})
        return TokenPair(
            access_token=access_token,
            refresh_token=refresh_token,
            access_id=access_id,
            refresh_id=refresh_id,
            access_expires_at=access_expires_at,
            refresh_expires_at=refresh_expires_at,
        )

    # ------------------------------------------------------------------ #
    # Verification
    # ------------------------------------------------------------------ #

    def verify_access_token(self, token: str) -> AccessClaims:
        """
        Verify an access token and return its claims. Read-only.

        :param token: Encoded access JWT.
        :returns: Verified claims.
        :raises InvalidTokenError: Malformed, wrong algorithm, bad signature,
            or signed by a key that is no longer accepted.
        :raises TokenExpiredError: Correctly signed but past ``exp``.
        :raises SigningUnavailableError: If the key store cannot be read.
        """
        kid = self.tokens.get_key_id(token)
        key = self._verification_key(kid)
        return self.tokens.decode_access(token, secret=key.secret)

    def _verification_key(self, kid: str | None) -> SigningKeyView:
        current = self._active_key()
        if kid is None or kid == current.kid:
            return current

        grace = self.cfg.key_grace_period
        if grace.total_seconds() <= 0:
            raise InvalidTokenError("Token signed with a key that is no longer active")

        try:
            candidate = self.key_store.get_key(kid)
        except Exception as exc:
            raise SigningUnavailableError() from exc
        if candidate is None:
            raise InvalidTokenError("Unknown signing key")
        if candidate.active:
            # rotated between the two reads
            return candidate
        if candidate.retired_at is None or self._clock() - candidate.retired_at > grace:
            raise InvalidTokenError("Signing key retired beyond the grace period")
        return candidate

    def _active_key(self) -> SigningKeyView:
        try:
            return self.key_store.current_key()
        except Exception as exc:
            log.error("signing_key.unavailable: %s", exc)
            raise SigningUnavailableError() from exc

    # ------------------------------------------------------------------ #
    # Refresh rotation
    # ------------------------------------------------------------------ #

    def refresh(self, dto: RefreshIn) -> TokenPair:
        """
        Redeem a refresh token exactly once and issue a new pair.

        Redemption is a single atomic ``take`` on the store: of concurrent
        callers presenting the same token at most one succeeds. A record that
        does not match the token's claims has already been consumed by then,
        so the token cannot be retried.

        :param dto: Refresh input.
        :type dto: RefreshIn
        :returns: Newly issued token pair.
        :raises InvalidTokenError: Bad signature, or the token was never
            issued or was already redeemed.
        :raises TokenExpiredError: Correctly signed but past ``exp``.
        :raises TokenMismatchError: Stored record bound to other identifiers.
        :raises UnknownUserError: The identity no longer exists.
        :raises PersistenceFailedError: The store could not be reached.
        """
        claims = self.tokens.decode_refresh(dto.refresh_token, secret=self._refresh_secret)

        try:
            record = self.refresh_store.take(dto.refresh_token)
        except Exception as exc:
            log.error("tokens.redeem_failed", extra={"user_id": claims.user_id}, exc_info=True)
            raise PersistenceFailedError("Refresh token could not be redeemed") from exc

        if record is None:
            raise InvalidTokenError("Refresh token not recognised")
        if record.id != claims.refresh_id or record.user_id != claims.user_id:
            raise TokenMismatchError()

        identity = self.identities.find_by_id(claims.user_id)
        if identity is None:
            raise UnknownUserError(claims.user_id)

        log.info("tokens.refreshed", extra={"user_id": claims.user_id})
        return self.generate_tokens(identity)

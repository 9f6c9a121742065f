from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol

from authority.services._shared.errors import DuplicateTokenError, NotFoundError


@dataclass(frozen=True, slots=True)
class RefreshTokenRecord:
    """
    Server-side ledger entry for one issued refresh token.

    :ivar id: Unique identifier embedded in the token (``refresh_uuid`` claim).
    :ivar user_id: Owner identity.
    :ivar token: Literal bearer value handed to the client.
    :ivar expires_at: Absolute expiration (UTC).
    :ivar created_at: Issuance time (UTC).
    """

    id: str
    user_id: int
    token: str
    expires_at: datetime
    created_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at <= now


class RefreshTokenStore(Protocol):
    """
    Single-use ledger of outstanding refresh tokens.

    A record exists for a token if and only if the token has not been redeemed
    or reaped. ``take`` is the only redemption path and MUST be atomic.
    """

    def create(self, record: RefreshTokenRecord) -> None:
        """
        Persist a new record.

        :raises DuplicateTokenError: If a record with the same id exists.
        :raises RefreshStoreError: On durability failures.
        """

    def get(self, token: str) -> RefreshTokenRecord:
        """
        Fetch the record for a bearer value.

        :raises NotFoundError: If absent (redeemed, reaped or never issued).
        """

    def delete(self, token: str) -> None:
        """Remove the record for a bearer value. Deleting an absent token is a no-op."""

    def take(self, token: str) -> RefreshTokenRecord | None:
        """
        Atomically fetch and delete the record for a bearer value.

        Of any number of concurrent callers presenting the same token, at most
        one receives the record; the rest receive ``None``.
        """

    def purge_expired(self, now: datetime) -> int:
        """Delete expired records. :returns: Number of records removed."""


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    Process-local refresh token store.

    .. note::
       A single lock serializes every operation, which makes ``take`` atomic.
       Suitable for tests and single-process deployments only.
    """

    def __init__(self) -> None:
        self._by_token: dict[str, RefreshTokenRecord] = {}
        self._ids: set[str] = set()
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._by_token)

    def create(self, record: RefreshTokenRecord) -> None:
        with self._lock:
            if record.id in self._ids:
                raise DuplicateTokenError(record.id)
            self._by_token[record.token] = record
            self._ids.add(record.id)

    def get(self, token: str) -> RefreshTokenRecord:
        with self._lock:
            record = self._by_token.get(token)
        if record is None:
            raise NotFoundError("RefreshToken", "token")
        return record

    def delete(self, token: str) -> None:
        self.take(token)

    def take(self, token: str) -> RefreshTokenRecord | None:
        with self._lock:
            record = self._by_token.pop(token, None)
            if record is not None:
                self._ids.discard(record.id)
            return record

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        with self._lock:
            expired = [t for t, rec in self._by_token.items() if rec.is_expired(now)]
            for token in expired:
                self._ids.discard(self._by_token.pop(token).id)
            return len(expired)

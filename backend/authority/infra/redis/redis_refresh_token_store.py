# comments in English; reST docstrings
from __future__ import annotations

import hashlib
import math
from dataclasses import dataclass
from datetime import UTC, datetime

import redis  # type: ignore[import-untyped]
from redis.exceptions import RedisError, WatchError  # type: ignore[import-untyped]

from authority.services._shared.errors import (
    DuplicateTokenError,
    NotFoundError,
    RefreshStoreError,
)
from authority.services._shared.ports import RefreshTokenRecord, RefreshTokenStore


def _b(s: bytes | str | None, default: str = "") -> str:
    if s is None:
        return default
    return s.decode() if isinstance(s, bytes) else s


def _to_ts(dt: datetime) -> int:
    return int(dt.timestamp())


def _from_ts(raw: str) -> datetime:
    return datetime.fromtimestamp(int(raw), tz=UTC)


@dataclass(slots=True)
class RedisRefreshTokenStore(RefreshTokenStore):
    """
    Redis-backed refresh token store with atomic redemption.

    Layout:

    * ``{prefix}:t:{sha256(token)}``: hash with ``id``, ``user_id``,
      ``token``, ``expires_at`` and ``created_at`` (epoch seconds).
    * ``{prefix}:id:{id}``: points at the token digest; used to reject
      duplicate ids.

    Both keys expire with the token, so expired records are reaped by Redis
    itself.

    :param r: A Redis client (already connected).
    :param prefix: Key namespace.
    """

    r: redis.Redis
    prefix: str = "rt"

    # -------------------- helpers --------------------

    @staticmethod
    def _digest(token: str) -> str:
        # bearer values never appear in key names
        return hashlib.sha256(token.encode()).hexdigest()

    def _kt(self, token: str) -> str:
        return f"{self.prefix}:t:{self._digest(token)}"

    def _kid(self, record_id: str) -> str:
        return f"{self.prefix}:id:{record_id}"

    @staticmethod
    def _ttl(expires_at: datetime) -> int:
        remaining = (expires_at - datetime.now(UTC)).total_seconds()
        return max(1, math.ceil(remaining))

    @staticmethod
    def _record(h: dict) -> RefreshTokenRecord:
        fields = {_b(k): _b(v) for k, v in h.items()}
        return RefreshTokenRecord(
            id=fields["id"],
            user_id=int(fields["user_id"]),
            token=fields["token"],
            expires_at=_from_ts(fields["expires_at"]),
            created_at=_from_ts(fields["created_at"]),
        )

    # -------------------- API ------------------------

    def create(self, record: RefreshTokenRecord) -> None:
        """
        Insert the record before the token is handed to the client.

        :raises DuplicateTokenError: If ``record.id`` is already registered.
        :raises RefreshStoreError: On Redis failures.
        """
        k_tok = self._kt(record.token)
        k_id = self._kid(record.id)
        ttl = self._ttl(record.expires_at)
        try:
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(k_id)
                        if p.exists(k_id):
                            p.unwatch()
                            raise DuplicateTokenError(record.id)
                        p.multi()
                        p.hset(
                            k_tok,
                            mapping={
                                "id": record.id,
                                "user_id": str(record.user_id),
                                "token": record.token,
                                "expires_at": str(_to_ts(record.expires_at)),
                                "created_at": str(_to_ts(record.created_at)),
                            },
                        )
                        p.expire(k_tok, ttl)
                        p.set(k_id, self._digest(record.token), ex=ttl)
                        p.execute()
                    return
                except WatchError:
                    # Concurrent create with the same id; re-check
                    continue
        except RedisError as exc:
            raise RefreshStoreError(f"Redis create failed: {exc}") from exc

    def get(self, token: str) -> RefreshTokenRecord:
        try:
            h = self.r.hgetall(self._kt(token))
        except RedisError as exc:
            raise RefreshStoreError(f"Redis get failed: {exc}") from exc
        if not h:
            raise NotFoundError("RefreshToken", "token")
        return self._record(h)

    def delete(self, token: str) -> None:
        self.take(token)

    def take(self, token: str) -> RefreshTokenRecord | None:
        """
        Atomically read and delete the record (WATCH/MULTI/EXEC).

        If another client deletes the record between the read and the
        ``EXEC``, the transaction aborts and the retry observes it as gone.
        """
        k_tok = self._kt(token)
        try:
            while True:
                try:
                    with self.r.pipeline() as p:
                        p.watch(k_tok)
                        h = p.hgetall(k_tok)
                        if not h:
                            p.unwatch()
                            return None
                        record = self._record(h)
                        p.multi()
                        p.delete(k_tok)
                        p.delete(self._kid(record.id))
                        deleted, _ = p.execute()
                    return record if deleted else None
                except WatchError:
                    continue
        except RedisError as exc:
            raise RefreshStoreError(f"Redis take failed: {exc}") from exc

    def purge_expired(self, now: datetime | None = None) -> int:
        """Expired records carry a TTL and vanish on their own; nothing to purge."""
        return 0

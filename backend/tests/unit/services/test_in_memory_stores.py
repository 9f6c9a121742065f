import threading
from datetime import UTC, datetime, timedelta

import pytest
from authority.services._shared.errors import (
    DuplicateTokenError,
    NoActiveKeyError,
    NotFoundError,
    RotationFailedError,
)
from authority.services._shared.ports import (
    InMemoryRefreshTokenStore,
    InMemorySigningKeyStore,
    RefreshTokenRecord,
)

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def _record(token: str = "tok-1", rid: str = "rid-1", *, ttl: timedelta = timedelta(hours=1)):
    return RefreshTokenRecord(
        id=rid, user_id=42, token=token, expires_at=NOW + ttl, created_at=NOW
    )


class TestInMemoryRefreshTokenStore:
    def test_create_then_get(self):
        store = InMemoryRefreshTokenStore()
        rec = _record()
        store.create(rec)
        assert store.get("tok-1") == rec

    def test_duplicate_id_is_rejected(self):
        store = InMemoryRefreshTokenStore()
        store.create(_record())
        with pytest.raises(DuplicateTokenError):
            store.create(_record(token="tok-2"))

    def test_get_missing_raises_not_found(self):
        with pytest.raises(NotFoundError):
            InMemoryRefreshTokenStore().get("nope")

    def test_delete_is_idempotent_and_frees_id(self):
        store = InMemoryRefreshTokenStore()
        store.create(_record())
        store.delete("tok-1")
        store.delete("tok-1")
        assert len(store) == 0
        store.create(_record())

    def test_take_returns_record_once(self):
        store = InMemoryRefreshTokenStore()
        rec = _record()
        store.create(rec)
        assert store.take("tok-1") == rec
        assert store.take("tok-1") is None

    def test_concurrent_take_has_single_winner(self):
        store = InMemoryRefreshTokenStore()
        store.create(_record())
        barrier = threading.Barrier(16)
        winners = []

        def _take():
            barrier.wait()
            if store.take("tok-1") is not None:
                winners.append(1)

        threads = [threading.Thread(target=_take) for _ in range(16)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=10)
        assert winners == [1]

    def test_purge_expired_only_removes_expired(self):
        store = InMemoryRefreshTokenStore()
        store.create(_record("old", "r-old", ttl=timedelta(minutes=1)))
        store.create(_record("new", "r-new", ttl=timedelta(days=1)))

        removed = store.purge_expired(NOW + timedelta(hours=1))

        assert removed == 1
        assert store.take("old") is None
        assert store.take("new") is not None


class TestInMemorySigningKeyStore:
    def test_starts_with_one_active_key(self):
        store = InMemorySigningKeyStore()
        keys = store.list_keys()
        assert len(keys) == 1
        assert keys[0].active

    def test_rotation_keeps_history_and_single_active(self):
        clock = iter(NOW + timedelta(minutes=i) for i in range(10))
        store = InMemorySigningKeyStore(clock=lambda: next(clock))
        first = store.current_key()

        second = store.rotate()
        third = store.rotate()

        keys = store.list_keys()
        assert [k.id for k in keys] == [third.id, second.id, first.id]
        assert [k.active for k in keys] == [True, False, False]
        assert store.get_key(first.kid).retired_at == NOW + timedelta(minutes=1)

    def test_failed_rotation_leaves_current_key(self):
        secrets = iter(["a" * 64])

        def _secret():
            return next(secrets)

        store = InMemorySigningKeyStore(secret_factory=_secret)
        with pytest.raises(RotationFailedError):
            store.rotate()
        assert store.current_key().secret == "a" * 64
        assert len(store.list_keys()) == 1

    def test_get_key_unknown(self):
        assert InMemorySigningKeyStore().get_key("404") is None

    def test_empty_store_has_no_active_key(self):
        store = InMemorySigningKeyStore()
        store._keys = ()
        with pytest.raises(NoActiveKeyError):
            store.current_key()

# tests/unit/services/test_token_authority.py
from __future__ import annotations

import threading
from datetime import UTC, datetime, timedelta

import jwt
import pytest
from authority.services._shared.errors import (
    InvalidCredentialsError,
    InvalidTokenError,
    PersistenceFailedError,
    RefreshStoreError,
    SigningUnavailableError,
    TokenExpiredError,
    TokenMismatchError,
    UnknownUserError,
)
from authority.services._shared.ports import RefreshTokenRecord
from authority.services.auth.dto import AuthTokenConfig, LoginIn, RefreshIn, TokenPair
from authority.services.auth.service import TokenAuthority
from freezegun import freeze_time

ALICE = LoginIn(username="alice", password="wonderland")


def _claims(token: str, secret: str) -> dict:
    return jwt.decode(token, secret, algorithms=["HS256"])


# ------------------------------ Issuance ---------------------------------- #
def test_login_issues_pair_bound_to_user(authority, key_store, refresh_store, refresh_secret):
    """Both tokens carry the resolved user id; the refresh record is stored."""
    pair = authority.login(ALICE)

    assert isinstance(pair, TokenPair)
    access = _claims(pair.access_token, key_store.current_key().secret)
    refresh = _claims(pair.refresh_token, refresh_secret)
    assert access["user_id"] == 42
    assert access["authorized"] is True
    assert access["access_uuid"] == pair.access_id
    assert refresh["user_id"] == 42
    assert refresh["refresh_uuid"] == pair.refresh_id

    record = refresh_store.get(pair.refresh_token)
    assert record.id == pair.refresh_id
    assert record.user_id == 42


def test_access_token_header_names_signing_key(authority, key_store):
    pair = authority.login(ALICE)
    header = jwt.get_unverified_header(pair.access_token)
    assert header["alg"] == "HS256"
    assert header["kid"] == key_store.current_key().kid


def test_expiries_follow_configured_lifetimes(identities, key_store, refresh_store, refresh_secret):
    now = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
    cfg = AuthTokenConfig(access_expires=timedelta(minutes=5), refresh_expires=timedelta(hours=1))
    svc = TokenAuthority(
        identities=identities,
        key_store=key_store,
        refresh_store=refresh_store,
        refresh_secret=refresh_secret,
        token_cfg=cfg,
        clock=lambda: now,
    )
    pair = svc.generate_tokens(identities.find_by_id(42))
    assert pair.access_expires_at == now + timedelta(minutes=5)
    assert pair.refresh_expires_at == now + timedelta(hours=1)


def test_unknown_user_and_wrong_password_are_indistinguishable(authority):
    with pytest.raises(InvalidCredentialsError) as unknown:
        authority.login(LoginIn(username="mallory", password="wonderland"))
    with pytest.raises(InvalidCredentialsError) as wrong:
        authority.login(LoginIn(username="alice", password="looking-glass"))
    assert str(unknown.value) == str(wrong.value)


def test_issuance_fails_when_no_signing_key(identities, refresh_store, refresh_secret):
    class BrokenKeys:
        def current_key(self):
            raise RuntimeError("db down")

    svc = TokenAuthority(
        identities=identities,
        key_store=BrokenKeys(),
        refresh_store=refresh_store,
        refresh_secret=refresh_secret,
    )
    with pytest.raises(SigningUnavailableError):
        svc.login(ALICE)
    assert len(refresh_store) == 0


def test_issuance_aborts_when_refresh_record_cannot_be_stored(identities, key_store, refresh_secret):
    class FailingStore:
        def create(self, record):
            raise RefreshStoreError("redis down")

    svc = TokenAuthority(
        identities=identities,
        key_store=key_store,
        refresh_store=FailingStore(),
        refresh_secret=refresh_secret,
    )
    with pytest.raises(PersistenceFailedError):
        svc.login(ALICE)


# ----------------------------- Verification ------------------------------- #
def test_round_trip_verification_returns_issued_user(authority):
    pair = authority.login(ALICE)
    claims = authority.verify_access_token(pair.access_token)
    assert claims.user_id == 42
    assert claims.access_id == pair.access_id


def test_rotation_invalidates_outstanding_access_tokens(authority, key_store):
    pair = authority.login(ALICE)
    key_store.rotate()
    with pytest.raises(InvalidTokenError):
        authority.verify_access_token(pair.access_token)


def test_expired_token_is_expired_not_invalid(identities, key_store, refresh_store, refresh_secret):
    past = datetime.now(UTC) - timedelta(hours=1)
    svc = TokenAuthority(
        identities=identities,
        key_store=key_store,
        refresh_store=refresh_store,
        refresh_secret=refresh_secret,
        clock=lambda: past,
    )
    pair = svc.login(ALICE)
    with pytest.raises(TokenExpiredError):
        svc.verify_access_token(pair.access_token)


def test_tampered_token_is_invalid(authority):
    pair = authority.login(ALICE)
    head, payload, sig = pair.access_token.split(".")
    flipped = "B" if sig[0] == "A" else "A"
    forged = ".".join([head, payload, flipped + sig[1:]])
    with pytest.raises(InvalidTokenError):
        authority.verify_access_token(forged)


@pytest.mark.parametrize("garbage", ["", "not-a-jwt", "a.b.c"])
def test_malformed_token_is_invalid(authority, garbage):
    with pytest.raises(InvalidTokenError):
        authority.verify_access_token(garbage)


def test_unsigned_token_is_rejected(authority, key_store):
    """``alg: none`` must never be accepted, even with valid-looking claims."""
    exp = int((datetime.now(UTC) + timedelta(minutes=5)).timestamp())
    payload = {"access_uuid": "x", "user_id": 42, "authorized": True, "exp": exp}
    token = jwt.encode(payload, None, algorithm="none", headers={"kid": key_store.current_key().kid})
    with pytest.raises(InvalidTokenError):
        authority.verify_access_token(token)


def test_other_hmac_algorithm_is_rejected(authority, key_store):
    key = key_store.current_key()
    exp = int((datetime.now(UTC) + timedelta(minutes=5)).timestamp())
    payload = {"access_uuid": "x", "user_id": 42, "authorized": True, "exp": exp}
    token = jwt.encode(payload, key.secret, algorithm="HS512", headers={"kid": key.kid})
    with pytest.raises(InvalidTokenError):
        authority.verify_access_token(token)


def test_refresh_token_is_not_an_access_token(authority):
    pair = authority.login(ALICE)
    with pytest.raises(InvalidTokenError):
        authority.verify_access_token(pair.refresh_token)


def test_verification_does_not_touch_refresh_store(authority, refresh_store):
    pair = authority.login(ALICE)
    before = len(refresh_store)
    authority.verify_access_token(pair.access_token)
    assert len(refresh_store) == before


def test_grace_window_accepts_recently_retired_key(identities, key_store, refresh_store, refresh_secret):
    svc = TokenAuthority(
        identities=identities,
        key_store=key_store,
        refresh_store=refresh_store,
        refresh_secret=refresh_secret,
        token_cfg=AuthTokenConfig(key_grace_period=timedelta(seconds=60)),
    )
    with freeze_time("2026-05-01 09:00:00") as frozen:
        pair = svc.login(ALICE)
        key_store.rotate()

        frozen.tick(timedelta(seconds=30))
        assert svc.verify_access_token(pair.access_token).user_id == 42

        frozen.tick(timedelta(seconds=31))
        with pytest.raises(InvalidTokenError):
            svc.verify_access_token(pair.access_token)


def test_unknown_key_id_is_invalid_even_with_grace(identities, key_store, refresh_store, refresh_secret):
    svc = TokenAuthority(
        identities=identities,
        key_store=key_store,
        refresh_store=refresh_store,
        refresh_secret=refresh_secret,
        token_cfg=AuthTokenConfig(key_grace_period=timedelta(minutes=5)),
    )
    exp = int((datetime.now(UTC) + timedelta(minutes=5)).timestamp())
    payload = {"access_uuid": "x", "user_id": 42, "authorized": True, "exp": exp}
    token = jwt.encode(payload, "whatever", algorithm="HS256", headers={"kid": "999"})
    with pytest.raises(InvalidTokenError):
        svc.verify_access_token(token)


# ------------------------------- Refresh ---------------------------------- #
def test_refresh_is_single_use(authority):
    pair = authority.login(ALICE)
    authority.refresh(RefreshIn(refresh_token=pair.refresh_token))
    with pytest.raises(InvalidTokenError):
        authority.refresh(RefreshIn(refresh_token=pair.refresh_token))


def test_alice_refresh_scenario(authority):
    """alice (42) logs in, refreshes once, and cannot replay the first token."""
    p1 = authority.login(ALICE)
    p2 = authority.refresh(RefreshIn(refresh_token=p1.refresh_token))

    assert p2.refresh_id != p1.refresh_id
    assert authority.verify_access_token(p2.access_token).user_id == 42
    with pytest.raises(InvalidTokenError):
        authority.refresh(RefreshIn(refresh_token=p1.refresh_token))


def test_refresh_with_never_persisted_token_fails(authority, refresh_secret):
    exp = int((datetime.now(UTC) + timedelta(days=1)).timestamp())
    token = jwt.encode(
        {"refresh_uuid": "ghost", "user_id": 42, "exp": exp}, refresh_secret, algorithm="HS256"
    )
    with pytest.raises(InvalidTokenError):
        authority.refresh(RefreshIn(refresh_token=token))


def test_refresh_rejects_access_token(authority):
    pair = authority.login(ALICE)
    with pytest.raises(InvalidTokenError):
        authority.refresh(RefreshIn(refresh_token=pair.access_token))


def test_expired_refresh_token_is_expired(identities, key_store, refresh_store, refresh_secret):
    long_ago = datetime.now(UTC) - timedelta(days=30)
    svc = TokenAuthority(
        identities=identities,
        key_store=key_store,
        refresh_store=refresh_store,
        refresh_secret=refresh_secret,
        clock=lambda: long_ago,
    )
    pair = svc.login(ALICE)
    with pytest.raises(TokenExpiredError):
        svc.refresh(RefreshIn(refresh_token=pair.refresh_token))


def test_refresh_survives_access_key_rotation(authority, key_store):
    pair = authority.login(ALICE)
    key_store.rotate()
    new_pair = authority.refresh(RefreshIn(refresh_token=pair.refresh_token))
    assert authority.verify_access_token(new_pair.access_token).user_id == 42


def test_mismatched_record_fails_and_is_consumed(authority, refresh_store):
    pair = authority.login(ALICE)
    original = refresh_store.take(pair.refresh_token)
    refresh_store.create(
        RefreshTokenRecord(
            id="substituted",
            user_id=original.user_id,
            token=original.token,
            expires_at=original.expires_at,
            created_at=original.created_at,
        )
    )

    with pytest.raises(TokenMismatchError):
        authority.refresh(RefreshIn(refresh_token=pair.refresh_token))
    with pytest.raises(InvalidTokenError):
        authority.refresh(RefreshIn(refresh_token=pair.refresh_token))


def test_refresh_for_deleted_user_fails(authority, identities):
    pair = authority.login(ALICE)
    identities.remove_user(42)
    with pytest.raises(UnknownUserError):
        authority.refresh(RefreshIn(refresh_token=pair.refresh_token))


def test_refresh_store_outage_is_persistence_failure(authority, refresh_store):
    pair = authority.login(ALICE)

    def _down(token):
        raise RefreshStoreError("redis down")

    refresh_store.take = _down
    with pytest.raises(PersistenceFailedError):
        authority.refresh(RefreshIn(refresh_token=pair.refresh_token))


def test_concurrent_refresh_yields_exactly_one_pair(authority):
    pair = authority.login(ALICE)
    workers = 8
    barrier = threading.Barrier(workers)
    results: list[object] = []
    lock = threading.Lock()

    def _redeem():
        barrier.wait()
        try:
            outcome: object = authority.refresh(RefreshIn(refresh_token=pair.refresh_token))
        except InvalidTokenError as exc:
            outcome = exc
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=_redeem) for _ in range(workers)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=30)

    pairs = [r for r in results if isinstance(r, TokenPair)]
    assert len(results) == workers
    assert len(pairs) == 1


def test_missing_refresh_secret_is_rejected(identities, key_store, refresh_store):
    with pytest.raises(ValueError):
        TokenAuthority(
            identities=identities,
            key_store=key_store,
            refresh_store=refresh_store,
            refresh_secret="",
        )

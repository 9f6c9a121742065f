import pytest
from authority.models.signing_key import SigningKey
from authority.repositories.signing_key import SigningKeyRepository
from authority.services._shared.errors import RotationFailedError
from authority.services.keys.service import SigningKeyService
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from tests.factories.signing_key import SigningKeyFactory


def _active_count(session) -> int:
    stmt = select(func.count()).select_from(SigningKey).where(SigningKey.active.is_(True))
    return session.execute(stmt).scalar_one()


class TestSigningKeyService:
    """SQL-backed signing key store: initialization, rotation and lookups."""

    @pytest.fixture()
    def service(self, session) -> SigningKeyService:
        return SigningKeyService()

    # --------------------------------------------------------------------- #
    # Initialization
    # --------------------------------------------------------------------- #

    def test_construction_creates_exactly_one_active_key(self, service, session):
        key = service.current_key()

        assert key.active is True
        assert key.retired_at is None
        assert len(key.secret) >= 32
        assert _active_count(session) == 1

    def test_second_instance_reuses_existing_key(self, service):
        first = service.current_key()
        again = SigningKeyService().current_key()
        assert again.id == first.id
        assert again.secret == first.secret

    def test_returned_timestamps_are_utc_aware(self, service):
        service.rotate()
        retired = service.list_keys()[1]
        assert retired.created_at.tzinfo is not None
        assert retired.retired_at.tzinfo is not None

    # --------------------------------------------------------------------- #
    # Rotation
    # --------------------------------------------------------------------- #

    def test_rotate_retires_previous_key(self, service):
        before = service.current_key()

        after = service.rotate()

        assert after.id != before.id
        assert after.secret != before.secret
        assert service.current_key().id == after.id
        old = service.get_key(before.id)
        assert old.active is False
        assert old.retired_at is not None

    def test_repeated_rotation_keeps_single_active_key(self, service, session):
        for _ in range(5):
            service.rotate()

        keys = service.list_keys()
        assert len(keys) == 6
        assert [k.active for k in keys].count(True) == 1
        assert _active_count(session) == 1

    def test_history_is_newest_first(self, service):
        service.rotate()
        service.rotate()

        ids = [k.id for k in service.list_keys()]
        assert ids == sorted(ids, reverse=True)
        assert service.list_keys()[0].active is True

    def test_failed_rotation_keeps_previous_key_active(self, service, session, monkeypatch):
        before = service.current_key()

        def _boom(self, **kwargs):
            raise SQLAlchemyError("disk full")

        monkeypatch.setattr(SigningKeyRepository, "create_active", _boom)
        with pytest.raises(RotationFailedError):
            service.rotate()

        current = service.current_key()
        assert current.id == before.id
        assert current.active is True
        assert _active_count(session) == 1

    def test_secret_generation_failure_is_rotation_failure(self, session):
        calls = iter(["initial-secret-value-0123456789abcdef"])

        def _secrets():
            return next(calls)

        service = SigningKeyService(secret_factory=_secrets)
        with pytest.raises(RotationFailedError):
            service.rotate()
        assert service.current_key().secret == "initial-secret-value-0123456789abcdef"

    # --------------------------------------------------------------------- #
    # Lookups
    # --------------------------------------------------------------------- #

    def test_get_key_accepts_kid_strings(self, service):
        key = service.current_key()
        assert service.get_key(key.kid) == key

    @pytest.mark.parametrize("kid", ["999999", "not-a-number", None])
    def test_get_key_unknown_ids_return_none(self, service, kid):
        assert service.get_key(kid) is None

    def test_database_refuses_second_active_key(self, service, session):
        with pytest.raises(IntegrityError):
            SigningKeyFactory(active=True)
        session.rollback()
        assert _active_count(session) == 1

    def test_retired_rows_do_not_collide(self, service, session):
        SigningKeyFactory.create_batch(3)
        assert _active_count(session) == 1
        assert len(service.list_keys()) == 4

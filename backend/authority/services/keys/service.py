"""
SigningKeyService
=================

SQL-backed :class:`~authority.services._shared.ports.SigningKeyStore`.

Every read goes to the database, so all workers of a deployment observe the
same active key as soon as a rotation commits.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from authority.models.signing_key import SigningKey
from authority.services._shared.base import BaseService
from authority.services._shared.errors import (
    KeyStoreError,
    NoActiveKeyError,
    RotationFailedError,
)
from authority.services._shared.ports import SigningKeyStore, SigningKeyView, generate_secret

log = logging.getLogger(__name__)


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; every stored value is UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_view(row: SigningKey) -> SigningKeyView:
    return SigningKeyView(
        id=row.id,
        secret=row.secret,
        active=row.active,
        created_at=_aware(row.created_at),
        retired_at=_aware(row.retired_at),
    )


class SigningKeyService(BaseService, SigningKeyStore):
    """
    Application service owning the ``signing_keys`` table.

    Responsibilities
    ----------------
    - Guarantee an active key exists once constructed.
    - Rotate atomically: retire the active key and insert its successor in
      one transaction, rolled back as a whole on failure.
    - Serve key lookups for signing and verification.

    :param secret_factory: Source of new secret material.
    :param ensure_key: Create the first key on construction (default ``True``).
    """

    def __init__(
        self,
        *,
        secret_factory: Callable[[], str] = generate_secret,
        ensure_key: bool = True,
    ) -> None:
        super().__init__()
        self._secret_factory = secret_factory
        if ensure_key:
            self.ensure_active_key()

    # ------------------------------------------------------------------ #
    # Initialization
    # ------------------------------------------------------------------ #

    def ensure_active_key(self) -> SigningKeyView:
        """
        Return the active key, generating one when the table has none.

        A concurrent initializer losing the unique-index race re-reads the
        winner's key instead of failing.

        :raises KeyStoreError: On database failures.
        """
        try:
            with self.rw_uow() as uow:
                row = uow.signing_keys.get_active()
                if row is None:
                    row = uow.signing_keys.create_active(
                        secret=self._secret_factory(), created_at=self.now_utc()
                    )
                    log.info("signing_key.initialized", extra={"key_id": row.id})
                return _to_view(row)
        except IntegrityError:
            log.info("signing_key.initialized_concurrently")
            return self.current_key()
        except SQLAlchemyError as exc:
            raise KeyStoreError(f"Could not initialize signing keys: {exc}") from exc

    # ------------------------------------------------------------------ #
    # SigningKeyStore
    # ------------------------------------------------------------------ #

    def current_key(self) -> SigningKeyView:
        """
        Return the active key.

        :raises NoActiveKeyError: If no key is active.
        :raises KeyStoreError: On database failures.
        """
        try:
            with self.ro_uow() as uow:
                row = uow.signing_keys.get_active()
                view = _to_view(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise KeyStoreError(f"Could not read the active signing key: {exc}") from exc
        if view is None:
            raise NoActiveKeyError()
        return view

    def rotate(self) -> SigningKeyView:
        """
        Retire the active key and activate a freshly generated one.

        :returns: The new active key.
        :raises RotationFailedError: If the transaction could not be committed.
            The previously active key stays active.
        """
        try:
            secret = self._secret_factory()
        except Exception as exc:
            raise RotationFailedError(f"Could not generate a new key: {exc}") from exc

        try:
            with self.rw_uow() as uow:
                now = self.now_utc()
                uow.signing_keys.deactivate_active(retired_at=now)
                row = uow.signing_keys.create_active(secret=secret, created_at=now)
                view = _to_view(row)
        except SQLAlchemyError as exc:
            log.error("signing_key.rotation_failed", exc_info=True)
            raise RotationFailedError(f"Signing key rotation failed: {exc}") from exc

        log.info("signing_key.rotated", extra={"key_id": view.id})
        return view

    def get_key(self, key_id: int | str) -> SigningKeyView | None:
        """Look up any key, active or retired. Non-numeric ids are simply unknown."""
        try:
            pk = int(key_id)
        except (TypeError, ValueError):
            return None
        try:
            with self.ro_uow() as uow:
                row = uow.signing_keys.get(pk)
                return _to_view(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise KeyStoreError(f"Could not read signing key {pk}: {exc}") from exc

    def list_keys(self) -> list[SigningKeyView]:
        """Return the key history, newest first."""
        try:
            with self.ro_uow() as uow:
                return [_to_view(row) for row in uow.signing_keys.list()]
        except SQLAlchemyError as exc:
            raise KeyStoreError(f"Could not list signing keys: {exc}") from exc

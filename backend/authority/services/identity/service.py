"""
IdentityService
===============

SQL-backed :class:`~authority.services._shared.ports.IdentityResolver`.

Read-only from the authority's viewpoint: credentials are looked up, never
created, changed or verified here. ``provision_user`` exists for local
seeding only.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from authority.models.user import User
from authority.repositories.user import UserRepository
from authority.services._shared.base import BaseService
from authority.services._shared.errors import ConflictError
from authority.services._shared.ports import CredentialRecord, IdentityResolver


def _to_record(user: User) -> CredentialRecord:
    return CredentialRecord(id=user.id, username=user.username, password_hash=user.password_hash)


class IdentityService(BaseService, IdentityResolver):
    """Resolve credential records from the ``users`` table."""

    def find_by_username(self, username: str) -> CredentialRecord | None:
        """
        Resolve a credential record by login name.

        :param username: Login name as supplied by the caller.
        :type username: str
        :returns: Credential record, or ``None`` when no such user exists.
        :rtype: CredentialRecord | None
        """
        with self.ro_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_by_username(username)
            return _to_record(user) if user is not None else None

    def find_by_id(self, user_id: int) -> CredentialRecord | None:
        """
        Resolve a credential record by numeric identity.

        :param user_id: Identity embedded in tokens.
        :type user_id: int
        :returns: Credential record, or ``None`` when the user no longer exists.
        :rtype: CredentialRecord | None
        """
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            return _to_record(user) if user is not None else None

    def provision_user(self, *, username: str, password: str) -> tuple[CredentialRecord, bool]:
        """
        Create a user unless the username is taken.

        :returns: ``(record, created)``; ``created`` is ``False`` when the
            user already existed (its password is left untouched).
        :raises ConflictError: If a concurrent insert won the unique index.
        """
        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            existing = repo.get_by_username(username)
            if existing is not None:
                return _to_record(existing), False
            try:
                user = repo.add(User(username=username, password=password))
            except IntegrityError as exc:
                raise ConflictError("User", "username already in use") from exc
            return _to_record(user), True

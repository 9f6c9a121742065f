from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from werkzeug.security import generate_password_hash


@dataclass(frozen=True, slots=True)
class CredentialRecord:
    """
    Identity as seen by the token authority.

    :ivar id: Opaque numeric identity embedded in tokens.
    :ivar username: Login name.
    :ivar password_hash: Stored password hash (werkzeug format).
    """

    id: int
    username: str
    password_hash: str

    def __repr__(self) -> str:
        return f"<CredentialRecord id={self.id} username={self.username!r}>"


class IdentityResolver(Protocol):
    """Port to the user directory. Read-only from the authority's viewpoint."""

    def find_by_username(self, username: str) -> CredentialRecord | None: ...

    def find_by_id(self, user_id: int) -> CredentialRecord | None: ...


class InMemoryIdentityResolver(IdentityResolver):
    """Dictionary-backed directory used in tests and local demos."""

    def __init__(self, records: list[CredentialRecord] | None = None) -> None:
        self._by_id: dict[int, CredentialRecord] = {}
        for record in records or []:
            self._by_id[record.id] = record

    def add_user(self, *, user_id: int, username: str, password: str) -> CredentialRecord:
        """Hash ``password`` and register a credential record."""
        record = CredentialRecord(
            id=user_id,
            username=username,
            password_hash=generate_password_hash(password),
        )
        self._by_id[user_id] = record
        return record

    def remove_user(self, user_id: int) -> None:
        self._by_id.pop(user_id, None)

    def find_by_username(self, username: str) -> CredentialRecord | None:
        for record in self._by_id.values():
            if record.username == username:
                return record
        return None

    def find_by_id(self, user_id: int) -> CredentialRecord | None:
        return self._by_id.get(user_id)

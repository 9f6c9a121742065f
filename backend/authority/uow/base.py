"""Transaction boundary used by the signing key service."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from authority.repositories import SigningKeyRepository, UserRepository


class UnitOfWork(ABC):
    """Context manager that commits on a clean exit and rolls back otherwise.

    Rotation retires the current key and inserts its successor inside one
    unit, so readers observe either the old active key or the new one.
    """

    users: UserRepository
    signing_keys: SigningKeyRepository

    @abstractmethod
    def __enter__(self) -> UnitOfWork: ...

    @abstractmethod
    def __exit__(self, exc_type, exc, tb) -> None: ...

    @abstractmethod
    def commit(self) -> None: ...

    @abstractmethod
    def rollback(self) -> None: ...

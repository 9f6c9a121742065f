"""Credential lookups by login name."""

from __future__ import annotations

from authority.models.user import User
from authority.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Finds user rows. Password checks happen in the token authority."""

    model = User

    def get_by_username(self, username: str) -> User | None:
        """
        :param username: Login name; surrounding whitespace is ignored.
        :returns: The matching user or ``None``.
        """
        return self.first_where(User.username == username.strip())

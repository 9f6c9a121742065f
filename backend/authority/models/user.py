"""Login identities checked by ``/auth/login``."""

from __future__ import annotations

from typing import NoReturn

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, validates
from werkzeug.security import generate_password_hash

from authority.core.extensions import db

from .base import CreatedAtMixin, PKMixin, ReprMixin


class User(PKMixin, ReprMixin, CreatedAtMixin, db.Model):
    """
    Credential record resolved by username (login) or id (refresh).

    Rows belong to the user directory; the authority only reads them, except
    for ``flask seed users`` in development.

    Fields
    ------
    username : str
        Unique login name, stored trimmed.
    password_hash : str
        Werkzeug hash. Set it through the write-only ``password`` attribute.
    """

    __tablename__ = "users"
    __repr_attrs__ = ("username",)

    username: Mapped[str] = mapped_column(String(50), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)

    __table_args__ = (UniqueConstraint("username", name="uq_users_username"),)

    @property
    def password(self) -> NoReturn:
        raise AttributeError("Password is write-only.")

    @password.setter
    def password(self, raw: str) -> None:
        """
        :raises ValueError: If ``raw`` is empty or not a string.
        """
        if not raw or not isinstance(raw, str):
            raise ValueError("Password must be a non-empty string.")
        self.password_hash = generate_password_hash(raw)

    @validates("username")
    def _strip_username(self, key: str, value: str) -> str:
        cleaned = value.strip() if isinstance(value, str) else ""
        if not cleaned:
            raise ValueError("Username is required.")
        return cleaned

"""Signing key history. Exactly one row is active once the store is initialized."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Index, String, text
from sqlalchemy.orm import Mapped, mapped_column

from authority.core.extensions import db

from .base import CreatedAtMixin, PKMixin, ReprMixin


class SigningKey(PKMixin, ReprMixin, CreatedAtMixin, db.Model):
    """
    HMAC secret used to sign access tokens.

    Fields
    ------
    secret : str
        Random secret material. Never logged or returned by the API.
    active : bool
        ``True`` for the key currently used to sign.
    retired_at : datetime | None
        When rotation superseded this key; ``None`` while active.

    Notes
    -----
    ``uq_signing_keys_active`` is a partial unique index over active rows, so
    the database itself refuses a second active key if two rotations race.
    Rows are never deleted.
    """

    __tablename__ = "signing_keys"
    __repr_attrs__ = ("active",)

    secret: Mapped[str] = mapped_column(String(128), nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    retired_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_signing_keys_active",
            "active",
            unique=True,
            sqlite_where=text("active = 1"),
            postgresql_where=text("active"),
        ),
    )

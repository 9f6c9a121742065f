"""Signing key repository: active-key lookup and retirement."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update

from authority.models.signing_key import SigningKey
from authority.repositories.base import BaseRepository


class SigningKeyRepository(BaseRepository[SigningKey]):
    """Persistence-only repository for :class:`SigningKey`."""

    model = SigningKey

    # audit listings show the newest key first
    newest_first = True

    def get_active(self) -> SigningKey | None:
        """Return the active key row, or ``None`` before initialization."""
        return self.first_where(SigningKey.active.is_(True))

    def deactivate_active(self, *, retired_at: datetime) -> int:
        """Mark every active key as retired in a single ``UPDATE``.

        :param retired_at: Retirement timestamp to stamp on the rows.
        :returns: Number of rows updated (``0`` or ``1`` in a healthy table).
        """
        stmt = (
            update(SigningKey)
            .where(SigningKey.active.is_(True))
            .values(active=False, retired_at=retired_at)
            .execution_options(synchronize_session="fetch")
        )
        result = self.session.execute(stmt)
        return int(result.rowcount or 0)

    def create_active(self, *, secret: str, created_at: datetime) -> SigningKey:
        """Insert a new active key and flush so its id is assigned."""
        return self.add(SigningKey(secret=secret, active=True, created_at=created_at))

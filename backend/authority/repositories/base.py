"""Shared SQLAlchemy 2.x repository plumbing.

Repositories only read and stage rows. Transactions belong to the unit of
work and token or key policy belongs to the services.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, ClassVar, Generic, TypeVar, cast

from sqlalchemy import ColumnElement, select
from sqlalchemy.orm import Session

from authority.core.extensions import db

E = TypeVar("E")


class BaseRepository(Generic[E]):
    """Repository over one mapped ``model`` with an ``id`` primary key.

    ``newest_first`` flips the ordering of :meth:`list` to descending ids.
    """

    model: type[E]
    newest_first: ClassVar[bool] = False

    def __init__(self, session: Session | None = None) -> None:
        self._session = session

    @property
    def session(self) -> Session:
        """The unit of work's session, or the Flask-scoped one outside a unit."""
        return self._session if self._session is not None else cast(Session, db.session)

    def first_where(self, *criteria: ColumnElement[bool]) -> E | None:
        stmt = select(self.model).where(*criteria).limit(1)
        return cast(E | None, self.session.execute(stmt).scalars().first())

    def add(self, instance: E) -> E:
        """Stage ``instance`` and flush so its generated id is available."""
        self.session.add(instance)
        self.session.flush()
        return instance

    def get(self, entity_id: Any) -> E | None:
        return cast(E | None, self.session.get(self.model, entity_id))

    def list(self, *, limit: int | None = None) -> Sequence[E]:
        pk = getattr(self.model, "id")
        stmt = select(self.model).order_by(pk.desc() if self.newest_first else pk.asc())
        if limit is not None:
            stmt = stmt.limit(max(1, int(limit)))
        return list(self.session.execute(stmt).scalars())

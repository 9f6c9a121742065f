"""SQLAlchemy units of work over the Flask-scoped session."""

from __future__ import annotations

import logging
from contextlib import suppress

from sqlalchemy import event
from sqlalchemy.exc import InvalidRequestError
from sqlalchemy.orm import Session, SessionTransaction, scoped_session

from authority.core.extensions import db
from authority.repositories import SigningKeyRepository, UserRepository
from authority.uow.base import UnitOfWork

log = logging.getLogger(__name__)

_DML_VERBS = ("insert", "update", "delete", "alter", "drop", "create", "replace")


class _Repositories:
    """Repositories bound to one session."""

    def __init__(self, session: Session | scoped_session) -> None:
        self.session = session
        self.users = UserRepository(session=session)
        self.signing_keys = SigningKeyRepository(session=session)


class SQLAlchemyUnitOfWork(_Repositories, UnitOfWork):
    """
    Read-write unit: commit on a clean exit, rollback when the block raises.

    A failing commit is rolled back before the error propagates, so the
    session is reusable by the next request or scheduler tick.
    """

    def __init__(self) -> None:
        super().__init__(db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # the session autobegins on the first statement
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is not None:
            self.rollback()
            return
        try:
            self.commit()
        except Exception:
            log.warning("uow.commit_failed", exc_info=True)
            self.rollback()
            raise

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class _WriteGuard:
    """Event listeners that make a session and its connection refuse writes."""

    def __init__(self, session: Session, connection) -> None:
        self._session = session
        self._connection = connection
        self._active = False

    def _block_flush(self, session, flush_context, instances) -> None:
        if session.new or session.dirty or session.deleted:
            raise RuntimeError("Read-only UnitOfWork: ORM flush blocked.")

    def _block_dml(self, conn, cursor, statement, parameters, context, executemany) -> None:
        verb = statement.lstrip().split(None, 1)[0].lower() if statement else ""
        if verb.startswith(_DML_VERBS):
            raise RuntimeError(f"Read-only UnitOfWork: SQL statement blocked: {verb.upper()}")

    def arm(self) -> None:
        if self._active:
            return
        event.listen(self._session, "before_flush", self._block_flush)
        event.listen(self._connection, "before_cursor_execute", self._block_dml)
        self._active = True

    def disarm(self) -> None:
        if not self._active:
            return
        with suppress(InvalidRequestError):
            event.remove(self._session, "before_flush", self._block_flush)
        with suppress(InvalidRequestError):
            event.remove(self._connection, "before_cursor_execute", self._block_dml)
        self._active = False


class SQLAlchemyReadOnlyUnitOfWork(_Repositories, UnitOfWork):
    """
    Read-only unit used for key lookups and identity resolution.

    While open, ORM flushes with pending changes and DML statements raise
    ``RuntimeError``. ``commit()`` always raises.

    Notes
    -----
    If the session already has a transaction (autobegin, or an outer test
    fixture) the unit joins it and leaves the outcome to its owner; otherwise
    it begins its own and rolls it back on exit.
    """

    def __init__(self) -> None:
        super().__init__(db.session)
        self._own_txn: SessionTransaction | None = None
        self._guard: _WriteGuard | None = None

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        self._own_txn = None
        try:
            txn = self.session.begin()
        except InvalidRequestError:
            txn = None
        if txn is not None:
            txn.__enter__()
            self._own_txn = txn

        raw = self.session() if isinstance(self.session, scoped_session) else self.session
        self._guard = _WriteGuard(raw, self.session.connection())
        self._guard.arm()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            txn, self._own_txn = self._own_txn, None
            if txn is not None:
                self.session.rollback()
                txn.__exit__(exc_type, exc, tb)
        finally:
            if self._guard is not None:
                self._guard.disarm()
                self._guard = None

    def commit(self) -> None:
        """
        :raises RuntimeError: Always; this unit never writes.
        """
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

"""Factories persist through whichever session the current test is using."""

from __future__ import annotations

import factory
from sqlalchemy.orm import Session

_bound: Session | None = None


def bind_session(session: Session | None) -> None:
    global _bound
    _bound = session


def current_session() -> Session:
    if _bound is None:
        raise RuntimeError("No factory session bound; request the 'session' fixture.")
    return _bound


class BaseFactory(factory.alchemy.SQLAlchemyModelFactory):
    """Flush instead of commit so rows vanish with the test transaction."""

    class Meta:
        abstract = True
        sqlalchemy_session_factory = current_session
        sqlalchemy_session_persistence = "flush"

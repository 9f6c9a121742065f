"""Common base for the authority's services: units of work, clock, HTTP mapping."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from authority.core import errors as api_errors
from authority.services._shared.errors import (
    AuthenticationError,
    ConflictError,
    InvalidCredentialsError,
    KeyStoreError,
    NotFoundError,
    PersistenceFailedError,
    RefreshStoreError,
    ServiceError,
    SigningUnavailableError,
)
from authority.uow.sqlalchemy_uow import (
    SQLAlchemyReadOnlyUnitOfWork,
    SQLAlchemyUnitOfWork,
)

log = logging.getLogger(__name__)

# Every token failure shares one message so expired, tampered and replayed
# tokens cannot be told apart from outside.
INVALID_CREDENTIALS_MESSAGE = "Invalid credentials"
INVALID_TOKEN_MESSAGE = "Invalid or expired token"

_Translator = Callable[[ServiceError], api_errors.APIError]


def _rejected(message: str) -> _Translator:
    def translate(exc: ServiceError) -> api_errors.APIError:
        log.warning("auth.rejected", extra={"error_code": getattr(exc, "code", None)})
        return api_errors.Unauthorized(message)

    return translate


def _unavailable(exc: ServiceError) -> api_errors.APIError:
    log.error("auth.unavailable: %s", exc)
    return api_errors.ServiceUnavailable()


# First match wins, so subclasses precede their bases.
_TRANSLATIONS: tuple[tuple[type[ServiceError], _Translator], ...] = (
    (InvalidCredentialsError, _rejected(INVALID_CREDENTIALS_MESSAGE)),
    (AuthenticationError, _rejected(INVALID_TOKEN_MESSAGE)),
    (KeyStoreError, _unavailable),
    (SigningUnavailableError, _unavailable),
    (PersistenceFailedError, _unavailable),
    (RefreshStoreError, _unavailable),
    (NotFoundError, lambda exc: api_errors.NotFound(str(exc))),
    (ConflictError, lambda exc: api_errors.Conflict(str(exc))),
)


class BaseService:
    """
    Services reach the database only through a unit of work and report
    failures as :class:`ServiceError`; :meth:`translate_exceptions` turns
    those into HTTP errors at the API edge.
    """

    def rw_uow(self) -> SQLAlchemyUnitOfWork:
        return SQLAlchemyUnitOfWork()

    def ro_uow(self) -> SQLAlchemyReadOnlyUnitOfWork:
        return SQLAlchemyReadOnlyUnitOfWork()

    @staticmethod
    def now_utc() -> datetime:
        """Current time as an aware UTC datetime."""
        return datetime.now(UTC)

    def translate_exceptions(self, exc: Exception) -> Exception:
        """
        Map a service error to the API error the views raise.

        Authentication failures collapse into two opaque 401 messages; the
        precise cause is logged as ``error_code``. Store outages become 503.
        Other service errors become 400. Anything else is returned untouched
        for the generic handler.

        :param exc: Exception caught around a service call.
        :returns: Exception to re-raise.
        """
        if not isinstance(exc, ServiceError):
            return exc
        for kind, translate in _TRANSLATIONS:
            if isinstance(exc, kind):
                return translate(exc)
        return api_errors.APIError(message=str(exc), status_code=400, code="bad_request")

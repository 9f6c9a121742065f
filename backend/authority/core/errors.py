"""Problem Details (RFC 7807) responses for every error the API returns.

Bodies never carry internal causes: which check rejected a token is logged
through ``error_code`` on the service side, not sent to the caller.
"""

from __future__ import annotations

import logging
from http import HTTPStatus
from typing import Any

from flask import Flask, Response, jsonify, request
from marshmallow import ValidationError
from sqlalchemy.exc import OperationalError
from werkzeug.exceptions import HTTPException

from authority.core.logger import ensure_request_id

log = logging.getLogger(__name__)

PROBLEM_MIMETYPE = "application/problem+json"
BEARER_CHALLENGE = 'Bearer realm="authority"'

# Stable codes; HTTPStatus phrases changed across Python releases (422).
STATUS_CODES: dict[int, str] = {
    400: "bad_request",
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    415: "unsupported_media_type",
    422: "unprocessable_entity",
    429: "too_many_requests",
    500: "internal_server_error",
    503: "service_unavailable",
}


def code_for_status(status: int) -> str:
    return STATUS_CODES.get(status, "error")


def build_problem(
    status: int,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """
    Assemble a problem document for the current request.

    :param status: HTTP status code.
    :param code: Machine-readable snake_case code.
    :param message: Client-safe summary, sent as ``detail``.
    :param details: Optional structured extras (validation messages).
    :returns: Problem+JSON mapping with ``request_id`` set.
    """
    problem: dict[str, Any] = {
        "type": "about:blank",
        "title": HTTPStatus(status).phrase,
        "status": status,
        "detail": message,
        "instance": request.path if request else None,
        "code": code,
        "request_id": ensure_request_id(),
    }
    if details:
        problem["details"] = details
    return problem


def problem_response(
    problem: dict[str, Any],
    status: int,
    headers: dict[str, str] | None = None,
) -> tuple[Response, int]:
    """Serialize ``problem`` with the ``application/problem+json`` media type."""
    resp = jsonify(problem)
    resp.mimetype = PROBLEM_MIMETYPE
    if headers:
        resp.headers.update(headers)
    return resp, status


class APIError(Exception):
    """
    Error raised by views and translated services, rendered as a problem.

    Parameters
    ----------
    message : str
        Client-safe description.
    status_code : int, optional
        HTTP status, ``400`` by default.
    code : str, optional
        Machine-readable code, ``"bad_request"`` by default.
    details : dict[str, Any] | None, optional
        Structured payload added under ``details``.
    headers : dict[str, str] | None, optional
        Extra response headers, such as an authentication challenge.
    """

    def __init__(
        self,
        message: str,
        status_code: int = 400,
        code: str = "bad_request",
        details: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = int(status_code)
        self.code = code
        self.details = details or {}
        self.headers = headers or {}

    def to_problem(self) -> dict[str, Any]:
        return build_problem(self.status_code, self.code, self.message, self.details or None)


class Unauthorized(APIError):
    """401 carrying a bearer challenge (RFC 6750)."""

    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(
            message,
            status_code=HTTPStatus.UNAUTHORIZED,
            code="unauthorized",
            headers={"WWW-Authenticate": BEARER_CHALLENGE},
        )


class NotFound(APIError):
    def __init__(self, message: str = "Resource not found") -> None:
        super().__init__(message, status_code=HTTPStatus.NOT_FOUND, code="not_found")


class Conflict(APIError):
    def __init__(self, message: str = "Conflict") -> None:
        super().__init__(message, status_code=HTTPStatus.CONFLICT, code="conflict")


class ServiceUnavailable(APIError):
    """503 when the signing key store or refresh store cannot be reached."""

    def __init__(self, message: str = "Service temporarily unavailable") -> None:
        super().__init__(
            message, status_code=HTTPStatus.SERVICE_UNAVAILABLE, code="service_unavailable"
        )


def _respond(
    status: int,
    code: str,
    message: str,
    *,
    details: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
    exc_info: bool = False,
) -> tuple[Response, int]:
    if status >= 500:
        log.error("request.failed code=%s status=%s", code, status, exc_info=exc_info)
    else:
        log.warning("request.rejected code=%s status=%s", code, status)
    return problem_response(build_problem(status, code, message, details), status, headers)


def init_app(app: Flask) -> None:
    """
    Register the problem handlers on ``app``.

    Notes
    -----
    - 5xx responses are logged as errors (with traceback where one exists),
      4xx as warnings.
    - Database connectivity errors surface as 503, not 500.
    """

    @app.errorhandler(APIError)
    def handle_api_error(err: APIError):
        return _respond(
            err.status_code,
            err.code,
            err.message,
            details=err.details or None,
            headers=err.headers or None,
        )

    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        status = int(err.code or HTTPStatus.INTERNAL_SERVER_ERROR)
        code = code_for_status(status)
        if status == HTTPStatus.NOT_FOUND:
            message = f"Route '{request.path}' not found"
        else:
            message = (err.description or code.replace("_", " ").capitalize()).strip()
        return _respond(status, code, message)

    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        return _respond(
            HTTPStatus.UNPROCESSABLE_ENTITY,
            "validation_error",
            "Validation failed",
            details={"errors": err.messages},
        )

    @app.errorhandler(OperationalError)
    def handle_operational_error(err: OperationalError):
        return _respond(
            HTTPStatus.SERVICE_UNAVAILABLE,
            "service_unavailable",
            "Service temporarily unavailable",
            exc_info=True,
        )

    @app.errorhandler(Exception)
    def handle_unexpected_error(err: Exception):
        return _respond(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            "internal_server_error",
            "Unexpected error",
            exc_info=True,
        )

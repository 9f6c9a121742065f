"""Shared API helpers for request parsing and cross-cutting concerns."""

from __future__ import annotations

import functools
import time
from collections.abc import Callable
from typing import Any, TypeVar

from flask import Response, current_app, g, jsonify, request

from authority.core.errors import Unauthorized
from authority.core.extensions import get_token_authority
from authority.services._shared.errors import ServiceError
from authority.services.auth.dto import AccessClaims

F = TypeVar("F", bound=Callable[..., Any])

BEARER_PREFIX = "bearer "


def json_response(payload: Any, *, status: int = 200) -> Response:
    """Return a JSON response enforcing a consistent MIME type."""

    response = jsonify(payload)
    response.status_code = status
    return response


def timing(func: F) -> F:
    """Decorator capturing handler execution time in milliseconds."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        start = time.perf_counter()
        try:
            return func(*args, **kwargs)
        finally:
            elapsed_ms = (time.perf_counter() - start) * 1000
            request_endpoint = getattr(request, "endpoint", None)
            current_app.logger.debug(
                "request.elapsed",
                extra={"endpoint": request_endpoint, "elapsed_ms": round(elapsed_ms, 2)},
            )

    return wrapper  # type: ignore[return-value]


def bearer_token() -> str:
    """Extract the bearer value from ``Authorization``.

    :raises Unauthorized: If the header is missing or not a bearer credential.
    """
    header = request.headers.get("Authorization", "")
    if not header.lower().startswith(BEARER_PREFIX):
        raise Unauthorized("Missing bearer token")
    token = header[len(BEARER_PREFIX) :].strip()
    if not token:
        raise Unauthorized("Missing bearer token")
    return token


def require_auth(func: F) -> F:
    """Ensure the request carries a valid access token; expose its claims on ``g``."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any):
        token = bearer_token()
        authority = get_token_authority()
        try:
            g.access_claims = authority.verify_access_token(token)
        except ServiceError as exc:
            raise authority.translate_exceptions(exc) from exc
        return func(*args, **kwargs)

    return wrapper  # type: ignore[return-value]


def current_claims() -> AccessClaims:
    """Return the claims stored by :func:`require_auth` for this request."""
    claims = getattr(g, "access_claims", None)
    if claims is None:
        raise Unauthorized()
    return claims

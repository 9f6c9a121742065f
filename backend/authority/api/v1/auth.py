"""Authentication endpoints backed by the token authority."""

from __future__ import annotations

from flask import Blueprint, current_app, request

from authority.api.deps import current_claims, json_response, require_auth, timing
from authority.core.errors import APIError, problem_response
from authority.core.extensions import get_token_authority, limiter
from authority.schemas import (
    AccessClaimsSchema,
    LoginSchema,
    RefreshSchema,
    TokenPairSchema,
    ValidateSchema,
)
from authority.services._shared.errors import ServiceError

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_schema = LoginSchema()
refresh_schema = RefreshSchema()
validate_schema = ValidateSchema()
token_pair_schema = TokenPairSchema()
claims_schema = AccessClaimsSchema()


def _login_rate_limit() -> str:
    return str(current_app.config.get("AUTH_LOGIN_RATE_LIMIT", "5 per minute"))


@bp.post("/login")
@limiter.limit(_login_rate_limit)
@timing
def login():
    """Authenticate credentials and issue an access/refresh token pair."""

    dto = login_schema.load(request.get_json(silent=True) or {})
    authority = get_token_authority()
    try:
        pair = authority.login(dto)
    except ServiceError as exc:
        raise authority.translate_exceptions(exc) from exc
    return json_response({"tokens": token_pair_schema.dump(pair)})


@bp.post("/refresh")
@timing
def refresh():
    """Redeem a refresh token (single use) for a new token pair."""

    dto = refresh_schema.load(request.get_json(silent=True) or {})
    authority = get_token_authority()
    try:
        pair = authority.refresh(dto)
    except ServiceError as exc:
        raise authority.translate_exceptions(exc) from exc
    return json_response({"tokens": token_pair_schema.dump(pair)})


@bp.post("/validate")
@timing
def validate():
    """Verify an access token on behalf of another service."""

    data = validate_schema.load(request.get_json(silent=True) or {})
    authority = get_token_authority()
    try:
        claims = authority.verify_access_token(data["token"])
    except ServiceError as exc:
        err = authority.translate_exceptions(exc)
        if not isinstance(err, APIError):
            raise err from exc
        problem = err.to_problem()
        problem["valid"] = False
        return problem_response(problem, err.status_code)
    body = {"valid": True, **claims_schema.dump(claims)}
    return json_response(body)


@bp.get("/me")
@require_auth
@timing
def me():
    """Return the verified claims of the caller's access token."""

    return json_response(claims_schema.dump(current_claims()))

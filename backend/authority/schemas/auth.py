"""Authentication-related Marshmallow schemas."""

from __future__ import annotations

from marshmallow import Schema, fields, post_load, validate

from authority.services.auth.dto import LoginIn, RefreshIn


class LoginSchema(Schema):
    """Input payload for authenticating a user."""

    username = fields.String(required=True, validate=validate.Length(min=1, max=50))
    password = fields.String(required=True, validate=validate.Length(min=1, max=128))

    @post_load
    def _to_dto(self, data, **kwargs) -> LoginIn:
        return LoginIn(username=data["username"].strip(), password=data["password"])


class RefreshSchema(Schema):
    """Input payload for exchanging a refresh token."""

    refresh_token = fields.String(required=True, validate=validate.Length(min=1))

    @post_load
    def _to_dto(self, data, **kwargs) -> RefreshIn:
        return RefreshIn(refresh_token=data["refresh_token"])


class ValidateSchema(Schema):
    """Input payload for verifying an access token on behalf of another service."""

    token = fields.String(required=True, validate=validate.Length(min=1))


class TokenPairSchema(Schema):
    """Response payload for an issued token pair."""

    access_token = fields.String(required=True)
    refresh_token = fields.String(required=True)
    access_uuid = fields.String(attribute="access_id")
    refresh_uuid = fields.String(attribute="refresh_id")
    at_expires = fields.Method("_access_exp")
    rt_expires = fields.Method("_refresh_exp")
    token_type = fields.Constant("bearer")

    def _access_exp(self, obj) -> int:
        return int(obj.access_expires_at.timestamp())

    def _refresh_exp(self, obj) -> int:
        return int(obj.refresh_expires_at.timestamp())


class AccessClaimsSchema(Schema):
    """Response payload describing a verified access token."""

    user_id = fields.Integer(required=True)
    access_uuid = fields.String(attribute="access_id")
    expires_at = fields.DateTime(format="iso")

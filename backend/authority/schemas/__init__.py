"""Convenience exports for API schemas."""

from __future__ import annotations

from .auth import (
    AccessClaimsSchema,
    LoginSchema,
    RefreshSchema,
    TokenPairSchema,
    ValidateSchema,
)

__all__ = [
    "AccessClaimsSchema",
    "LoginSchema",
    "RefreshSchema",
    "TokenPairSchema",
    "ValidateSchema",
]

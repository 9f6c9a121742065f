"""Repository package exposing persistence-layer access for all models."""

from __future__ import annotations

from authority.repositories.base import BaseRepository
from authority.repositories.signing_key import SigningKeyRepository
from authority.repositories.user import UserRepository

__all__ = [
    "BaseRepository",
    "SigningKeyRepository",
    "UserRepository",
]

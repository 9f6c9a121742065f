"""SQLAlchemy models package for the token authority."""

from .signing_key import SigningKey
from .user import User

__all__ = ["SigningKey", "User"]

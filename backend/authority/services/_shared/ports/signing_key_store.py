from __future__ import annotations

import secrets
import threading
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Callable, Protocol

from authority.services._shared.errors import NoActiveKeyError, RotationFailedError

SECRET_BYTES = 48


def generate_secret() -> str:
    """Return a fresh, cryptographically random HMAC secret."""
    return secrets.token_urlsafe(SECRET_BYTES)


@dataclass(frozen=True, slots=True)
class SigningKeyView:
    """
    Immutable snapshot of a signing key.

    :ivar id: Store-assigned key identifier.
    :ivar secret: HMAC secret material.
    :ivar active: Whether this is the key currently used for signing.
    :ivar created_at: Creation time (UTC).
    :ivar retired_at: When the key was superseded, ``None`` while active.
    """

    id: int
    secret: str
    active: bool
    created_at: datetime
    retired_at: datetime | None = None

    @property
    def kid(self) -> str:
        """Key identifier as carried in the JWT ``kid`` header."""
        return str(self.id)

    def __repr__(self) -> str:
        return f"<SigningKeyView id={self.id} active={self.active}>"


class SigningKeyStore(Protocol):
    """
    Durable record of signing keys with exactly one active key.

    Callers must not cache the returned secret across calls: every signing or
    verification call asks the store again.
    """

    def current_key(self) -> SigningKeyView:
        """
        Return the active key.

        :raises NoActiveKeyError: If no key is active.
        :raises KeyStoreError: On durability failures.
        """

    def rotate(self) -> SigningKeyView:
        """
        Atomically retire the active key and activate a freshly generated one.

        :raises RotationFailedError: If the transition could not be committed;
            the previous key then remains active.
        """

    def get_key(self, key_id: int | str) -> SigningKeyView | None:
        """Look up any key, active or retired, by identifier."""

    def list_keys(self) -> list[SigningKeyView]:
        """Return the full key history, newest first."""


class InMemorySigningKeyStore(SigningKeyStore):
    """
    Process-local signing key store.

    Keys live in an immutable tuple that is swapped under a lock, so readers
    always observe a fully-formed history with exactly one active key.
    """

    def __init__(
        self,
        *,
        secret_factory: Callable[[], str] = generate_secret,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._secret_factory = secret_factory
        self._clock = clock or (lambda: datetime.now(UTC))
        self._lock = threading.Lock()
        self._keys: tuple[SigningKeyView, ...] = ()
        self._seq = 0
        self.ensure_active_key()

    def _new_key(self) -> SigningKeyView:
        self._seq += 1
        return SigningKeyView(
            id=self._seq,
            secret=self._secret_factory(),
            active=True,
            created_at=self._clock(),
        )

    def ensure_active_key(self) -> SigningKeyView:
        with self._lock:
            for key in self._keys:
                if key.active:
                    return key
            key = self._new_key()
            self._keys = self._keys + (key,)
            return key

    def current_key(self) -> SigningKeyView:
        for key in self._keys:
            if key.active:
                return key
        raise NoActiveKeyError()

    def rotate(self) -> SigningKeyView:
        with self._lock:
            now = self._clock()
            retired = tuple(
                replace(k, active=False, retired_at=now) if k.active else k for k in self._keys
            )
            try:
                key = self._new_key()
            except Exception as exc:
                raise RotationFailedError(f"Could not generate a new key: {exc}") from exc
            self._keys = retired + (key,)
            return key

    def get_key(self, key_id: int | str) -> SigningKeyView | None:
        for key in self._keys:
            if key.kid == str(key_id):
                return key
        return None

    def list_keys(self) -> list[SigningKeyView]:
        return list(reversed(self._keys))

"""Background timer rotating the signing key at a fixed interval."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from contextlib import AbstractContextManager, nullcontext
from datetime import timedelta

from authority.services._shared.ports import SigningKeyStore, SigningKeyView

log = logging.getLogger(__name__)


class KeyRotationScheduler:
    """
    Periodically call :meth:`SigningKeyStore.rotate` on a daemon thread.

    Rotation is best-effort: a failed tick is logged and the next tick tries
    again while the current key stays valid. The scheduler owns no key state
    and never holds a lock that request threads wait on.

    Parameters
    ----------
    store_provider : Callable[[], SigningKeyStore]
        Returns the store to rotate. Called on every tick, inside the context
        produced by ``context_factory``.
    interval : timedelta
        Time between rotations. Must be positive.
    context_factory : Callable[[], AbstractContextManager] | None, optional
        Context entered around each tick, e.g. ``app.app_context`` so the
        SQL store gets a fresh session per rotation.
    """

    def __init__(
        self,
        store_provider: Callable[[], SigningKeyStore],
        interval: timedelta,
        *,
        context_factory: Callable[[], AbstractContextManager] | None = None,
    ) -> None:
        if interval.total_seconds() <= 0:
            raise ValueError("Rotation interval must be positive")
        self._store_provider = store_provider
        self.interval = interval
        self._context_factory = context_factory or nullcontext
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._lifecycle = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the timer thread. Calling it again while running is a no-op."""
        with self._lifecycle:
            if self.running:
                return
            self._stop.clear()
            self._thread = threading.Thread(
                target=self._run, name="signing-key-rotation", daemon=True
            )
            self._thread.start()
        log.info("key_rotation.started interval=%ss", self.interval.total_seconds())

    def stop(self, timeout: float | None = 5.0) -> None:
        """Interrupt the wait and join the timer thread."""
        with self._lifecycle:
            thread, self._thread = self._thread, None
            self._stop.set()
        if thread is not None:
            thread.join(timeout)
            log.info("key_rotation.stopped")

    def rotate_once(self) -> SigningKeyView | None:
        """
        Run one rotation, logging instead of raising on failure.

        :returns: The new key, or ``None`` if the rotation failed.
        """
        try:
            with self._context_factory():
                key = self._store_provider().rotate()
        except Exception:
            log.exception("key_rotation.failed")
            return None
        return key

    def _run(self) -> None:
        wait = self.interval.total_seconds()
        while not self._stop.wait(wait):
            self.rotate_once()

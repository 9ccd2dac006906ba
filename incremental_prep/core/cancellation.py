"""Cooperative cancellation shared by every long-running loop."""

import threading
from typing import Optional

from incremental_prep.core.exceptions import OperationCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag.

    Workers call ``raise_if_cancelled()`` at loop boundaries (per column, and
    every ``CHECK_INTERVAL`` rows inside row loops).

    Example:
        >>> token = CancellationToken()
        >>> token.cancel()
        >>> token.raise_if_cancelled()
        Traceback (most recent call last):
        OperationCancelledError: Operation was cancelled
    """

    CHECK_INTERVAL = 1000

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError()

    @classmethod
    def cancelled(cls) -> "CancellationToken":
        """Create a token that is already cancelled."""
        token = cls()
        token.cancel()
        return token


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """Raise OperationCancelledError if ``token`` is set; ``None`` never cancels."""
    if token is not None:
        token.raise_if_cancelled()


def check_periodically(token: Optional[CancellationToken], index: int) -> None:
    """Check ``token`` once every ``CHECK_INTERVAL`` iterations."""
    if token is not None and index % CancellationToken.CHECK_INTERVAL == 0:
        token.raise_if_cancelled()

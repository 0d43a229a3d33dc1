"""Cooperative cancellation for long-running aggregate computations."""

from __future__ import annotations

import logging
import time
from threading import Event
from typing import Optional

from habitflow.core.errors import ComputationCancelled

logger = logging.getLogger(__name__)


class CancellationToken:
    """Cancelled explicitly via :meth:`cancel` or implicitly once ``timeout`` elapses."""

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._event = Event()
        self._deadline = time.monotonic() + timeout if timeout else None

    @classmethod
    def none(cls) -> "CancellationToken":
        return cls()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            logger.warning("Aggregate computation cancelled")
            raise ComputationCancelled()


def check(token: Optional[CancellationToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()


__all__ = ["CancellationToken", "ComputationCancelled", "check"]

"""Cooperative cancellation checked between units of scan work."""

from __future__ import annotations

import threading
from typing import Optional

from ..errors import ScanCancelledError


class CancellationToken:
    """Thread-safe flag shared by the caller and the scan workers."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._reason: Optional[str] = None

    def cancel(self, reason: str = "scan cancelled") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise ScanCancelledError(self._reason or "scan cancelled")


def check(token: Optional[CancellationToken]) -> None:
    if token is not None:
        token.raise_if_cancelled()

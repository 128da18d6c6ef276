"""Cooperative cancellation."""

from __future__ import annotations

import threading

from .errors import Cancelled


class CancellationToken:
    """Flag checked at each suspension point of a generate call.

    Cancelling does not abort a request that is already on the wire; the
    result of that request is discarded when the flag is next checked.
    """

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise Cancelled("Request was cancelled")

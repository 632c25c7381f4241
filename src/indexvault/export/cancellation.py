"""Cooperative cancellation for export jobs."""

import threading


class CancellationToken:
    """Flag polled by long-running loops; setting it never interrupts a call."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def __repr__(self) -> str:
        return f"CancellationToken(cancelled={self.cancelled})"

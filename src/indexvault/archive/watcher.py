"""Byte throughput tracking for archive sessions."""

import threading
import time
from collections import deque
from collections.abc import Callable

from indexvault.constants import PERCENTAGE_MAX, PERCENTAGE_MULTIPLIER, RATE_WINDOW_SECONDS


class BytesProgressWatcher:
    """Thread-safe byte counter with a sliding-window transfer rate.

    The byte budget is advisory: it only feeds the percentage calculation and
    never limits how much is written.

    Example:
        >>> watcher = BytesProgressWatcher(bytes_to_transfer=1024)
        >>> watcher.record(512)
        >>> watcher.percent_complete
        50.0
    """

    def __init__(
        self,
        bytes_to_transfer: int = 0,
        window_seconds: float = RATE_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize watcher.

        Args:
            bytes_to_transfer: Expected total bytes (0 if unknown)
            window_seconds: Width of the recent-rate window
            clock: Monotonic time source, injectable for tests
        """
        self.bytes_to_transfer = bytes_to_transfer
        self.window_seconds = window_seconds
        self._clock = clock
        self._total = 0
        self._history: deque[tuple[float, int]] = deque()
        self._started = clock()
        self._lock = threading.Lock()

    def record(self, num_bytes: int) -> None:
        """Account for one completed transfer of ``num_bytes``."""
        now = self._clock()
        with self._lock:
            self._total += num_bytes
            self._history.append((now, num_bytes))
            self._trim(now)

    def _trim(self, now: float) -> None:
        cutoff = now - self.window_seconds
        while self._history and self._history[0][0] < cutoff:
            self._history.popleft()

    @property
    def total_bytes_transferred(self) -> int:
        with self._lock:
            return self._total

    @property
    def recent_byte_rate_per_second(self) -> float:
        """Bytes per second over the last ``window_seconds``."""
        now = self._clock()
        with self._lock:
            self._trim(now)
            if not self._history:
                return 0.0
            recent = sum(size for _, size in self._history)
            # A young watcher has not seen a full window yet
            span = min(self.window_seconds, now - self._started)
            return recent / span if span > 0 else float(recent)

    @property
    def percent_complete(self) -> float | None:
        """Share of the byte budget transferred, or None without a budget."""
        if self.bytes_to_transfer <= 0:
            return None
        with self._lock:
            pct = self._total / self.bytes_to_transfer * PERCENTAGE_MULTIPLIER
        return min(pct, PERCENTAGE_MAX)

    def __str__(self) -> str:
        """Return human-readable transfer summary."""
        return (
            f"BytesProgressWatcher(total={self.total_bytes_transferred}, "
            f"rate={self.recent_byte_rate_per_second:.1f} bytes/sec)"
        )

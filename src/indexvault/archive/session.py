"""Archive session lifecycle shared by all container formats."""

import logging
import threading
from enum import Enum
from pathlib import Path
from typing import Protocol

from indexvault.archive.packet import ArchivePacket
from indexvault.archive.watcher import BytesProgressWatcher
from indexvault.exceptions import SessionWriteError

logger = logging.getLogger(__name__)


class SessionMode(str, Enum):
    """Open-mode flags for an archive session."""

    WRITE = "write"
    OVERWRITE = "overwrite"
    URI_ENCODED = "uri_encoded"
    NONE = "none"


def session_mode(overwrite: bool, encode_entry: bool) -> frozenset[SessionMode]:
    """Build the open mode from the two independent request flags.

    Args:
        overwrite: Replace an existing target instead of refusing it
        encode_entry: Percent-encode archive entry names

    Returns:
        Frozen set of SessionMode flags
    """
    return frozenset(
        {
            SessionMode.OVERWRITE if overwrite else SessionMode.WRITE,
            SessionMode.URI_ENCODED if encode_entry else SessionMode.NONE,
        }
    )


def format_mode(mode: frozenset[SessionMode]) -> str:
    """Return a stable, readable rendering of a mode set."""
    return "[" + ", ".join(sorted(flag.name for flag in mode)) + "]"


class ArchiveSession(Protocol):
    """Protocol for an ordered packet sink with open/write/close lifecycle."""

    packet_counter: int
    watcher: BytesProgressWatcher
    last_error: str | None

    def open(self, mode: frozenset[SessionMode], path: Path) -> bool:
        """Open the session target; False when it cannot be opened."""
        ...

    @property
    def is_open(self) -> bool: ...

    def write(self, packet: ArchivePacket) -> None:
        """Write one packet.

        Raises:
            SessionWriteError: If the session is closed or the write fails
        """
        ...

    def close(self) -> None:
        """Finalize the target. Calling close twice is a no-op.

        Raises:
            SessionWriteError: If finalizing fails
        """
        ...


class BaseArchiveSession:
    """Shared open/write/close bookkeeping for concrete container formats.

    Subclasses implement ``_open_target``, ``_write_packet`` and
    ``_close_target``. Writes are expected from a single thread per session;
    ``close`` may race with the writer only through the export task's cleanup
    path, so it is guarded by a lock.
    """

    # Errors raised by the container library that count as I/O failures
    io_errors: tuple[type[BaseException], ...] = (OSError,)

    def __init__(self, watcher: BytesProgressWatcher | None = None):
        """Initialize session.

        Args:
            watcher: Progress watcher owned by this session
        """
        self.watcher = watcher or BytesProgressWatcher()
        self.mode: frozenset[SessionMode] = frozenset()
        self.path: Path | None = None
        self.packet_counter = 0
        self.last_error: str | None = None
        self._open = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def encode_entries(self) -> bool:
        return SessionMode.URI_ENCODED in self.mode

    def open(self, mode: frozenset[SessionMode], path: Path) -> bool:
        """Open the archive target.

        Args:
            mode: Open-mode flags (see ``session_mode``)
            path: Target file

        Returns:
            True if the session is open and ready for writes
        """
        path = Path(path)
        overwrite = SessionMode.OVERWRITE in mode
        with self._lock:
            if self._open:
                self.last_error = f"session already open on {self.path}"
                return False
            if path.exists() and not overwrite:
                self.last_error = f"{path} exists and overwrite is not allowed"
                return False
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                self._open_target(path, overwrite)
            except self.io_errors as e:
                self.last_error = str(e)
                logger.warning(f"Cannot open archive {path}: {e}")
                return False
            self.mode = mode
            self.path = path
            self.last_error = None
            self._open = True
        logger.debug(f"Opened {type(self).__name__} on {path} mode={format_mode(mode)}")
        return True

    def write(self, packet: ArchivePacket) -> None:
        """Write one packet and account for its payload bytes.

        Raises:
            SessionWriteError: If the session is not open or the write fails
        """
        if not self._open:
            raise SessionWriteError(f"session is not open: {self.path}")
        data = packet.payload.encode("utf-8")
        try:
            self._write_packet(packet, data)
        except self.io_errors as e:
            raise SessionWriteError(f"Failed to write {packet.entry_name()}: {e}") from e
        self.packet_counter += 1
        self.watcher.record(len(data))

    def close(self) -> None:
        """Finalize the archive. Safe to call more than once.

        Raises:
            SessionWriteError: If finalizing the container fails
        """
        with self._lock:
            if not self._open:
                return
            self._open = False
            try:
                self._close_target()
            except self.io_errors as e:
                raise SessionWriteError(f"Failed to close {self.path}: {e}") from e
        logger.debug(f"Closed {type(self).__name__} on {self.path}")

    def _open_target(self, path: Path, overwrite: bool) -> None:
        raise NotImplementedError

    def _write_packet(self, packet: ArchivePacket, data: bytes) -> None:
        raise NotImplementedError

    def _close_target(self) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(path={self.path}, open={self._open}, "
            f"packets={self.packet_counter})"
        )

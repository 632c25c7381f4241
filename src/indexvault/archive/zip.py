"""Zip container session."""

import zipfile
from pathlib import Path

from indexvault.archive.packet import ArchivePacket
from indexvault.archive.session import BaseArchiveSession
from indexvault.archive.watcher import BytesProgressWatcher
from indexvault.exceptions import SessionWriteError


class ZipArchiveSession(BaseArchiveSession):
    """Writes one deflated zip member per packet."""

    io_errors = (OSError, zipfile.BadZipFile)

    def __init__(self, watcher: BytesProgressWatcher | None = None):
        super().__init__(watcher)
        self._zip: zipfile.ZipFile | None = None

    def _open_target(self, path: Path, overwrite: bool) -> None:
        self._zip = zipfile.ZipFile(
            path, "w" if overwrite else "x", compression=zipfile.ZIP_DEFLATED
        )

    def _write_packet(self, packet: ArchivePacket, data: bytes) -> None:
        if self._zip is None:
            raise SessionWriteError(f"zip archive is not open: {self.path}")
        self._zip.writestr(packet.entry_name(encode=self.encode_entries), data)

    def _close_target(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

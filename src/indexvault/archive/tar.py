"""Tar container sessions (plain, gzip, bzip2 and xz compressed)."""

import io
import tarfile
import time
from pathlib import Path

from indexvault.archive.packet import ArchivePacket
from indexvault.archive.session import BaseArchiveSession
from indexvault.archive.watcher import BytesProgressWatcher
from indexvault.exceptions import SessionWriteError

TAR_COMPRESSION = {
    ".tar.gz": "gz",
    ".tgz": "gz",
    ".tar.bz2": "bz2",
    ".tar.xz": "xz",
    ".tar": "",
}


def tar_compression(path: Path) -> str:
    """Return the tarfile compression suffix for a target path ('' for none)."""
    name = path.name.lower()
    for suffix, compression in TAR_COMPRESSION.items():
        if name.endswith(suffix):
            return compression
    return ""


class TarArchiveSession(BaseArchiveSession):
    """Writes one tar member per packet, named ``index/type[/id[/field]]``."""

    io_errors = (OSError, tarfile.TarError)

    def __init__(self, watcher: BytesProgressWatcher | None = None):
        super().__init__(watcher)
        self._tar: tarfile.TarFile | None = None

    def _open_target(self, path: Path, overwrite: bool) -> None:
        compression = tar_compression(path)
        mode = ("w" if overwrite else "x") + (f":{compression}" if compression else "")
        self._tar = tarfile.open(path, mode)

    def _write_packet(self, packet: ArchivePacket, data: bytes) -> None:
        if self._tar is None:
            raise SessionWriteError(f"tar archive is not open: {self.path}")
        info = tarfile.TarInfo(name=packet.entry_name(encode=self.encode_entries))
        info.size = len(data)
        info.mtime = int(time.time())
        self._tar.addfile(info, io.BytesIO(data))

    def _close_target(self) -> None:
        if self._tar is not None:
            self._tar.close()
            self._tar = None

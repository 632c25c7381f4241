"""Bulk-load stream session (newline-delimited action/source pairs)."""

import gzip
import logging
from pathlib import Path
from typing import IO, Any

import msgspec

from indexvault.archive.packet import ArchivePacket
from indexvault.archive.session import BaseArchiveSession
from indexvault.archive.watcher import BytesProgressWatcher
from indexvault.constants import DEFAULT_TYPE, SOURCE_FIELD
from indexvault.exceptions import SessionWriteError

logger = logging.getLogger(__name__)

# Document fields that become bulk action metadata instead of being dropped
ACTION_FIELDS = {"_routing": "routing", "_parent": "parent"}


class BulkArchiveSession(BaseArchiveSession):
    """Bulk-load-only sink.

    Only document ``_source`` packets produce output: an ``index`` action line
    followed by the raw source line. ``_routing``/``_parent`` packets are held
    and folded into the next action line of the same document. Structural
    packets have no channel in this format and are ignored.
    """

    def __init__(self, watcher: BytesProgressWatcher | None = None):
        super().__init__(watcher)
        self._fh: IO[bytes] | None = None
        self._pending: dict[tuple[str, str, str], dict[str, Any]] = {}

    def _open_target(self, path: Path, overwrite: bool) -> None:
        mode = "wb" if overwrite else "xb"
        if path.name.lower().endswith(".gz"):
            self._fh = gzip.open(path, mode)
        else:
            self._fh = path.open(mode)
        self._pending.clear()

    def _write_packet(self, packet: ArchivePacket, data: bytes) -> None:
        if self._fh is None:
            raise SessionWriteError(f"bulk file is not open: {self.path}")
        if packet.is_metadata:
            logger.debug(f"Bulk session ignores structural packet {packet.entry_name()}")
            return

        key = (packet.index, packet.type, packet.id or "")
        if packet.field in ACTION_FIELDS:
            self._pending.setdefault(key, {})[ACTION_FIELDS[packet.field]] = packet.payload
            return
        if packet.field != SOURCE_FIELD:
            return

        action: dict[str, Any] = {"_index": packet.index, "_id": packet.id}
        if packet.type != DEFAULT_TYPE:
            action["_type"] = packet.type
        action.update(self._pending.pop(key, {}))
        self._fh.write(msgspec.json.encode({"index": action}) + b"\n")
        self._fh.write(data + b"\n")

    def _close_target(self) -> None:
        if self._pending:
            logger.warning(f"{len(self._pending)} documents had no _source packet")
            self._pending.clear()
        if self._fh is not None:
            self._fh.close()
            self._fh = None

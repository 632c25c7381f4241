"""Archive sessions, packets and transfer tracking."""

from indexvault.archive.bulk import BulkArchiveSession
from indexvault.archive.packet import ArchivePacket
from indexvault.archive.serializer import MsgspecJsonSerializer, PayloadSerializer
from indexvault.archive.service import new_session
from indexvault.archive.session import (
    ArchiveSession,
    BaseArchiveSession,
    SessionMode,
    session_mode,
)
from indexvault.archive.tar import TarArchiveSession
from indexvault.archive.watcher import BytesProgressWatcher
from indexvault.archive.zip import ZipArchiveSession

__all__ = [
    "ArchivePacket",
    "ArchiveSession",
    "BaseArchiveSession",
    "BulkArchiveSession",
    "BytesProgressWatcher",
    "MsgspecJsonSerializer",
    "PayloadSerializer",
    "SessionMode",
    "TarArchiveSession",
    "ZipArchiveSession",
    "new_session",
    "session_mode",
]

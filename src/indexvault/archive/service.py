"""Archive session factory keyed by target file suffix."""

from pathlib import Path

from indexvault.archive.bulk import BulkArchiveSession
from indexvault.archive.session import BaseArchiveSession
from indexvault.archive.tar import TarArchiveSession
from indexvault.archive.watcher import BytesProgressWatcher
from indexvault.archive.zip import ZipArchiveSession

BULK_SUFFIXES = (".bulk", ".bulk.gz", ".ndjson", ".ndjson.gz")


def new_session(path: Path, watcher: BytesProgressWatcher) -> BaseArchiveSession:
    """Create an unopened session for the container format implied by ``path``.

    Args:
        path: Target archive path
        watcher: Progress watcher the session will own

    Returns:
        Bulk session for bulk suffixes, zip session for ``.zip``, otherwise tar
    """
    name = Path(path).name.lower()
    if name.endswith(BULK_SUFFIXES):
        return BulkArchiveSession(watcher)
    if name.endswith(".zip"):
        return ZipArchiveSession(watcher)
    return TarArchiveSession(watcher)

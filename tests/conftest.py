"""Shared pytest fixtures and factory functions for IndexVault tests.

This module provides an in-memory cluster client and recording archive
sessions so the export pipeline can be exercised without a live cluster.
"""

import json
from pathlib import Path
from typing import Any

import pytest

from indexvault.archive.bulk import BulkArchiveSession
from indexvault.archive.packet import ArchivePacket
from indexvault.archive.session import BaseArchiveSession, session_mode
from indexvault.archive.watcher import BytesProgressWatcher
from indexvault.cluster.client import ScrollPage
from indexvault.config.models import ClusterConfig, Configuration, ExportSettings
from indexvault.export.models import ExportRequest

#
# Factory Functions
#


def make_hit(
    index: str,
    doc_id: str,
    source: dict[str, Any] | None = None,
    fields: dict[str, Any] | None = None,
    type_name: str = "_doc",
) -> dict[str, Any]:
    """Create a raw search hit.

    Args:
        index: Concrete index name
        doc_id: Document id
        source: Document body
        fields: Explicitly fetched fields (values as lists, like the cluster returns)
        type_name: Mapping type

    Returns:
        dict: Hit as returned by a search response
    """
    hit: dict[str, Any] = {"_index": index, "_type": type_name, "_id": doc_id}
    if source is not None:
        hit["_source"] = source
    if fields is not None:
        hit["fields"] = fields
    return hit


def payload_json(packet: ArchivePacket) -> Any:
    """Decode a packet payload written as JSON."""
    return json.loads(packet.payload)


#
# Fakes
#


class FakeClusterClient:
    """In-memory ClusterClient.

    ``pages`` maps a search key (index token, or ``_all``) to the list of hit
    pages the scroll returns, first page first.
    """

    def __init__(
        self,
        settings: dict[str, dict[str, Any]] | None = None,
        mappings: dict[str, dict[str, dict[str, Any]]] | None = None,
        aliases: dict[str, dict[str, dict[str, Any]]] | None = None,
        pages: dict[str, list[list[dict[str, Any]]]] | None = None,
    ):
        self.settings = settings or {}
        self.mappings = mappings or {}
        self.aliases = aliases or {}
        self.pages = pages or {}
        self.calls: list[tuple[Any, ...]] = []
        self.cleared: list[str] = []
        self._cursors: dict[str, list[list[dict[str, Any]]]] = {}

    def resolve_settings(self, indices):
        self.calls.append(("resolve_settings", tuple(indices)))
        return {
            index: json.dumps(body)
            for index, body in self.settings.items()
            if not indices or index in indices
        }

    def resolve_mapping(self, index, types):
        self.calls.append(("resolve_mapping", index, types))
        return {
            type_name: json.dumps(body)
            for type_name, body in self.mappings.get(index, {}).items()
            if not types or type_name in types
        }

    def resolve_aliases(self, index):
        self.calls.append(("resolve_aliases", index))
        return {alias: json.dumps(body) for alias, body in self.aliases.get(index, {}).items()}

    def search(self, query, indices, types, scroll_timeout, size=100):
        key = ",".join(indices) if indices else "_all"
        self.calls.append(("search", key, types, scroll_timeout, size, query))
        remaining = list(self.pages.get(key, []))
        scroll_id = f"scroll-{key}"
        first = remaining.pop(0) if remaining else []
        self._cursors[scroll_id] = remaining
        return ScrollPage(scroll_id=scroll_id, hits=first, took=1)

    def scroll_next(self, scroll_id, scroll_timeout):
        self.calls.append(("scroll_next", scroll_id, scroll_timeout))
        remaining = self._cursors.get(scroll_id, [])
        hits = remaining.pop(0) if remaining else []
        return ScrollPage(scroll_id=scroll_id, hits=hits, took=1)

    def clear_scroll(self, scroll_id):
        self.cleared.append(scroll_id)

    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]


class RecordingSession(BaseArchiveSession):
    """Archive session that keeps written packets in memory."""

    def __init__(self, watcher: BytesProgressWatcher | None = None):
        super().__init__(watcher)
        self.packets: list[ArchivePacket] = []
        self.close_calls = 0

    def _open_target(self, path: Path, overwrite: bool) -> None:
        pass

    def _write_packet(self, packet: ArchivePacket, data: bytes) -> None:
        self.packets.append(packet)

    def _close_target(self) -> None:
        self.close_calls += 1


class RecordingBulkSession(BulkArchiveSession):
    """Bulk-load-only session that records packets instead of writing a file."""

    def __init__(self, watcher: BytesProgressWatcher | None = None):
        super().__init__(watcher)
        self.packets: list[ArchivePacket] = []

    def _open_target(self, path: Path, overwrite: bool) -> None:
        pass

    def _write_packet(self, packet: ArchivePacket, data: bytes) -> None:
        self.packets.append(packet)

    def _close_target(self) -> None:
        pass


#
# Fixtures
#


@pytest.fixture
def fake_client() -> FakeClusterClient:
    """Cluster with two concrete indices, one type each, and one page of hits per index.

    Returns:
        FakeClusterClient: Preloaded fake cluster.
    """
    return FakeClusterClient(
        settings={
            "idx1": {"index.number_of_shards": "1"},
            "idx2": {"index.number_of_shards": "2"},
        },
        mappings={
            "idx1": {"t": {"properties": {"title": {"type": "text"}}}},
            "idx2": {"t": {"properties": {"body": {"type": "text"}}}},
        },
        aliases={"idx1": {"current": {}}},
        pages={
            "_all": [
                [make_hit("idx1", "1", {"title": "a"}, type_name="t")],
                [make_hit("idx2", "2", {"body": "b"}, type_name="t")],
            ],
        },
    )


@pytest.fixture
def recording_session(tmp_path: Path) -> RecordingSession:
    """Open recording session.

    Returns:
        RecordingSession: Session ready for writes.
    """
    session = RecordingSession()
    assert session.open(session_mode(False, False), tmp_path / "export.tar.gz")
    return session


@pytest.fixture
def recording_bulk_session(tmp_path: Path) -> RecordingBulkSession:
    """Open recording bulk-load session.

    Returns:
        RecordingBulkSession: Bulk session ready for writes.
    """
    session = RecordingBulkSession()
    assert session.open(session_mode(False, False), tmp_path / "export.bulk")
    return session


@pytest.fixture
def sample_request(tmp_path: Path) -> ExportRequest:
    """Create sample export request for everything.

    Returns:
        ExportRequest: Request targeting a temporary archive path.
    """
    return ExportRequest(index="_all", path=str(tmp_path / "export.tar.gz"))


@pytest.fixture
def sample_config(tmp_path: Path) -> Configuration:
    """Create sample configuration.

    Returns:
        Configuration: Configuration with a local cluster and a job database.
    """
    return Configuration(
        cluster=ClusterConfig(hosts=["http://localhost:9200"]),
        export=ExportSettings(
            workers=2,
            node_name="node-1",
            default_path=str(tmp_path / "_all.tar.gz"),
            job_db=str(tmp_path / "jobs.db"),
        ),
    )

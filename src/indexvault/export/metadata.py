"""Export of index settings, mappings and aliases ahead of documents."""

import logging

from indexvault.archive.bulk import BulkArchiveSession
from indexvault.archive.packet import ArchivePacket
from indexvault.archive.session import ArchiveSession
from indexvault.cluster.client import ClusterClient
from indexvault.export.models import ExportRequest
from indexvault.export.resolver import IndexMap

logger = logging.getLogger(__name__)


class MetadataExporter:
    """Writes structural packets for every concrete index in scope.

    For each index the order is strictly settings, then mappings, then aliases
    (when requested). Cluster failures propagate; there is no partial skip.
    """

    def __init__(
        self,
        client: ClusterClient,
        session: ArchiveSession,
        request: ExportRequest,
    ):
        """Initialize exporter.

        Args:
            client: Cluster client for settings/mapping/alias lookups
            session: Open archive session
            request: Export request (flags and rename table)
        """
        self.client = client
        self.session = session
        self.request = request

    @staticmethod
    def should_export(request: ExportRequest, session: ArchiveSession) -> bool:
        """Whether the metadata phase runs for this request and sink.

        A bulk-load stream has no structural channel, so it never receives
        metadata regardless of the request flags.
        """
        # TODO: replace the concrete-type check with a sink capability flag
        # once every session advertises one.
        return request.with_metadata and not isinstance(session, BulkArchiveSession)

    def export(self, scope: IndexMap) -> int:
        """Write settings, mapping and alias packets.

        Args:
            scope: Index name to type set (empty scope = every index)

        Returns:
            Number of packets written

        Raises:
            ClusterQueryError: If any lookup fails
            SessionWriteError: If a packet cannot be written
        """
        logger.info(f"Getting settings for indices {sorted(scope) or ['_all']}")
        settings = self.client.resolve_settings(sorted(scope))
        logger.info(f"Found indices: {sorted(settings)}")

        written = 0
        for index in sorted(settings):
            written += self._export_index(index, settings[index], scope.get(index))
        return written

    def _export_index(self, index: str, settings: str, types: frozenset[str] | None) -> int:
        target = self.request.map_index(index)
        self.session.write(ArchivePacket.settings(target, settings))
        written = 1

        logger.info(f"Getting mappings for index {index} and types {sorted(types or [])}")
        mappings = self.client.resolve_mapping(index, types or None)
        logger.info(f"Found mappings: {sorted(mappings)}")
        for type_name in sorted(mappings):
            self.session.write(
                ArchivePacket.mapping(
                    target, self.request.map_type(index, type_name), mappings[type_name]
                )
            )
            written += 1

        if self.request.with_aliases:
            logger.info(f"Getting aliases for index {index}")
            aliases = self.client.resolve_aliases(index)
            logger.info(f"Found {len(aliases)} aliases")
            for alias in sorted(aliases):
                self.session.write(ArchivePacket.alias(target, alias, aliases[alias]))
                written += 1

        return written

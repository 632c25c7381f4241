"""Scroll-driven streaming of documents into archive packets."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from indexvault.archive.packet import ArchivePacket
from indexvault.archive.serializer import MsgspecJsonSerializer, PayloadSerializer
from indexvault.archive.session import ArchiveSession
from indexvault.cluster.client import ClusterClient, ScrollPage
from indexvault.constants import ALL_INDICES, DEFAULT_TYPE, SOURCE_FIELD
from indexvault.export.cancellation import CancellationToken
from indexvault.export.models import ExportRequest
from indexvault.export.progress import NullProgressTracker, ProgressTracker
from indexvault.export.resolver import IndexMap

logger = logging.getLogger(__name__)


@dataclass
class StreamResult:
    """Counters of one streaming run."""

    hits: int = 0
    packets: int = 0
    pages: int = 0
    cancelled: bool = False


class DocumentStreamer:
    """Turns scrolled search hits into document packets.

    Packet order is page, then hit within page, then fetched field within hit,
    with the synthetic ``_source`` packet last for its hit. Document order
    across runs is whatever the cluster returns and is not stable.
    """

    def __init__(
        self,
        client: ClusterClient,
        session: ArchiveSession,
        request: ExportRequest,
        token: CancellationToken | None = None,
        serializer: PayloadSerializer | None = None,
        progress: ProgressTracker | None = None,
    ):
        """Initialize streamer.

        Args:
            client: Cluster client used for search and scroll
            session: Open archive session
            request: Export request (query, scroll options, rename table)
            token: Cancellation token polled once per page
            serializer: Serializer for sources and structured field values
            progress: Progress tracker advanced by page hits
        """
        self.client = client
        self.session = session
        self.request = request
        self.token = token or CancellationToken()
        self.serializer = serializer or MsgspecJsonSerializer()
        self.progress = progress or NullProgressTracker()

    def stream(self, index_map: IndexMap) -> StreamResult:
        """Export every document matched by each index/types entry.

        Args:
            index_map: Index token to type set (patterns are left to the cluster)

        Returns:
            StreamResult with totals over all entries

        Raises:
            ClusterQueryError: If a search or scroll call fails
            SessionWriteError: If a packet cannot be written
        """
        result = StreamResult()
        for index in sorted(index_map):
            if self.token.cancelled:
                result.cancelled = True
                break
            self._stream_entry(index, index_map[index], result)
        return result

    def _stream_entry(self, index: str, types: frozenset[str], result: StreamResult) -> None:
        task_id = f"export_{index}"
        self.progress.start_task(task_id, f"Exporting {index}")
        indices = [] if index == ALL_INDICES else [index]
        page: ScrollPage | None = None
        total = 0
        try:
            page = self.client.search(
                self.request.query,
                indices,
                types,
                self.request.timeout,
                self.request.scroll_size,
            )
            while True:
                if not page.hits:
                    break
                total += len(page.hits)
                result.pages += 1
                result.hits += len(page.hits)
                logger.debug(f"total={total} hits={len(page.hits)} took={page.took}")
                result.packets += self._write_hits(page.hits)
                self.progress.update_task(task_id, advance=len(page.hits))

                if self.token.cancelled:
                    logger.info(f"Export of {index} cancelled after {total} documents")
                    result.cancelled = True
                    break
                if not page.scroll_id:
                    break
                page = self._next_page(page.scroll_id)
        except Exception as e:
            self.progress.fail_task(task_id, str(e))
            raise
        finally:
            if page is not None and page.scroll_id:
                self.client.clear_scroll(page.scroll_id)
        self.progress.complete_task(task_id)
        logger.info(f"Exported {total} documents from {index}")

    def _next_page(self, scroll_id: str) -> ScrollPage:
        next_page = self.client.scroll_next(scroll_id, self.request.timeout)
        # Keep the last known cursor so it can still be released
        if not next_page.scroll_id:
            next_page.scroll_id = scroll_id
        return next_page

    def _write_hits(self, hits: Iterable[dict[str, Any]]) -> int:
        written = 0
        for hit in hits:
            index = hit["_index"]
            target_index = self.request.map_index(index)
            target_type = self.request.map_type(index, hit.get("_type") or DEFAULT_TYPE)
            doc_id = str(hit["_id"])
            fields: dict[str, Any] = hit.get("fields") or {}

            for field_name, value in fields.items():
                self.session.write(
                    ArchivePacket.document(
                        target_index, target_type, doc_id, field_name, self._field_text(value)
                    )
                )
                written += 1

            if SOURCE_FIELD not in fields:
                self.session.write(
                    ArchivePacket.document(
                        target_index,
                        target_type,
                        doc_id,
                        SOURCE_FIELD,
                        self.serializer.encode(hit.get("_source")),
                    )
                )
                written += 1
        return written

    def _field_text(self, value: Any) -> str:
        """Render a fetched field value as text.

        Stored fields arrive as lists; a single value is unwrapped.
        """
        if isinstance(value, list) and len(value) == 1:
            value = value[0]
        if isinstance(value, str):
            return value
        if isinstance(value, dict | list):
            return self.serializer.encode(value)
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)

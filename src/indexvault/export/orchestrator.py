"""Submission handling and the detached export task."""

import logging
import socket
import threading
from collections import OrderedDict
from collections.abc import Callable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from functools import partial
from pathlib import Path

from indexvault.archive.serializer import MsgspecJsonSerializer, PayloadSerializer
from indexvault.archive.service import new_session
from indexvault.archive.session import ArchiveSession, format_mode, session_mode
from indexvault.archive.watcher import BytesProgressWatcher
from indexvault.cluster.client import ClusterClient
from indexvault.config.models import Configuration
from indexvault.constants import DEFAULT_ARCHIVE_PATH, DEFAULT_WORKERS, FINISHED_SUMMARY_LIMIT
from indexvault.exceptions import RegistryError, SessionWriteError, SubmissionRejectedError
from indexvault.export.cancellation import CancellationToken
from indexvault.export.metadata import MetadataExporter
from indexvault.export.models import ExportRequest, ExportResponse, JobState
from indexvault.export.progress import NullProgressTracker, ProgressTracker
from indexvault.export.registry import JobRegistry
from indexvault.export.resolver import build_index_map, resolve_metadata_scope
from indexvault.export.streamer import DocumentStreamer
from indexvault.storage.job_store import SQLiteJobStore

logger = logging.getLogger(__name__)

SessionFactory = Callable[[Path, BytesProgressWatcher], ArchiveSession]


@dataclass
class ExportSummary:
    """Outcome of one export task, available to whoever waits on it."""

    job_id: str
    packets: int = 0
    metadata_packets: int = 0
    documents: int = 0
    total_bytes: int = 0
    byte_rate: float = 0.0
    cancelled: bool = False
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


class ExportOrchestrator:
    """Accepts export submissions and runs them on a bounded worker pool.

    ``submit`` is synchronous and never waits for the export itself: it opens
    the archive, registers the job and schedules the task. The job is in the
    registry before ``submit`` returns, even if the task has not started.

    Example:
        >>> with ExportOrchestrator(client) as orchestrator:
        ...     response = orchestrator.submit(ExportRequest(index="logs-*"))
        ...     if response.running:
        ...         summary = orchestrator.wait(response.state["job_id"])
    """

    def __init__(
        self,
        client: ClusterClient,
        registry: JobRegistry | None = None,
        *,
        executor: Executor | None = None,
        workers: int = DEFAULT_WORKERS,
        node_name: str | None = None,
        default_path: str = DEFAULT_ARCHIVE_PATH,
        session_factory: SessionFactory = new_session,
        serializer: PayloadSerializer | None = None,
        progress: ProgressTracker | None = None,
        max_finished: int = FINISHED_SUMMARY_LIMIT,
    ):
        """Initialize orchestrator with dependencies.

        Args:
            client: Cluster client shared by all jobs
            registry: Registry of running jobs (a private one when None)
            executor: Pool to run export tasks on (owned pool when None)
            workers: Size of the owned pool
            node_name: Identity of this node recorded in job state
            default_path: Target used when a request has no path
            session_factory: Builds an unopened session for a path and watcher
            serializer: Payload serializer for documents
            progress: Progress tracker shared by all jobs
            max_finished: Summaries of finished jobs kept for wait(), oldest dropped first
        """
        self.client = client
        self.registry = registry if registry is not None else JobRegistry()
        self._owns_executor = executor is None
        self.executor = executor if executor is not None else ThreadPoolExecutor(
            max_workers=workers, thread_name_prefix="indexvault-export"
        )
        self.node_name = node_name or socket.gethostname()
        self.default_path = default_path
        self.session_factory = session_factory
        self.serializer = serializer or MsgspecJsonSerializer()
        self.progress = progress or NullProgressTracker()
        self.max_finished = max_finished
        self._futures: dict[str, Future] = {}
        self._finished: OrderedDict[str, ExportSummary] = OrderedDict()
        self._futures_lock = threading.Lock()

    @classmethod
    def from_config(
        cls,
        config: Configuration,
        client: ClusterClient,
        progress: ProgressTracker | None = None,
    ) -> "ExportOrchestrator":
        """Build an orchestrator from loaded configuration."""
        store = SQLiteJobStore(config.export.job_db) if config.export.job_db else None
        return cls(
            client,
            JobRegistry(store=store),
            workers=config.export.workers,
            node_name=config.export.node_name,
            default_path=config.export.default_path,
            progress=progress,
        )

    def __enter__(self) -> "ExportOrchestrator":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown(wait=True)
        return False

    def submit(self, request: ExportRequest) -> ExportResponse:
        """Open the archive, register the job and schedule the export.

        Args:
            request: Export options

        Returns:
            ``running=True`` with the job state, or ``running=False`` with a reason
        """
        try:
            path, session = self._open_session(request)
        except SubmissionRejectedError as e:
            logger.warning(f"Export rejected: {e.reason}")
            return ExportResponse(running=False, reason=e.reason)

        state = JobState(path=str(path), node_name=self.node_name)
        token = CancellationToken()
        try:
            self.registry.add(state, token)
        except RegistryError as e:
            self._close_quietly(session)
            return ExportResponse(running=False, reason=f"job can not be registered: {e}")

        try:
            future = self.executor.submit(self._perform_export, request, state, session, token)
        except RuntimeError as e:
            # Pool already shut down
            self._deregister(state)
            self._close_quietly(session)
            return ExportResponse(running=False, reason=f"export can not be scheduled: {e}")

        self.registry.attach(state, future)
        with self._futures_lock:
            self._futures[state.job_id] = future
        # Runs immediately when the task already finished, so outside the lock
        future.add_done_callback(partial(self._on_done, state.job_id))
        logger.info(f"Export accepted: {state}")
        return ExportResponse(running=True, state=state.to_dict())

    def _open_session(self, request: ExportRequest) -> tuple[Path, ArchiveSession]:
        """Create and open the archive session for a request.

        Raises:
            SubmissionRejectedError: If the session cannot be opened
        """
        path = Path(request.path or self.default_path)
        watcher = BytesProgressWatcher(request.bytes_to_transfer)
        session = self.session_factory(path, watcher)
        mode = session_mode(request.overwrite, request.encode_entry)
        if not session.open(mode, path):
            reason = f"session can not be opened: mode={format_mode(mode)} path={path}"
            if session.last_error:
                reason = f"{reason} ({session.last_error})"
            raise SubmissionRejectedError(reason)
        return path, session

    def _perform_export(
        self,
        request: ExportRequest,
        state: JobState,
        session: ArchiveSession,
        token: CancellationToken,
    ) -> ExportSummary:
        """Detached export task body.

        Never raises: failures are logged and reported in the summary, and the
        job is deregistered on every exit path.
        """
        summary = ExportSummary(job_id=state.job_id)
        try:
            logger.info(f"Start of export: {state}")
            index_map = build_index_map(request.index, request.type)

            if MetadataExporter.should_export(request, session):
                scope = resolve_metadata_scope(request.index, request.type, request.index_types)
                exporter = MetadataExporter(self.client, session, request)
                summary.metadata_packets = exporter.export(scope)

            streamer = DocumentStreamer(
                self.client,
                session,
                request,
                token=token,
                serializer=self.serializer,
                progress=self.progress,
            )
            result = streamer.stream(index_map)
            summary.documents = result.hits
            summary.cancelled = result.cancelled

            session.close()
            summary.packets = session.packet_counter
            summary.total_bytes = session.watcher.total_bytes_transferred
            summary.byte_rate = session.watcher.recent_byte_rate_per_second
            logger.info(
                f"End of export: {state}, packets = {summary.packets}, "
                f"total bytes transferred = {summary.total_bytes}, "
                f"rate = {summary.byte_rate:f}"
            )
        except Exception as e:
            summary.error = str(e)
            summary.packets = session.packet_counter
            logger.exception(f"Export failed: {state}: {e}")
        finally:
            if session.is_open:
                self._close_quietly(session)
            self._deregister(state)
        return summary

    def _close_quietly(self, session: ArchiveSession) -> None:
        try:
            session.close()
        except SessionWriteError as e:
            logger.error(f"Failed to close archive session: {e}")

    def _deregister(self, state: JobState) -> None:
        try:
            self.registry.remove(state)
        except RegistryError as e:
            logger.error(f"Failed to deregister {state}: {e}")

    def running_jobs(self) -> list[JobState]:
        """Return the jobs currently in the registry."""
        return self.registry.list_jobs()

    def cancel(self, job_id: str) -> bool:
        """Request cooperative cancellation; True if the job was running."""
        return self.registry.cancel(job_id)

    def wait(self, job_id: str, timeout: float | None = None) -> ExportSummary | None:
        """Block until a submitted job finishes.

        Args:
            job_id: Job identifier from the accepted response
            timeout: Seconds to wait (None waits forever)

        Returns:
            The job's ExportSummary, or None if the job is unknown or still
            running when the timeout expires
        """
        with self._futures_lock:
            future = self._futures.get(job_id)
            if future is None:
                return self._finished.pop(job_id, None)
        try:
            summary = future.result(timeout=timeout)
        except FutureTimeoutError:
            return None
        with self._futures_lock:
            self._futures.pop(job_id, None)
            self._finished.pop(job_id, None)
        return summary

    def _on_done(self, job_id: str, future: Future) -> None:
        """Move a finished job's summary out of the pending futures.

        Only the newest ``max_finished`` summaries are kept, so callers that
        never wait do not grow the orchestrator without bound.
        """
        summary = None
        if not future.cancelled() and future.exception() is None:
            summary = future.result()
        with self._futures_lock:
            self._futures.pop(job_id, None)
            if summary is None or self.max_finished <= 0:
                return
            self._finished[job_id] = summary
            while len(self._finished) > self.max_finished:
                self._finished.popitem(last=False)

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting jobs and optionally wait for running ones."""
        if self._owns_executor:
            self.executor.shutdown(wait=wait)

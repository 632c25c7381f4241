"""Registry of running export jobs."""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass

from indexvault.exceptions import RegistryError
from indexvault.export.cancellation import CancellationToken
from indexvault.export.models import JobState
from indexvault.storage.job_store import JobStore

logger = logging.getLogger(__name__)


@dataclass
class RegistryEntry:
    """A registered job: its state, cancellation token and running task."""

    state: JobState
    token: CancellationToken
    future: Future | None = None


class JobRegistry:
    """Thread-safe directory of running export jobs.

    The submitting thread inserts, the export task removes, and listers may
    read at any time. All access goes through one lock and ``list_jobs`` returns a
    copy, so iteration never observes a half-applied change.

    Example:
        >>> registry = JobRegistry()
        >>> state = JobState(path="_all.tar.gz", node_name="node-1")
        >>> registry.add(state, CancellationToken())
        >>> state in registry
        True
        >>> registry.remove(state)
    """

    def __init__(self, store: JobStore | None = None):
        """Initialize registry.

        Args:
            store: Optional durable store mirrored on add/remove
        """
        self.store = store
        self._entries: dict[str, RegistryEntry] = {}
        self._lock = threading.Lock()

    def add(self, state: JobState, token: CancellationToken) -> RegistryEntry:
        """Register a job. Visible to ``list_jobs`` as soon as this returns.

        Raises:
            RegistryError: If the job is already registered or the store fails
        """
        entry = RegistryEntry(state=state, token=token)
        with self._lock:
            if state.job_id in self._entries:
                raise RegistryError(f"job {state.job_id} is already registered")
            self._entries[state.job_id] = entry
            if self.store is not None:
                try:
                    self.store.save(state)
                except RegistryError:
                    del self._entries[state.job_id]
                    raise
        logger.debug(f"Registered {state}")
        return entry

    def attach(self, state: JobState, future: Future) -> None:
        """Associate the scheduled task with a registered job."""
        with self._lock:
            entry = self._entries.get(state.job_id)
            if entry is not None and entry.state is state:
                entry.future = future

    def remove(self, state: JobState) -> None:
        """Deregister a job.

        The in-memory entry is dropped even when the durable store fails.

        Raises:
            RegistryError: If the job is unknown or the store fails
        """
        with self._lock:
            entry = self._entries.get(state.job_id)
            if entry is None or entry.state is not state:
                raise RegistryError(f"job {state.job_id} is not registered")
            del self._entries[state.job_id]
            if self.store is not None:
                self.store.delete(state.job_id)
        logger.debug(f"Deregistered {state}")

    def get(self, job_id: str) -> RegistryEntry | None:
        with self._lock:
            return self._entries.get(job_id)

    def list_jobs(self) -> list[JobState]:
        """Return a snapshot of running jobs, oldest first."""
        with self._lock:
            states = [entry.state for entry in self._entries.values()]
        return sorted(states, key=lambda state: state.timestamp)

    def cancel(self, job_id: str) -> bool:
        """Request cooperative cancellation of a job.

        Returns:
            True if the job was found
        """
        entry = self.get(job_id)
        if entry is None:
            return False
        entry.token.cancel()
        logger.info(f"Cancellation requested for {entry.state}")
        return True

    def __contains__(self, state: object) -> bool:
        if not isinstance(state, JobState):
            return False
        with self._lock:
            entry = self._entries.get(state.job_id)
            return entry is not None and entry.state is state

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

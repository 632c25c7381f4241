"""SQLite persistence of running export jobs.

Lets a second process (``indexvault jobs``) list the exports a node is
currently running. Every worker thread gets its own connection.
"""

import logging
import sqlite3
import threading
from pathlib import Path
from typing import Protocol

from indexvault.constants import SQLITE_BUSY_TIMEOUT_SECONDS
from indexvault.exceptions import RegistryError
from indexvault.export.models import JobState

logger = logging.getLogger(__name__)

SCHEMA = """
    CREATE TABLE IF NOT EXISTS export_jobs (
        job_id TEXT PRIMARY KEY NOT NULL,
        mode TEXT NOT NULL,
        node_name TEXT NOT NULL,
        path TEXT NOT NULL,
        started_at TEXT NOT NULL
    )
"""


class JobStore(Protocol):
    """Protocol for durable job-state storage."""

    def save(self, state: JobState) -> None:
        """Persist a running job.

        Raises:
            RegistryError: If the write fails
        """
        ...

    def delete(self, job_id: str) -> None:
        """Forget a job.

        Raises:
            RegistryError: If the delete fails
        """
        ...

    def list_running(self) -> list[JobState]:
        """Return all persisted jobs, oldest first."""
        ...


class SQLiteJobStore:
    """JobStore backed by a SQLite file with thread-local connections."""

    def __init__(self, db_path: str | Path):
        """Initialize store and create the schema.

        Args:
            db_path: Path to SQLite database file

        Raises:
            RegistryError: If the database cannot be created
        """
        self.db_path = Path(db_path).expanduser()
        self._local = threading.local()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            conn = self._get_connection()
            with conn:
                conn.execute(SCHEMA)
        except (OSError, sqlite3.Error) as e:
            raise RegistryError(f"Cannot initialize job store {self.db_path}: {e}") from e

    def _create_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path), timeout=float(SQLITE_BUSY_TIMEOUT_SECONDS))
        conn.row_factory = sqlite3.Row
        return conn

    def _get_connection(self) -> sqlite3.Connection:
        """Get or create the connection for the current thread."""
        if getattr(self._local, "conn", None) is None:
            self._local.conn = self._create_connection()
        return self._local.conn

    def close_thread_connection(self) -> None:
        """Close the current thread's connection, if any."""
        if getattr(self._local, "conn", None) is not None:
            self._local.conn.close()
            self._local.conn = None

    def save(self, state: JobState) -> None:
        try:
            conn = self._get_connection()
            with conn:
                conn.execute(
                    "INSERT OR REPLACE INTO export_jobs "
                    "(job_id, mode, node_name, path, started_at) VALUES (?, ?, ?, ?, ?)",
                    (
                        state.job_id,
                        state.mode,
                        state.node_name,
                        state.path,
                        state.timestamp.isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise RegistryError(f"Failed to save job {state.job_id}: {e}") from e

    def delete(self, job_id: str) -> None:
        try:
            conn = self._get_connection()
            with conn:
                conn.execute("DELETE FROM export_jobs WHERE job_id = ?", (job_id,))
        except sqlite3.Error as e:
            raise RegistryError(f"Failed to delete job {job_id}: {e}") from e

    def list_running(self) -> list[JobState]:
        try:
            rows = (
                self._get_connection()
                .execute(
                    "SELECT job_id, mode, node_name, path, started_at "
                    "FROM export_jobs ORDER BY started_at"
                )
                .fetchall()
            )
        except sqlite3.Error as e:
            raise RegistryError(f"Failed to list jobs: {e}") from e
        return [
            JobState.from_dict(
                {
                    "job_id": row["job_id"],
                    "mode": row["mode"],
                    "node_name": row["node_name"],
                    "path": row["path"],
                    "timestamp": row["started_at"],
                }
            )
            for row in rows
        ]

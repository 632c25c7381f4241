"""Persistence for export job state."""

from indexvault.storage.job_store import JobStore, SQLiteJobStore

__all__ = ["JobStore", "SQLiteJobStore"]

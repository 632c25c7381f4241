"""Per-index progress reporting for running exports.

The streamer reports one task per index token: started when the scroll is
opened, advanced by the hits of every page, then completed or failed. Hit
totals are not known up front, so trackers show counts and elapsed time only.
"""

import json
import sys
import threading
from typing import Any, Protocol, TextIO

from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TaskID, TextColumn, TimeElapsedColumn


class ProgressTracker(Protocol):
    """Receives streaming progress; implementations must accept calls from worker threads."""

    def start_task(self, task_id: str, description: str, total: int | None = None) -> None: ...

    def update_task(self, task_id: str, advance: int = 1) -> None: ...

    def complete_task(self, task_id: str) -> None: ...

    def fail_task(self, task_id: str, error: str) -> None: ...

    def emit_event(self, event: str, **data: Any) -> None: ...


class NullProgressTracker:
    """Discards progress (library default)."""

    def start_task(self, task_id: str, description: str, total: int | None = None) -> None:
        pass

    def update_task(self, task_id: str, advance: int = 1) -> None:
        pass

    def complete_task(self, task_id: str) -> None:
        pass

    def fail_task(self, task_id: str, error: str) -> None:
        pass

    def emit_event(self, event: str, **data: Any) -> None:
        pass


class RichProgressTracker:
    """Live spinner per exported index with its running document count."""

    def __init__(self, disable: bool = False, console: Console | None = None):
        """Initialize tracker.

        Args:
            disable: Render nothing (still safe to call)
            console: Console to render on (stderr console when None)
        """
        self.console = console or Console(stderr=True)
        self.disable = disable
        self._progress: Progress | None = None
        self._tasks: dict[str, TaskID] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "RichProgressTracker":
        if not self.disable:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold blue]{task.description}"),
                TextColumn("{task.completed:,.0f} docs"),
                TimeElapsedColumn(),
                console=self.console,
                transient=False,
            )
            self._progress.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
        return False

    def _task(self, task_id: str) -> TaskID | None:
        with self._lock:
            return self._tasks.get(task_id)

    def start_task(self, task_id: str, description: str, total: int | None = None) -> None:
        if self._progress is None:
            return
        rich_id = self._progress.add_task(description, total=total)
        with self._lock:
            self._tasks[task_id] = rich_id

    def update_task(self, task_id: str, advance: int = 1) -> None:
        rich_id = self._task(task_id)
        if self._progress is not None and rich_id is not None:
            self._progress.update(rich_id, advance=advance)

    def complete_task(self, task_id: str) -> None:
        rich_id = self._task(task_id)
        if self._progress is not None and rich_id is not None:
            self._progress.stop_task(rich_id)

    def fail_task(self, task_id: str, error: str) -> None:
        rich_id = self._task(task_id)
        if self._progress is not None and rich_id is not None:
            self._progress.update(rich_id, description=f"[red]{task_id} failed")
            self._progress.stop_task(rich_id)
        if not self.disable:
            self.console.print(f"[red]✗ {task_id}: {error}[/red]")

    def emit_event(self, event: str, **data: Any) -> None:
        pass


class JsonProgressTracker:
    """Writes one JSON object per progress event, one per line.

    Events: ``export_started``, ``index_started``, ``index_progress``,
    ``index_complete``, ``index_failed`` and ``export_complete`` or
    ``export_failed``.
    """

    def __init__(self, stream: TextIO | None = None):
        """Initialize tracker.

        Args:
            stream: Where events go (stdout when None)
        """
        self.stream = stream
        self._documents: dict[str, int] = {}
        self._lock = threading.Lock()

    def __enter__(self) -> "JsonProgressTracker":
        self.emit_event("export_started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.emit_event("export_failed", error=str(exc_val))
        else:
            self.emit_event("export_complete")
        return False

    def start_task(self, task_id: str, description: str, total: int | None = None) -> None:
        with self._lock:
            self._documents[task_id] = 0
        self.emit_event("index_started", task_id=task_id, description=description)

    def update_task(self, task_id: str, advance: int = 1) -> None:
        with self._lock:
            if task_id not in self._documents:
                return
            self._documents[task_id] += advance
            documents = self._documents[task_id]
        self.emit_event("index_progress", task_id=task_id, documents=documents)

    def complete_task(self, task_id: str) -> None:
        with self._lock:
            documents = self._documents.pop(task_id, 0)
        self.emit_event("index_complete", task_id=task_id, documents=documents)

    def fail_task(self, task_id: str, error: str) -> None:
        with self._lock:
            documents = self._documents.pop(task_id, 0)
        self.emit_event("index_failed", task_id=task_id, documents=documents, error=error)

    def emit_event(self, event: str, **data: Any) -> None:
        line = json.dumps({"event": event, **data}, default=str)
        with self._lock:
            print(line, file=self.stream or sys.stdout, flush=True)

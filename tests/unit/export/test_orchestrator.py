"""Tests for ExportOrchestrator submission and the detached export task."""

import logging
import tarfile
from concurrent.futures import Executor, Future
from unittest.mock import MagicMock

import pytest

from conftest import FakeClusterClient, RecordingSession, make_hit
from indexvault.exceptions import ClusterQueryError, RegistryError
from indexvault.export.models import ExportRequest
from indexvault.export.orchestrator import ExportOrchestrator
from indexvault.export.registry import JobRegistry
from indexvault.storage.job_store import SQLiteJobStore


class ManualExecutor(Executor):
    """Executor that only runs tasks when told to."""

    def __init__(self):
        self.pending = []
        self.closed = False

    def submit(self, fn, /, *args, **kwargs):
        if self.closed:
            raise RuntimeError("cannot schedule new futures after shutdown")
        future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        while self.pending:
            future, fn, args, kwargs = self.pending.pop(0)
            future.set_result(fn(*args, **kwargs))

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.closed = True


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def orchestrator(fake_client, executor, tmp_path):
    return ExportOrchestrator(
        fake_client,
        executor=executor,
        node_name="node-1",
        default_path=str(tmp_path / "_all.tar.gz"),
    )


def test_job_is_listed_before_task_runs(orchestrator, executor, sample_request):
    response = orchestrator.submit(sample_request)

    assert response.running is True
    assert response.reason is None
    assert response.state["path"] == sample_request.path
    assert response.state["node_name"] == "node-1"
    assert [job.job_id for job in orchestrator.running_jobs()] == [response.state["job_id"]]
    assert len(executor.pending) == 1


def test_successful_export_writes_archive_and_deregisters(
    orchestrator, executor, sample_request
):
    response = orchestrator.submit(sample_request)
    executor.run_all()

    summary = orchestrator.wait(response.state["job_id"])

    assert summary.succeeded
    assert summary.metadata_packets == 5
    assert summary.documents == 2
    assert summary.packets == 7
    assert summary.total_bytes > 0
    assert orchestrator.running_jobs() == []
    with tarfile.open(sample_request.path, "r:gz") as tar:
        assert tar.getnames() == [
            "idx1/_settings",
            "idx1/t/_mapping",
            "idx1/current/_alias",
            "idx2/_settings",
            "idx2/t/_mapping",
            "idx1/t/1/_source",
            "idx2/t/2/_source",
        ]


def test_default_path_when_request_has_none(orchestrator, executor, tmp_path):
    response = orchestrator.submit(ExportRequest(with_metadata=False))
    executor.run_all()

    assert response.state["path"] == str(tmp_path / "_all.tar.gz")
    assert (tmp_path / "_all.tar.gz").exists()


def test_existing_path_without_overwrite_is_rejected(orchestrator, sample_request, tmp_path):
    (tmp_path / "export.tar.gz").write_bytes(b"existing")

    response = orchestrator.submit(sample_request)

    assert response.running is False
    assert response.state is None
    assert "session can not be opened" in response.reason
    assert "[NONE, WRITE]" in response.reason
    assert str(tmp_path / "export.tar.gz") in response.reason
    assert orchestrator.running_jobs() == []


def test_path_in_use_by_running_job_is_rejected(orchestrator, sample_request):
    first = orchestrator.submit(sample_request)
    second = orchestrator.submit(sample_request)

    assert first.running is True
    assert second.running is False
    assert len(orchestrator.running_jobs()) == 1


def test_overwrite_replaces_existing_archive(orchestrator, executor, tmp_path):
    target = tmp_path / "export.tar.gz"
    target.write_bytes(b"existing")

    response = orchestrator.submit(ExportRequest(path=str(target), overwrite=True))
    executor.run_all()

    assert response.running is True
    with tarfile.open(target, "r:gz") as tar:
        assert "idx1/_settings" in tar.getnames()


def test_bulk_target_receives_no_metadata(orchestrator, executor, tmp_path):
    target = tmp_path / "export.bulk"

    response = orchestrator.submit(ExportRequest(path=str(target)))
    executor.run_all()
    summary = orchestrator.wait(response.state["job_id"])

    assert summary.metadata_packets == 0
    assert summary.documents == 2
    assert len(target.read_text().splitlines()) == 4


def test_failed_export_is_deregistered_and_reported(executor, tmp_path, caplog):
    class FailingClient(FakeClusterClient):
        def search(self, *args, **kwargs):
            raise ClusterQueryError("index_not_found_exception")

    sessions = []

    def session_factory(path, watcher):
        sessions.append(RecordingSession(watcher))
        return sessions[-1]

    orchestrator = ExportOrchestrator(
        FailingClient(), executor=executor, session_factory=session_factory
    )
    response = orchestrator.submit(ExportRequest(path=str(tmp_path / "a.tar")))
    executor.run_all()

    summary = orchestrator.wait(response.state["job_id"])

    assert not summary.succeeded
    assert "index_not_found_exception" in summary.error
    assert orchestrator.running_jobs() == []
    assert not sessions[0].is_open
    assert "Export failed" in caplog.text


def test_cancelled_export_is_deregistered(fake_client, executor, tmp_path):
    orchestrator = ExportOrchestrator(fake_client, executor=executor)
    response = orchestrator.submit(ExportRequest(path=str(tmp_path / "a.tar"), with_metadata=False))

    assert orchestrator.cancel(response.state["job_id"]) is True
    executor.run_all()
    summary = orchestrator.wait(response.state["job_id"])

    assert summary.cancelled
    assert summary.documents == 0
    assert orchestrator.running_jobs() == []
    assert orchestrator.cancel(response.state["job_id"]) is False


def test_deregistration_failure_is_only_logged(fake_client, executor, tmp_path, caplog):
    store = MagicMock()
    store.delete.side_effect = RegistryError("database is locked")
    orchestrator = ExportOrchestrator(fake_client, JobRegistry(store=store), executor=executor)

    response = orchestrator.submit(ExportRequest(path=str(tmp_path / "a.tar")))
    with caplog.at_level(logging.ERROR):
        executor.run_all()
    summary = orchestrator.wait(response.state["job_id"])

    assert summary.succeeded
    assert "Failed to deregister" in caplog.text


def test_registration_failure_rejects_and_closes_session(fake_client, executor, tmp_path):
    store = MagicMock()
    store.save.side_effect = RegistryError("database is locked")
    sessions = []

    def session_factory(path, watcher):
        sessions.append(RecordingSession(watcher))
        return sessions[-1]

    orchestrator = ExportOrchestrator(
        fake_client,
        JobRegistry(store=store),
        executor=executor,
        session_factory=session_factory,
    )

    response = orchestrator.submit(ExportRequest(path=str(tmp_path / "a.tar")))

    assert response.running is False
    assert "job can not be registered" in response.reason
    assert not sessions[0].is_open
    assert executor.pending == []


def test_shut_down_executor_rejects_and_deregisters(orchestrator, executor, sample_request):
    executor.shutdown()

    response = orchestrator.submit(sample_request)

    assert response.running is False
    assert "export can not be scheduled" in response.reason
    assert orchestrator.running_jobs() == []


def test_wait_unknown_job_returns_none(orchestrator):
    assert orchestrator.wait("missing") is None


def test_wait_times_out_while_task_pending(orchestrator, sample_request):
    response = orchestrator.submit(sample_request)

    assert orchestrator.wait(response.state["job_id"], timeout=0) is None


def test_thread_pool_end_to_end(fake_client, tmp_path):
    with ExportOrchestrator(fake_client, workers=2) as orchestrator:
        response = orchestrator.submit(ExportRequest(path=str(tmp_path / "a.zip")))
        summary = orchestrator.wait(response.state["job_id"], timeout=30)

    assert summary.succeeded
    assert summary.packets == 7
    assert orchestrator.running_jobs() == []


def test_from_config_persists_running_jobs(sample_config, executor, tmp_path):
    client = FakeClusterClient(pages={"_all": [[make_hit("idx1", "1", {})]]})
    orchestrator = ExportOrchestrator.from_config(sample_config, client)
    orchestrator.executor.shutdown()
    orchestrator.executor = executor

    response = orchestrator.submit(ExportRequest(path=str(tmp_path / "a.tar")))
    store = SQLiteJobStore(sample_config.export.job_db)

    assert [job.job_id for job in store.list_running()] == [response.state["job_id"]]
    assert response.state["node_name"] == "node-1"

    executor.run_all()

    assert store.list_running() == []


def test_injected_empty_registry_is_used(fake_client, executor, tmp_path):
    shared = JobRegistry()
    orchestrator = ExportOrchestrator(fake_client, shared, executor=executor)

    response = orchestrator.submit(ExportRequest(path=str(tmp_path / "a.tar")))

    assert orchestrator.registry is shared
    assert [job.job_id for job in shared.list_jobs()] == [response.state["job_id"]]


def test_finished_jobs_are_released_without_wait(fake_client, executor, tmp_path):
    orchestrator = ExportOrchestrator(fake_client, executor=executor, max_finished=2)

    job_ids = []
    for n in range(5):
        response = orchestrator.submit(
            ExportRequest(path=str(tmp_path / f"{n}.tar"), with_metadata=False)
        )
        job_ids.append(response.state["job_id"])
    executor.run_all()

    assert orchestrator._futures == {}
    assert list(orchestrator._finished) == job_ids[-2:]
    assert orchestrator.wait(job_ids[0]) is None
    assert orchestrator.wait(job_ids[-1]).documents == 2
    assert orchestrator.wait(job_ids[-1]) is None

"""Integration tests for CLI commands."""

import json
import tarfile

import pytest
from typer.testing import CliRunner

from conftest import FakeClusterClient, make_hit
from indexvault.cli.main import app
from indexvault.export.models import JobState
from indexvault.storage.job_store import SQLiteJobStore

runner = CliRunner()


@pytest.fixture
def env_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Provide configuration through environment variables only."""
    monkeypatch.delenv("INDEXVAULT_CONFIG", raising=False)
    monkeypatch.delenv("INDEXVAULT_JOB_DB", raising=False)
    monkeypatch.setenv("INDEXVAULT_HOSTS", "http://localhost:9200")


@pytest.fixture
def fake_cluster(monkeypatch: pytest.MonkeyPatch) -> FakeClusterClient:
    client = FakeClusterClient(
        settings={"idx1": {"index.number_of_shards": "1"}},
        mappings={"idx1": {"_doc": {"properties": {}}}},
        pages={"_all": [[make_hit("idx1", "1", {"title": "a"})]]},
    )
    monkeypatch.setattr(
        "indexvault.cli.commands.export.ElasticsearchClusterClient",
        lambda config: client,
    )
    return client


def test_version_command() -> None:
    """Test --version flag."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert "IndexVault version" in result.stdout
    assert "0.1.0" in result.stdout


def test_help_command() -> None:
    """Test --help flag."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "IndexVault" in result.stdout
    assert "check" in result.stdout
    assert "export" in result.stdout
    assert "jobs" in result.stdout


def test_export_command_help() -> None:
    result = runner.invoke(app, ["export", "--help"])
    assert result.exit_code == 0
    assert "--index" in result.stdout
    assert "--rename" in result.stdout


def test_check_command_with_missing_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test check command when config file doesn't exist and no env vars set."""
    monkeypatch.delenv("INDEXVAULT_CONFIG", raising=False)
    monkeypatch.delenv("INDEXVAULT_HOSTS", raising=False)

    result = runner.invoke(app, ["check", "--config", "/nonexistent/config.toml"])

    assert result.exit_code == 2


def test_jobs_without_job_db(env_config) -> None:
    result = runner.invoke(app, ["jobs", "--config", "/nonexistent/config.toml"])

    assert result.exit_code == 2


def test_jobs_json_lists_persisted_jobs(env_config, monkeypatch, tmp_path) -> None:
    db_path = tmp_path / "jobs.db"
    state = JobState(path="_all.tar.gz", node_name="node-1")
    SQLiteJobStore(db_path).save(state)
    monkeypatch.setenv("INDEXVAULT_JOB_DB", str(db_path))

    result = runner.invoke(
        app, ["jobs", "--config", "/nonexistent/config.toml", "--output", "json"]
    )

    assert result.exit_code == 0
    jobs = json.loads(result.stdout)
    assert [job["job_id"] for job in jobs] == [state.job_id]


def test_export_writes_archive(env_config, fake_cluster, tmp_path) -> None:
    target = tmp_path / "out.tar.gz"

    result = runner.invoke(
        app,
        ["export", "--config", "/nonexistent/config.toml", "--path", str(target)],
    )

    assert result.exit_code == 0
    with tarfile.open(target, "r:gz") as tar:
        assert tar.getnames() == [
            "idx1/_settings",
            "idx1/_doc/_mapping",
            "idx1/_doc/1/_source",
        ]


def test_export_rejected_when_archive_exists(env_config, fake_cluster, tmp_path) -> None:
    target = tmp_path / "out.tar.gz"
    target.write_bytes(b"existing")

    result = runner.invoke(
        app,
        ["export", "--config", "/nonexistent/config.toml", "--path", str(target)],
    )

    assert result.exit_code == 1
    assert target.read_bytes() == b"existing"


def test_export_bad_rename_exits_with_usage_error(env_config, fake_cluster, tmp_path) -> None:
    result = runner.invoke(
        app,
        [
            "export",
            "--config",
            "/nonexistent/config.toml",
            "--path",
            str(tmp_path / "out.tar"),
            "--rename",
            "no-separator",
        ],
    )

    assert result.exit_code == 2
    assert not (tmp_path / "out.tar").exists()

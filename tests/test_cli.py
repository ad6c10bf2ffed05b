"""Tests for CLI."""

import json
import logging
from unittest.mock import patch

import pytest

from depsync.cli import main
from depsync.config import load_config
from depsync.depgraph import Mismatch
from depsync.errors import WorkflowError
from depsync.sync import SyncReport, UpdateResult

CONFIG = """\
repositories:
  - https://github.com/acme/svc-a
git:
  author:
    name: Dep Bot
    email: bot@example.com
"""


@pytest.fixture(autouse=True)
def restore_logging():
    """Undo the root logger changes main() makes."""
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield
    root.setLevel(level)
    root.handlers = handlers


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "depsync.yaml"
    path.write_text(CONFIG)
    return path


@pytest.fixture
def report():
    return SyncReport(
        mismatches={"github.com/acme/svc-a": {"github.com/acme/svc-b": Mismatch("v1.0.0", "v1.2.0")}},
        results=[
            UpdateResult(
                "github.com/acme/svc-a",
                "github.com/acme/svc-b",
                "v1.0.0",
                "v1.2.0",
                "depsync/update-github-com-acme-svc-b-v1.2.0",
                "merged",
                pr_number=1,
            )
        ],
    )


class TestCLI:
    def test_version_flag(self):
        with pytest.raises(SystemExit) as exc:
            main(["--version"])
        assert exc.value.code == 0

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 1
        assert "usage" in capsys.readouterr().out

    def test_run_requires_token(self, config_file, monkeypatch):
        """Test run exits with 2 when GITHUB_TOKEN is missing."""
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        assert main(["run", "-c", str(config_file)]) == 2

    @patch("depsync.sync.DepSync")
    def test_run_prints_results(self, mock_sync, config_file, report, monkeypatch, capsys):
        """Test run prints the result summary."""
        monkeypatch.setenv("GITHUB_TOKEN", "t")
        mock_sync.return_value.run.return_value = report

        assert main(["run", "-c", str(config_file)]) == 0

        out = capsys.readouterr().out
        assert "Merged" in out
        assert "github.com/acme/svc-b v1.0.0 → v1.2.0 (#1)" in out

    @patch("depsync.sync.DepSync")
    def test_run_json(self, mock_sync, config_file, report, monkeypatch, capsys):
        """Test --json prints the report as JSON."""
        monkeypatch.setenv("GITHUB_TOKEN", "t")
        mock_sync.return_value.run.return_value = report

        assert main(["run", "-c", str(config_file), "--json"]) == 0

        data = json.loads(capsys.readouterr().out)
        assert data["results"][0]["status"] == "merged"
        assert data["mismatches"]["github.com/acme/svc-a"]["github.com/acme/svc-b"] == {
            "actual": "v1.0.0",
            "latest": "v1.2.0",
        }

    @patch("depsync.sync.DepSync")
    def test_run_dry_run_flag(self, mock_sync, config_file, report, monkeypatch):
        """Test --dry-run turns on dry_run in the config."""
        monkeypatch.setenv("GITHUB_TOKEN", "t")
        mock_sync.return_value.run.return_value = report

        main(["run", "-c", str(config_file), "--dry-run"])

        config = mock_sync.call_args.args[0]
        assert config.dry_run is True

    @patch("depsync.sync.DepSync")
    def test_run_fatal_error(self, mock_sync, config_file, monkeypatch, caplog):
        """Test a fatal error exits 1 and is logged."""
        monkeypatch.setenv("GITHUB_TOKEN", "t")
        mock_sync.return_value.run.side_effect = WorkflowError("failed to fix modules: clone failed")

        assert main(["run", "-c", str(config_file)]) == 1
        assert "failed to fix modules" in caplog.text

    def test_run_missing_config(self, tmp_path, monkeypatch):
        """Test a missing config file exits 1."""
        monkeypatch.setenv("GITHUB_TOKEN", "t")
        assert main(["run", "-c", str(tmp_path / "missing.yaml")]) == 1

    @patch("depsync.sync.DepSync")
    def test_check_json(self, mock_sync, config_file, report, monkeypatch, capsys):
        """Test check reports mismatches without running updates."""
        monkeypatch.setenv("GITHUB_TOKEN", "t")
        mock_sync.return_value.detect.return_value = report

        assert main(["check", "-c", str(config_file), "--json"]) == 0

        mock_sync.return_value.run.assert_not_called()
        data = json.loads(capsys.readouterr().out)
        assert "results" not in data
        assert "github.com/acme/svc-a" in data["mismatches"]

    @patch("depsync.sync.DepSync")
    def test_check_table(self, mock_sync, config_file, report, monkeypatch, capsys):
        """Test check prints a table of outdated dependencies."""
        monkeypatch.setenv("GITHUB_TOKEN", "t")
        mock_sync.return_value.detect.return_value = report

        assert main(["check", "-c", str(config_file)]) == 0
        out = capsys.readouterr().out
        assert "Outdated Dependencies" in out
        assert "v1.2.0" in out

    def test_init_writes_config(self, tmp_path):
        """Test init writes a loadable starter config."""
        path = tmp_path / "depsync.toml"

        assert main(["init", "-o", str(path)]) == 0

        config = load_config(path, environ={})
        assert config.repositories == ["https://github.com/your-org/your-service"]

    def test_init_refuses_overwrite(self, tmp_path):
        """Test init does not overwrite without --force."""
        path = tmp_path / "depsync.toml"
        path.write_text("existing")

        assert main(["init", "-o", str(path)]) == 1
        assert path.read_text() == "existing"

        assert main(["init", "-o", str(path), "--force"]) == 0


class TestLoggingSetup:
    def test_verbose_sets_debug(self):
        """Test -v enables DEBUG on the root logger."""
        from depsync.logging_setup import configure_logging

        configure_logging(verbose=True)

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING

    def test_handler_not_duplicated(self):
        """Test configuring twice leaves a single rich handler."""
        from rich.logging import RichHandler

        from depsync.logging_setup import configure_logging

        configure_logging()
        configure_logging()

        handlers = [h for h in logging.getLogger().handlers if isinstance(h, RichHandler)]
        assert len(handlers) == 1

"""Tests for the CLI entry point."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from worktrack import main as cli
from worktrack.exceptions import RebaseConflictError, UnknownWorkdirError
from worktrack.git.models import (
    BranchInfo,
    FileChange,
    FileChangesResult,
    WorkingTreeStatus,
)


@pytest.fixture
def service():
    svc = MagicMock()
    svc.get_status = AsyncMock(
        return_value=WorkingTreeStatus(
            branch=BranchInfo(current="main"), untracked=["notes.txt"]
        )
    )
    svc.get_file_changes = AsyncMock(
        return_value=FileChangesResult(
            changes=[FileChange(path="a.py", status="modified")],
            skipped_dirs=["node_modules"],
        )
    )
    svc.pull = AsyncMock()
    svc.push = AsyncMock()
    return svc


@pytest.fixture
def registry(service):
    reg = MagicMock()
    reg.get.return_value = service
    with (
        patch("worktrack.main.build_registry", return_value=reg),
        patch("worktrack.main.configure_logging"),
    ):
        yield reg


class TestMain:
    def test_status_text(self, registry, tmp_path, capsys):
        assert cli.main(["--cwd", str(tmp_path), "status"]) == 0
        out = capsys.readouterr().out
        assert "Branch: main" in out
        assert "notes.txt" in out
        registry.get.assert_called_once_with(tmp_path)

    def test_status_json(self, registry, tmp_path, capsys):
        assert cli.main(["--cwd", str(tmp_path), "--json", "status"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["branch"]["current"] == "main"
        assert payload["untracked"] == ["notes.txt"]
        assert payload["truncated"] is False

    def test_changes_text_reports_skipped(self, registry, tmp_path, capsys):
        assert cli.main(["--cwd", str(tmp_path), "changes"]) == 0
        assert "1 directory skipped: node_modules" in capsys.readouterr().out

    def test_changes_json_omits_unset(self, registry, tmp_path, capsys):
        assert cli.main(["--cwd", str(tmp_path), "--json", "changes"]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert "truncated_limit" not in payload
        assert payload["skipped_dirs"] == ["node_modules"]

    def test_pull_arguments(self, registry, service, tmp_path):
        assert cli.main(["--cwd", str(tmp_path), "pull", "--remote", "up"]) == 0
        service.pull.assert_awaited_once_with("up", None)

    def test_push_arguments(self, registry, service, tmp_path):
        argv = ["--cwd", str(tmp_path), "push", "--branch", "topic", "--set-upstream"]
        assert cli.main(argv) == 0
        service.push.assert_awaited_once_with("origin", "topic", set_upstream=True)

    def test_git_error_exit_code(self, registry, service, tmp_path, capsys):
        service.pull.side_effect = RebaseConflictError(
            ("pull", "--rebase", "origin"), 1, "CONFLICT (content)"
        )
        assert cli.main(["--cwd", str(tmp_path), "pull"]) == 1
        err = capsys.readouterr().err
        assert "rebase hit conflicts" in err
        assert "CONFLICT (content)" in err

    def test_init_uses_registry(self, registry, service, tmp_path, capsys):
        service.workdir = tmp_path
        registry.init_repository = AsyncMock(return_value=service)
        assert cli.main(["--cwd", str(tmp_path), "init"]) == 0
        registry.init_repository.assert_awaited_once_with(tmp_path)
        registry.get.assert_not_called()
        assert "Initialized git repository" in capsys.readouterr().out

    def test_unknown_workdir(self, registry, tmp_path, capsys):
        registry.get.side_effect = UnknownWorkdirError("Invalid workdir: x")
        assert cli.main(["--cwd", str(tmp_path), "status"]) == 1
        assert "Invalid workdir" in capsys.readouterr().err

    def test_config_error(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("WORKTRACK_MAX_STATUS_ENTRIES", "-5")
        assert cli.main(["--cwd", str(tmp_path), "status"]) == 1
        assert "Configuration error" in capsys.readouterr().err

    def test_csv_env_list_is_accepted(self, registry, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("WORKTRACK_IGNORED_DIR_PREFIXES", "vendor")
        assert cli.main(["--cwd", str(tmp_path), "status"]) == 0
        assert "Branch: main" in capsys.readouterr().out

    def test_run_exits_with_main_code(self):
        with (
            patch("worktrack.main.main", return_value=3),
            pytest.raises(SystemExit) as exc,
        ):
            cli.run()
        assert exc.value.code == 3

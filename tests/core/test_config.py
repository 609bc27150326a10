"""Tests for WorktrackConfig."""

from __future__ import annotations

from pathlib import Path

import pytest

from worktrack.core.config import (
    DEFAULT_IGNORED_DIR_PREFIXES,
    WorktrackConfig,
    load_config,
)
from worktrack.exceptions import ConfigError


class TestWorktrackConfig:
    def test_default_values(self):
        config = WorktrackConfig()
        assert config.git_binary == "git"
        assert config.max_status_entries == 5000
        assert config.max_change_entries == 5000
        assert config.status_timeout_seconds == 15.0
        assert config.aux_timeout_seconds == 10.0
        assert config.stderr_cap_bytes == 8192
        assert config.ignored_dir_prefixes == DEFAULT_IGNORED_DIR_PREFIXES
        assert config.http_proxy is None
        assert config.log_level == "INFO"
        assert config.log_dir is None

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("WORKTRACK_MAX_STATUS_ENTRIES", "100")
        monkeypatch.setenv("WORKTRACK_STATUS_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("WORKTRACK_HTTPS_PROXY", "http://proxy:8080")
        config = WorktrackConfig()
        assert config.max_status_entries == 100
        assert config.status_timeout_seconds == 2.5
        assert config.https_proxy == "http://proxy:8080"

    def test_ignored_prefixes_from_csv_string(self):
        config = WorktrackConfig(ignored_dir_prefixes="vendor/, target ,,")
        assert config.ignored_dir_prefixes == ["vendor", "target"]

    def test_extra_path_dirs_from_csv_string(self):
        config = WorktrackConfig(extra_path_dirs="/opt/a, /opt/b")
        assert config.extra_path_dirs == [Path("/opt/a"), Path("/opt/b")]

    def test_list_fields_from_csv_env(self, monkeypatch):
        monkeypatch.setenv("WORKTRACK_IGNORED_DIR_PREFIXES", "vendor,target")
        monkeypatch.setenv("WORKTRACK_EXTRA_PATH_DIRS", "/opt/a,/opt/b")
        config = WorktrackConfig()
        assert config.ignored_dir_prefixes == ["vendor", "target"]
        assert config.extra_path_dirs == [Path("/opt/a"), Path("/opt/b")]

    def test_single_ignored_prefix_from_env(self, monkeypatch):
        monkeypatch.setenv("WORKTRACK_IGNORED_DIR_PREFIXES", "vendor")
        assert WorktrackConfig().ignored_dir_prefixes == ["vendor"]

    @pytest.mark.parametrize(
        "field",
        [
            "max_status_entries",
            "max_change_entries",
            "status_timeout_seconds",
            "aux_timeout_seconds",
            "sync_timeout_seconds",
            "stderr_cap_bytes",
        ],
    )
    def test_limits_must_be_positive(self, field):
        with pytest.raises(ValueError, match="must be positive"):
            WorktrackConfig(**{field: 0})

    def test_zero_kill_grace_allowed(self):
        assert WorktrackConfig(kill_grace_seconds=0).kill_grace_seconds == 0

    def test_negative_kill_grace_rejected(self):
        with pytest.raises(ValueError, match="must not be negative"):
            WorktrackConfig(kill_grace_seconds=-1)


class TestLoadConfig:
    def test_reads_environment(self, monkeypatch):
        monkeypatch.setenv("WORKTRACK_GIT_BINARY", "/opt/git/bin/git")
        assert load_config().git_binary == "/opt/git/bin/git"

    def test_invalid_value_raises_config_error(self, monkeypatch):
        monkeypatch.setenv("WORKTRACK_MAX_CHANGE_ENTRIES", "0")
        with pytest.raises(ConfigError, match="must be positive") as exc:
            load_config()
        assert exc.value.__cause__ is not None

    def test_csv_list_from_environment(self, monkeypatch):
        monkeypatch.setenv("WORKTRACK_IGNORED_DIR_PREFIXES", "vendor,target")
        assert load_config().ignored_dir_prefixes == ["vendor", "target"]

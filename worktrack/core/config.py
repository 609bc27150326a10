"""Unified configuration via pydantic-settings."""

from pathlib import Path
from typing import Annotated

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict
from pydantic_settings.exceptions import SettingsError

from worktrack.exceptions import ConfigError

DEFAULT_IGNORED_DIR_PREFIXES = [
    "node_modules",
    ".pnpm",
    "dist",
    "out",
    ".next",
    "build",
]


class WorktrackConfig(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WORKTRACK_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    git_binary: str = "git"

    # Limits
    max_status_entries: int = 5000
    max_change_entries: int = 5000
    status_timeout_seconds: float = 15.0
    aux_timeout_seconds: float = 10.0
    sync_timeout_seconds: float = 120.0
    kill_grace_seconds: float = 2.0
    stderr_cap_bytes: int = 8192

    # Change list
    # Comma-separated in the environment, not JSON.
    ignored_dir_prefixes: Annotated[list[str], NoDecode] = (
        DEFAULT_IGNORED_DIR_PREFIXES
    )

    # Subprocess environment
    extra_path_dirs: Annotated[list[Path], NoDecode] = []
    http_proxy: str | None = None
    https_proxy: str | None = None
    no_proxy: str | None = None

    # Logging
    log_level: str = "INFO"
    log_dir: Path | None = None
    log_max_bytes: int = 10_485_760
    log_backup_count: int = 5

    @field_validator(
        "max_status_entries",
        "max_change_entries",
        "status_timeout_seconds",
        "aux_timeout_seconds",
        "sync_timeout_seconds",
        "stderr_cap_bytes",
    )
    @classmethod
    def require_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("limit must be positive")
        return v

    @field_validator("kill_grace_seconds")
    @classmethod
    def require_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError("kill_grace_seconds must not be negative")
        return v

    @field_validator("ignored_dir_prefixes", mode="before")
    @classmethod
    def parse_ignored_dir_prefixes(cls, v: list[str] | str) -> list[str]:
        if isinstance(v, str):
            v = v.split(",")
        return [p.strip().strip("/") for p in v if p.strip().strip("/")]

    @field_validator("extra_path_dirs", mode="before")
    @classmethod
    def parse_extra_path_dirs(cls, v: list[Path] | str) -> list[Path]:
        if isinstance(v, str):
            return [Path(p.strip()) for p in v.split(",") if p.strip()]
        return v


def load_config(**overrides: object) -> WorktrackConfig:
    """Load settings from the environment, raising ConfigError when invalid."""
    try:
        return WorktrackConfig(**overrides)  # type: ignore[arg-type]
    except (ValidationError, SettingsError) as e:
        raise ConfigError(str(e)) from e

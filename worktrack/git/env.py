"""Environment for spawned git processes."""

from __future__ import annotations

import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping

    from worktrack.core.config import WorktrackConfig

_WSL_UNC_PREFIXES = ("//wsl.localhost/", "//wsl$/")


def enhanced_path(
    extra_dirs: list[Path], current: str | None = None, home: Path | None = None
) -> str:
    """Prepend common toolchain install locations to PATH, keeping order unique."""
    home = home or Path.home()
    current = os.environ.get("PATH", "") if current is None else current
    candidates = [
        *(str(d) for d in extra_dirs),
        "/usr/local/bin",
        "/opt/homebrew/bin",
        "/opt/homebrew/sbin",
        str(home / ".local" / "bin"),
        str(home / ".cargo" / "bin"),
        str(home / ".bun" / "bin"),
        str(home / ".local" / "share" / "mise" / "shims"),
        *current.split(os.pathsep),
    ]
    seen: dict[str, None] = {}
    for entry in candidates:
        if entry and entry not in seen:
            seen[entry] = None
    return os.pathsep.join(seen)


def proxy_env(config: WorktrackConfig) -> dict[str, str]:
    env: dict[str, str] = {}
    for name, value in (
        ("http_proxy", config.http_proxy),
        ("https_proxy", config.https_proxy),
        ("no_proxy", config.no_proxy),
    ):
        if value:
            env[name] = value
            env[name.upper()] = value
    return env


def _normalize_for_git(path: str) -> str:
    return path.replace("\\", "/").rstrip("/")


def is_wsl_unc_path(path: str, platform: str | None = None) -> bool:
    if (platform or sys.platform) != "win32":
        return False
    normalized = _normalize_for_git(path).lower()
    return any(normalized.startswith(prefix) for prefix in _WSL_UNC_PREFIXES)


def with_safe_directory(
    env: dict[str, str], workdir: str, platform: str | None = None
) -> dict[str, str]:
    """Trust a WSL UNC workdir through GIT_CONFIG_* without touching global config."""
    if not is_wsl_unc_path(workdir, platform):
        return env
    safe_dir = _normalize_for_git(workdir)
    if not safe_dir:
        return env

    try:
        count = max(int(env.get("GIT_CONFIG_COUNT", "0")), 0)
    except ValueError:
        count = 0
    env = dict(env)
    env[f"GIT_CONFIG_KEY_{count}"] = "safe.directory"
    env[f"GIT_CONFIG_VALUE_{count}"] = safe_dir
    env["GIT_CONFIG_COUNT"] = str(count + 1)
    return env


def build_git_env(
    config: WorktrackConfig,
    workdir: Path,
    base: Mapping[str, str] | None = None,
) -> dict[str, str]:
    env = dict(os.environ if base is None else base)
    env.update(proxy_env(config))
    env["PATH"] = enhanced_path(config.extra_path_dirs, env.get("PATH", ""))
    env["GIT_TERMINAL_PROMPT"] = "0"
    return with_safe_directory(env, str(workdir))

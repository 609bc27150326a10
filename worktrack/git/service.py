"""Async working-tree state service for a single git worktree."""

from __future__ import annotations

import asyncio
import re
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from worktrack.core.events import (
    STATUS_TRUNCATED,
    SYNC_COMPLETED,
    SYNC_FAILED,
    Event,
)
from worktrack.core.paths import check_tree_path, resolve_in_repo
from worktrack.exceptions import (
    GitCommandError,
    GitError,
    GitSpawnError,
    InvalidBranchNameError,
    InvalidRevisionError,
)
from worktrack.git.changes import ChangeListBuilder
from worktrack.git.collector import BoundedCollector
from worktrack.git.models import (
    CommitFileChange,
    DiffStats,
    FileChangesResult,
    FileChangeStatus,
    FileDiff,
    GitBranch,
    GitLogEntry,
    WorkingTreeStatus,
)
from worktrack.git.runner import GitRunner
from worktrack.git.status import StatusRecordClassifier
from worktrack.git.sync import SmartSync

if TYPE_CHECKING:
    from worktrack.core.config import WorktrackConfig
    from worktrack.core.events import EventBus

logger = structlog.get_logger()

STATUS_ARGS = (
    "status",
    "--porcelain=v2",
    "--branch",
    "-z",
    "--untracked-files=normal",
)

_BRANCH_NAME_RE = re.compile(r"^[a-zA-Z0-9._/\-]+$")
_LOG_DELIMITER = "\x01"
_LOG_FORMAT = "%H%x01%ai%x01%an%x01%ae%x01%s%x01%D"
_BRANCH_FORMAT = (
    "%(HEAD)%01%(refname:short)%01%(objectname:short)%01%(contents:subject)"
)
_EMPTY_REPO_MARKER = "does not have any commits yet"
_NO_HEAD_MARKERS = ("unknown revision", "bad revision")
_REVISION_RE = re.compile(r"^[0-9A-Za-z][0-9A-Za-z._/~^@{}\-]*$")
_SHOW_FORMAT = "%H%n%an%n%ae%n%ad%n%s%n%b"

_NAME_STATUS: dict[str, FileChangeStatus] = {
    "A": "added",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "U": "conflicted",
}
_SHORTSTAT_PATTERNS = {
    "files_changed": re.compile(r"(\d+) files? changed"),
    "insertions": re.compile(r"(\d+) insertions?\(\+\)"),
    "deletions": re.compile(r"(\d+) deletions?\(-\)"),
}


def is_empty_repo_error(error: GitCommandError) -> bool:
    return _EMPTY_REPO_MARKER in error.stderr


def parse_name_status(output: str) -> list[CommitFileChange]:
    """Parse `--name-status -z` output.

    Each NUL-separated entry is a status token followed by one path, or by
    the source and destination paths for renames and copies (``R100``).
    """
    tokens = output.split("\0")
    files: list[CommitFileChange] = []
    i = 0
    while i < len(tokens):
        code = tokens[i].strip()
        if not code:
            i += 1
            continue
        letter = code[0]
        status = _NAME_STATUS.get(letter, "modified")
        if letter in "RC" and i + 2 < len(tokens):
            files.append(
                CommitFileChange(
                    path=tokens[i + 2], status=status, original_path=tokens[i + 1]
                )
            )
            i += 3
        elif i + 1 < len(tokens) and tokens[i + 1]:
            files.append(CommitFileChange(path=tokens[i + 1], status=status))
            i += 2
        else:
            break
    return files


def parse_shortstat(output: str) -> DiffStats:
    counts = {}
    for field, pattern in _SHORTSTAT_PATTERNS.items():
        match = pattern.search(output)
        counts[field] = int(match.group(1)) if match else 0
    return DiffStats(**counts)


class GitService:
    """Status, change lists, diffs and smart sync for one worktree."""

    def __init__(
        self,
        workdir: Path,
        config: WorktrackConfig,
        runner: GitRunner | None = None,
        event_bus: EventBus | None = None,
    ) -> None:
        self.workdir = workdir
        self._config = config
        self._runner = runner or GitRunner(config)
        self._event_bus = event_bus

    def _collector(self) -> BoundedCollector:
        return BoundedCollector(
            self._runner,
            timeout=self._config.status_timeout_seconds,
            kill_grace=self._config.kill_grace_seconds,
        )

    def _sync(self) -> SmartSync:
        return SmartSync(
            self._runner, self.workdir, timeout=self._config.sync_timeout_seconds
        )

    async def _run(self, *args: str) -> str:
        return await self._runner.run_checked(*args, cwd=self.workdir)

    async def _emit(self, name: str, **data: object) -> None:
        if self._event_bus is not None:
            await self._event_bus.emit(
                Event(name=name, data={"workdir": str(self.workdir), **data})
            )

    async def is_repo(self) -> bool:
        try:
            code, _, _ = await self._runner.run(
                "rev-parse", "--is-inside-work-tree", cwd=self.workdir
            )
        except GitSpawnError:
            return False
        return code == 0

    async def init(self) -> None:
        await self._run("init")
        logger.info("repository_initialized", workdir=str(self.workdir))

    # --- working-tree state -------------------------------------------------

    async def get_status(self) -> WorkingTreeStatus:
        """Stream git status into buckets, capped at ``max_status_entries``."""
        classifier = StatusRecordClassifier(self._config.max_status_entries)
        await self._collector().collect(classifier, *STATUS_ARGS, cwd=self.workdir)
        status = classifier.result()
        if status.truncated:
            await self._emit(STATUS_TRUNCATED, limit=status.truncated_limit)
        return status

    async def get_file_changes(self) -> FileChangesResult:
        builder = ChangeListBuilder(
            self._config.max_change_entries, self._config.ignored_dir_prefixes
        )
        await self._collector().collect(builder, *STATUS_ARGS, cwd=self.workdir)
        result = builder.result()
        if result.skipped_dirs:
            logger.debug(
                "file_changes_skipped_dirs",
                workdir=str(self.workdir),
                skipped=result.skipped_dirs,
            )
        if result.truncated:
            await self._emit(STATUS_TRUNCATED, limit=result.truncated_limit)
        return result

    # --- sync -----------------------------------------------------------------

    async def pull(self, remote: str = "origin", branch: str | None = None) -> None:
        try:
            await self._sync().pull(remote, branch)
        except GitError as e:
            await self._emit(SYNC_FAILED, operation="pull", error=str(e))
            raise
        await self._emit(SYNC_COMPLETED, operation="pull", remote=remote)

    async def push(
        self,
        remote: str = "origin",
        branch: str | None = None,
        *,
        set_upstream: bool = False,
    ) -> None:
        try:
            await self._sync().push(remote, branch, set_upstream=set_upstream)
        except GitError as e:
            await self._emit(SYNC_FAILED, operation="push", error=str(e))
            raise
        await self._emit(SYNC_COMPLETED, operation="push", remote=remote)

    async def fetch(self, remote: str = "origin") -> None:
        await self._runner.run_checked(
            "fetch", remote, cwd=self.workdir, timeout=self._config.sync_timeout_seconds
        )

    # --- history & branches -------------------------------------------------

    async def get_branches(self) -> list[GitBranch]:
        stdout = await self._run("branch", "-a", f"--format={_BRANCH_FORMAT}")
        branches: list[GitBranch] = []
        for line in stdout.splitlines():
            parts = line.split(_LOG_DELIMITER, 3)
            if len(parts) < 3 or not parts[1] or parts[1].endswith("/HEAD"):
                continue
            branches.append(
                GitBranch(
                    name=parts[1],
                    is_current=parts[0] == "*",
                    commit=parts[2],
                    label=parts[3] if len(parts) > 3 else "",
                )
            )
        if branches:
            return branches

        # Empty repository: rev-parse fails without commits, symbolic-ref does not.
        code, stdout, _ = await self._runner.run(
            "symbolic-ref", "--short", "HEAD", cwd=self.workdir
        )
        if code != 0 or not stdout.strip():
            return []
        return [
            GitBranch(
                name=stdout.strip(),
                is_current=True,
                label="(no commits yet)",
            )
        ]

    async def get_log(self, max_count: int = 50, skip: int = 0) -> list[GitLogEntry]:
        args = ["log", f"-n{max_count}", f"--pretty=format:{_LOG_FORMAT}"]
        if skip > 0:
            args.append(f"--skip={skip}")
        try:
            stdout = await self._run(*args)
        except GitCommandError as e:
            if is_empty_repo_error(e):
                return []
            raise

        entries: list[GitLogEntry] = []
        for line in stdout.splitlines():
            if not line.strip():
                continue
            parts = (line.split(_LOG_DELIMITER) + [""] * 6)[:6]
            refs = parts[5].replace("HEAD ->", "").strip()
            entries.append(
                GitLogEntry(
                    hash=parts[0],
                    date=parts[1],
                    author_name=parts[2],
                    author_email=parts[3],
                    message=parts[4].strip(),
                    refs=refs or None,
                )
            )
        return entries

    async def checkout(self, branch: str) -> None:
        _validate_branch_name(branch)
        await self._run("checkout", branch)

    async def create_branch(self, name: str, start_point: str | None = None) -> None:
        _validate_branch_name(name)
        await self._run("checkout", "-b", name, start_point or "HEAD")

    async def commit(self, message: str, files: list[str] | None = None) -> str:
        """Commit staged changes (staging *files* first) and return the short hash."""
        if files:
            await self.stage(files)
        await self._run("commit", "-m", message)
        return (await self._run("rev-parse", "--short", "HEAD")).strip()

    # --- commits --------------------------------------------------------------

    async def show_commit(self, commit: str) -> str:
        _validate_revision(commit)
        return await self._run(
            "show", commit, f"--pretty=format:{_SHOW_FORMAT}", "--stat"
        )

    async def get_commit_files(self, commit: str) -> list[CommitFileChange]:
        """Files changed by *commit*; merges are compared with their first parent."""
        _validate_revision(commit)
        parents = (await self._run("rev-list", "--parents", "-n", "1", commit)).split()
        if len(parents) > 2:
            stdout = await self._run(
                "diff", "--name-status", "-z", "-M", f"{commit}^1", commit
            )
        else:
            stdout = await self._run(
                "diff-tree",
                "-r",
                "--root",
                "--no-commit-id",
                "--name-status",
                "-z",
                "-M",
                commit,
            )
        return parse_name_status(stdout)

    async def get_commit_diff(
        self,
        commit: str,
        path: str,
        status: FileChangeStatus | None = None,
        original_path: str | None = None,
    ) -> FileDiff:
        """Content of *path* before and after *commit*."""
        _validate_revision(commit)
        check_tree_path(path)
        before = check_tree_path(original_path) if original_path else path
        if status == "added":
            original, modified = "", await self._show(f"{commit}:{path}")
        elif status == "deleted":
            original, modified = await self._show(f"{commit}^:{before}"), ""
        else:
            original, modified = await asyncio.gather(
                self._show(f"{commit}^:{before}"), self._show(f"{commit}:{path}")
            )
        return FileDiff(path=path, original=original, modified=modified)

    # --- diffs & file operations ----------------------------------------------

    async def get_diff(self, *, staged: bool = False) -> str:
        args = ["diff"]
        if staged:
            args.append("--staged")
        return await self._run(*args)

    async def _show(self, ref: str) -> str:
        """Blob content at *ref*, or "" when the object does not exist there."""
        code, stdout, _ = await self._runner.run("show", ref, cwd=self.workdir)
        return stdout if code == 0 else ""

    async def get_file_diff(self, path: str, *, staged: bool) -> FileDiff:
        absolute = resolve_in_repo(self.workdir, path)
        if staged:
            original, modified = await asyncio.gather(
                self._show(f"HEAD:{path}"), self._show(f":{path}")
            )
        else:
            original = await self._show(f":{path}") or await self._show(f"HEAD:{path}")
            modified = _read_text(absolute)
        return FileDiff(path=path, original=original, modified=modified)

    async def get_diff_stats(self) -> DiffStats:
        """Line counts of staged plus unstaged changes against HEAD."""
        args = ("diff", "--shortstat", "HEAD")
        code, stdout, stderr = await self._runner.run(*args, cwd=self.workdir)
        if code != 0:
            # No HEAD yet in an empty repository.
            if any(marker in stderr for marker in _NO_HEAD_MARKERS):
                return DiffStats()
            raise GitCommandError(args, code, stderr)
        return parse_shortstat(stdout)

    async def check_ignored(self, paths: list[str]) -> set[str]:
        if not paths:
            return set()
        args = ("check-ignore", "-z", "--", *paths)
        code, stdout, stderr = await self._runner.run(*args, cwd=self.workdir)
        if code == 1:
            return set()
        if code != 0:
            raise GitCommandError(args, code, stderr)
        return {path for path in stdout.split("\0") if path}

    async def stage(self, paths: list[str]) -> None:
        if paths:
            await self._run("add", "--", *paths)

    async def unstage(self, paths: list[str]) -> None:
        if paths:
            await self._run("reset", "HEAD", "--", *paths)

    async def discard(self, paths: list[str]) -> None:
        """Drop working-tree changes: delete untracked paths, restore tracked ones."""
        resolved = {path: resolve_in_repo(self.workdir, path) for path in paths}
        if not resolved:
            return

        stdout = await self._run(
            "ls-files",
            "--others",
            "--exclude-standard",
            "--directory",
            "-z",
            "--",
            *resolved,
        )
        untracked = {p.rstrip("/") for p in stdout.split("\0") if p}
        tracked: list[str] = []
        for path, absolute in resolved.items():
            if path.rstrip("/") in untracked:
                if absolute.is_dir():
                    shutil.rmtree(absolute)
                else:
                    absolute.unlink(missing_ok=True)
            else:
                tracked.append(path)

        if tracked:
            await self._run("checkout", "--", *tracked)
        logger.info(
            "changes_discarded",
            workdir=str(self.workdir),
            tracked=len(tracked),
            untracked=len(resolved) - len(tracked),
        )


def _validate_branch_name(name: str) -> None:
    if not _BRANCH_NAME_RE.match(name) or name.startswith("-"):
        raise InvalidBranchNameError(f"Invalid branch name: {name}")


def _validate_revision(commit: str) -> None:
    if not _REVISION_RE.match(commit):
        raise InvalidRevisionError(f"Invalid commit reference: {commit!r}")


def _read_text(path: Path) -> str:
    try:
        return path.read_bytes().decode("utf-8", errors="replace")
    except OSError:
        return ""

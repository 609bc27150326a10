"""Flat, path-keyed change list for the working-changes view."""

from __future__ import annotations

import structlog

from worktrack.git.models import FileChange, FileChangesResult, FileChangeStatus
from worktrack.git.records import (
    PorcelainRecordReader,
    index_status,
    is_conflict,
    is_staged,
)

logger = structlog.get_logger()


def _worktree_status(y: str, conflicted: bool) -> FileChangeStatus:
    if y == "U":
        return "conflicted"
    if y == "D":
        return "deleted"
    return "conflicted" if conflicted else "modified"


class ChangeListBuilder(PorcelainRecordReader):
    """Emits one FileChange per staged side and per unstaged side of a path.

    Paths under an ignored top-level directory are dropped, but the
    directory is remembered so callers can report what was skipped.
    """

    def __init__(self, max_entries: int, ignored_prefixes: list[str]) -> None:
        super().__init__()
        self.max_entries = max_entries
        self.truncated = False
        self._ignored = frozenset(p.strip("/") for p in ignored_prefixes)
        self._changes: list[FileChange] = []
        self._skipped: dict[str, None] = {}

    @property
    def saturated(self) -> bool:
        return self.truncated

    def mark_truncated(self) -> None:
        self.truncated = True

    def _is_skipped(self, path: str) -> bool:
        first, sep, _ = path.partition("/")
        if sep and first in self._ignored:
            self._skipped.setdefault(first, None)
            return True
        return False

    def _add(self, change: FileChange) -> None:
        if self.truncated:
            return
        if len(self._changes) >= self.max_entries:
            self.truncated = True
            logger.info("file_changes_truncated", limit=self.max_entries)
            return
        self._changes.append(change)

    def _on_untracked(self, path: str) -> None:
        if not self.truncated and not self._is_skipped(path):
            self._add(FileChange(path=path, status="untracked", staged=False))

    def _on_entry(
        self, xy: str, path: str, original_path: str | None, unmerged: bool
    ) -> None:
        if self.truncated or self._is_skipped(path):
            return
        x, y = xy[0], xy[1]
        conflicted = is_conflict(x, y, unmerged)
        if is_staged(x):
            self._add(
                FileChange(
                    path=path,
                    status=index_status(x),
                    staged=True,
                    original_path=original_path,
                )
            )
        if y not in ".?!":
            status = _worktree_status(y, conflicted)
            self._add(FileChange(path=path, status=status, staged=False))

    @property
    def skipped_dirs(self) -> list[str] | None:
        return list(self._skipped) or None

    def result(self) -> FileChangesResult:
        return FileChangesResult(
            changes=list(self._changes),
            skipped_dirs=self.skipped_dirs,
            truncated=self.truncated,
            truncated_limit=self.max_entries if self.truncated else None,
        )

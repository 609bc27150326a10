"""Accumulates porcelain v2 records into working-tree status buckets."""

from __future__ import annotations

import structlog

from worktrack.git.models import BranchInfo, FileChangeStatus, WorkingTreeStatus
from worktrack.git.records import (
    PorcelainRecordReader,
    index_status,
    is_conflict,
    is_staged,
)

logger = structlog.get_logger()


class _Bucket:
    __slots__ = ("paths", "seen")

    def __init__(self) -> None:
        self.paths: list[str] = []
        self.seen: set[str] = set()


class StatusRecordClassifier(PorcelainRecordReader):
    """Buckets each path into staged/modified/deleted/untracked/conflicted.

    Every new bucket membership counts toward ``max_entries``; an entry that
    would exceed the cap flips ``truncated`` and everything after it is
    ignored. Branch headers precede all path records, so branch info is
    complete even in a truncated result.
    """

    def __init__(self, max_entries: int) -> None:
        super().__init__()
        self.max_entries = max_entries
        self.count = 0
        self.truncated = False
        self._staged = _Bucket()
        self._staged_status: dict[str, FileChangeStatus] = {}
        self._modified = _Bucket()
        self._deleted = _Bucket()
        self._untracked = _Bucket()
        self._conflicted = _Bucket()

    @property
    def saturated(self) -> bool:
        return self.truncated

    def mark_truncated(self) -> None:
        self.truncated = True

    def _add(self, bucket: _Bucket, path: str) -> bool:
        if self.truncated:
            return False
        if path in bucket.seen:
            return True
        if self.count >= self.max_entries:
            self.truncated = True
            logger.info("status_truncated", limit=self.max_entries)
            return False
        bucket.paths.append(path)
        bucket.seen.add(path)
        self.count += 1
        return True

    def _on_untracked(self, path: str) -> None:
        self._add(self._untracked, path)

    def _on_entry(
        self, xy: str, path: str, original_path: str | None, unmerged: bool
    ) -> None:
        x, y = xy[0], xy[1]
        if is_staged(x) and self._add(self._staged, path):
            self._staged_status.setdefault(path, index_status(x))
        if y == "D":
            self._add(self._deleted, path)
        elif y not in ".?!U":
            self._add(self._modified, path)
        if is_conflict(x, y, unmerged):
            self._add(self._conflicted, path)

    def result(self) -> WorkingTreeStatus:
        return WorkingTreeStatus(
            branch=BranchInfo(
                current=self.current,
                tracking=self.tracking,
                ahead=self.ahead,
                behind=self.behind,
            ),
            staged=list(self._staged.paths),
            staged_status=dict(self._staged_status),
            modified=list(self._modified.paths),
            deleted=list(self._deleted.paths),
            untracked=list(self._untracked.paths),
            conflicted=list(self._conflicted.paths),
            truncated=self.truncated,
            truncated_limit=self.max_entries if self.truncated else None,
        )

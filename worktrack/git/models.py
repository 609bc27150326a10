"""Data models for working-tree state and git command results."""

from typing import Literal

from pydantic import BaseModel, ConfigDict

FileChangeStatus = Literal[
    "modified", "added", "deleted", "renamed", "copied", "untracked", "conflicted"
]


class FileChange(BaseModel):
    """One side (index or working tree) of a path's change."""

    model_config = ConfigDict(frozen=True)

    path: str
    status: FileChangeStatus
    staged: bool = False
    original_path: str | None = None


class BranchInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    current: str | None = None
    tracking: str | None = None
    ahead: int = 0
    behind: int = 0

    @property
    def detached(self) -> bool:
        return self.current is None


class WorkingTreeStatus(BaseModel):
    """Parsed output of git status --porcelain=v2, bucketed by path."""

    model_config = ConfigDict(frozen=True)

    branch: BranchInfo = BranchInfo()
    staged: list[str] = []
    staged_status: dict[str, FileChangeStatus] = {}
    modified: list[str] = []
    deleted: list[str] = []
    untracked: list[str] = []
    conflicted: list[str] = []
    truncated: bool = False
    truncated_limit: int | None = None

    @property
    def entry_count(self) -> int:
        return (
            len(self.staged)
            + len(self.modified)
            + len(self.deleted)
            + len(self.untracked)
            + len(self.conflicted)
        )

    @property
    def is_clean(self) -> bool:
        return self.entry_count == 0 and not self.truncated


class FileChangesResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    changes: list[FileChange] = []
    skipped_dirs: list[str] | None = None
    truncated: bool = False
    truncated_limit: int | None = None


class FileDiff(BaseModel):
    model_config = ConfigDict(frozen=True)

    path: str
    original: str
    modified: str


class GitBranch(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    is_current: bool = False
    commit: str = ""
    label: str = ""


class GitLogEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    date: str
    message: str
    author_name: str
    author_email: str
    refs: str | None = None


class CommitFileChange(BaseModel):
    """A path touched by a commit, relative to its first parent."""

    model_config = ConfigDict(frozen=True)

    path: str
    status: FileChangeStatus
    original_path: str | None = None


class DiffStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    files_changed: int = 0
    insertions: int = 0
    deletions: int = 0

"""Shared exception types for worktrack."""


class WorktrackError(Exception):
    """Base exception for all worktrack errors."""


class ConfigError(WorktrackError):
    """Configuration is invalid or missing."""


class GitError(WorktrackError):
    """A git invocation failed."""


class GitSpawnError(GitError):
    """The git binary could not be started."""


class GitCommandError(GitError):
    """git ran but exited with a non-zero status."""

    def __init__(
        self,
        args: tuple[str, ...] | list[str],
        returncode: int,
        stderr: str = "",
    ) -> None:
        self.args_ = tuple(args)
        self.returncode = returncode
        self.stderr = stderr
        detail = stderr.strip() or f"exit {returncode}"
        super().__init__(f"git {' '.join(self.args_)} failed: {detail}")


class RebaseConflictError(GitCommandError):
    """Rebase pull failed; the rebase has already been aborted."""


class PushRejectedError(GitCommandError):
    """Push was rejected again after one reconcile-and-retry cycle."""


class PathTraversalError(WorktrackError):
    """A file path resolves outside the repository root."""


class UnknownWorkdirError(WorktrackError):
    """Directory is neither authorized nor a git repository."""


class InvalidBranchNameError(WorktrackError):
    """Branch name contains characters git or the shell would misread."""


class InvalidRevisionError(WorktrackError):
    """Commit reference is empty or could be read as a git option."""

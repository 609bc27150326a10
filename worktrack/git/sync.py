"""Smart push/pull: fast-forward, then rebase, then one push retry."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from worktrack.exceptions import GitCommandError, PushRejectedError, RebaseConflictError

if TYPE_CHECKING:
    from worktrack.git.runner import GitRunner

logger = structlog.get_logger()

_REJECTION_MARKERS = ("non-fast-forward", "rejected")
_CONFLICT_MARKERS = ("conflict", "could not apply")


def is_push_rejection(error: GitCommandError) -> bool:
    text = f"{error.stderr}\n{error}".lower()
    return any(marker in text for marker in _REJECTION_MARKERS)


def is_rebase_conflict(error: GitCommandError) -> bool:
    text = error.stderr.lower()
    return any(marker in text for marker in _CONFLICT_MARKERS)


class SmartSync:
    """Reconciles a worktree with its remote without leaving a rebase behind."""

    def __init__(self, runner: GitRunner, cwd: Path, *, timeout: float) -> None:
        self._runner = runner
        self._cwd = cwd
        self._timeout = timeout

    async def _git(self, *args: str) -> str:
        return await self._runner.run_checked(
            *args, cwd=self._cwd, timeout=self._timeout
        )

    async def pull(self, remote: str = "origin", branch: str | None = None) -> None:
        if branch:
            await self._git("pull", remote, branch)
            return

        try:
            await self._git("pull", "--ff-only", remote)
            logger.info("pull_fast_forward", cwd=str(self._cwd), remote=remote)
            return
        except GitCommandError as ff_error:
            logger.info(
                "pull_ff_only_failed",
                cwd=str(self._cwd),
                remote=remote,
                stderr=ff_error.stderr.strip(),
            )

        try:
            await self._git("pull", "--rebase", remote)
        except GitCommandError as rebase_error:
            aborted = await self._abort_rebase()
            if not aborted and not is_rebase_conflict(rebase_error):
                # No rebase started, so this is not a conflict.
                raise
            raise RebaseConflictError(
                rebase_error.args_, rebase_error.returncode, rebase_error.stderr
            ) from rebase_error
        logger.info("pull_rebased", cwd=str(self._cwd), remote=remote)

    async def _abort_rebase(self) -> bool:
        """Best-effort `rebase --abort`; True when a rebase was actually stopped."""
        try:
            await self._git("rebase", "--abort")
        except GitCommandError as abort_error:
            # No rebase in progress is the common case when the pull failed
            # before rewriting anything.
            logger.debug(
                "rebase_abort_failed",
                cwd=str(self._cwd),
                stderr=abort_error.stderr.strip(),
            )
            return False
        logger.info("rebase_aborted", cwd=str(self._cwd))
        return True

    async def push(
        self,
        remote: str = "origin",
        branch: str | None = None,
        *,
        set_upstream: bool = False,
    ) -> None:
        args = ["push"]
        if set_upstream:
            args.append("-u")
        args.append(remote)
        if branch:
            args.append(branch)
        elif set_upstream:
            args.append("HEAD")

        try:
            await self._git(*args)
            return
        except GitCommandError as first_error:
            if not is_push_rejection(first_error):
                raise
            logger.info(
                "push_rejected_retrying",
                cwd=str(self._cwd),
                remote=remote,
                branch=branch,
            )

        await self.pull(remote)
        try:
            await self._git(*args)
        except GitCommandError as second_error:
            if not is_push_rejection(second_error):
                raise
            raise PushRejectedError(
                second_error.args_, second_error.returncode, second_error.stderr
            ) from second_error

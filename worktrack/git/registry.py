"""Explicit per-worktree GitService registry."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from worktrack.core.events import WORKTREE_REMOVED
from worktrack.exceptions import UnknownWorkdirError
from worktrack.git.runner import GitRunner
from worktrack.git.service import GitService

if TYPE_CHECKING:
    from worktrack.core.config import WorktrackConfig
    from worktrack.core.events import Event, EventBus

logger = structlog.get_logger()


class GitServiceRegistry:
    """Owns one GitService per resolved worktree directory.

    Entries are dropped when a ``worktree.removed`` event names their
    directory, or explicitly through ``unregister``/``clear``.
    """

    def __init__(
        self, config: WorktrackConfig, event_bus: EventBus | None = None
    ) -> None:
        self._config = config
        self._runner = GitRunner(config)
        self._event_bus = event_bus
        self._services: dict[Path, GitService] = {}
        self._authorized: set[Path] = set()
        if event_bus is not None:
            event_bus.subscribe(WORKTREE_REMOVED, self._on_worktree_removed)

    def __len__(self) -> int:
        return len(self._services)

    def __contains__(self, workdir: object) -> bool:
        if not isinstance(workdir, (str, Path)):
            return False
        return Path(workdir).resolve() in self._services

    def authorize(self, workdir: str | Path) -> Path:
        resolved = Path(workdir).resolve()
        self._authorized.add(resolved)
        return resolved

    def _validate(self, workdir: str | Path) -> Path:
        resolved = Path(workdir).resolve()
        if resolved in self._authorized:
            return resolved
        if not resolved.is_dir():
            raise UnknownWorkdirError(
                f"Invalid workdir: {resolved} does not exist or is not a directory"
            )
        # .git is a directory in the main worktree and a file in linked ones.
        if not (resolved / ".git").exists():
            raise UnknownWorkdirError(
                f"Invalid workdir: {resolved} is not a git repository"
            )
        return resolved

    def get(self, workdir: str | Path) -> GitService:
        resolved = self._validate(workdir)
        service = self._services.get(resolved)
        if service is None:
            service = GitService(resolved, self._config, self._runner, self._event_bus)
            self._services[resolved] = service
            logger.debug("git_service_created", workdir=str(resolved))
        return service

    async def init_repository(self, workdir: str | Path) -> GitService:
        """Run `git init` in an existing directory and return a fresh service."""
        resolved = Path(workdir).resolve()
        if not resolved.is_dir():
            raise UnknownWorkdirError(
                f"Invalid workdir: {resolved} does not exist or is not a directory"
            )
        service = self._services.get(resolved) or GitService(
            resolved, self._config, self._runner, self._event_bus
        )
        await service.init()
        # Drop any service cached before the repository existed.
        self.invalidate(resolved)
        return self.get(resolved)

    def invalidate(self, workdir: str | Path) -> None:
        """Drop the cached service but keep the directory authorized."""
        self._services.pop(Path(workdir).resolve(), None)

    def unregister(self, workdir: str | Path) -> None:
        resolved = Path(workdir).resolve()
        self._authorized.discard(resolved)
        if self._services.pop(resolved, None) is not None:
            logger.debug("git_service_removed", workdir=str(resolved))

    def clear(self) -> None:
        self._services.clear()
        self._authorized.clear()

    async def _on_worktree_removed(self, event: Event) -> None:
        workdir = event.data.get("workdir")
        if workdir:
            self.unregister(workdir)

"""Async git process spawning with bounded stderr and termination escalation."""

from __future__ import annotations

import asyncio
import contextlib
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from worktrack.exceptions import GitCommandError, GitSpawnError
from worktrack.git.env import build_git_env

if TYPE_CHECKING:
    from worktrack.core.config import WorktrackConfig

logger = structlog.get_logger()

_READ_SIZE = 64 * 1024


class GitProcess:
    """Handle on one running git subprocess.

    stdout is consumed by the caller in chunks; stderr is drained in the
    background and only the first ``stderr_cap`` bytes are kept.
    """

    def __init__(
        self,
        proc: asyncio.subprocess.Process,
        args: tuple[str, ...],
        stderr_cap: int,
    ) -> None:
        self._proc = proc
        self.args = args
        self._stderr_cap = stderr_cap
        self._stderr = bytearray()
        self._stderr_task: asyncio.Task[None] | None = None
        if proc.stderr is not None:
            self._stderr_task = asyncio.create_task(self._drain_stderr(proc.stderr))

    @property
    def pid(self) -> int:
        return self._proc.pid

    async def read_chunk(self, size: int = _READ_SIZE) -> bytes:
        """Next stdout chunk; ``b""`` at end of stream."""
        assert self._proc.stdout is not None
        return await self._proc.stdout.read(size)

    async def communicate(self) -> tuple[bytes, int]:
        """Read stdout to EOF and wait for exit; stderr keeps draining meanwhile."""
        assert self._proc.stdout is not None
        stdout = await self._proc.stdout.read()
        return stdout, await self._proc.wait()

    async def _drain_stderr(self, stream: asyncio.StreamReader) -> None:
        while True:
            chunk = await stream.read(_READ_SIZE)
            if not chunk:
                return
            room = self._stderr_cap - len(self._stderr)
            if room > 0:
                self._stderr.extend(chunk[:room])

    async def stderr_text(self) -> str:
        if self._stderr_task is not None:
            await self._stderr_task
        return self._stderr.decode("utf-8", errors="replace")

    async def wait(self) -> int:
        return await self._proc.wait()

    def close(self) -> None:
        if self._stderr_task is not None and not self._stderr_task.done():
            self._stderr_task.cancel()

    async def kill(self) -> None:
        with contextlib.suppress(ProcessLookupError):
            self._proc.kill()
        await self._proc.wait()

    async def terminate(self, grace: float) -> None:
        """Send SIGTERM, escalating to SIGKILL if git is still alive after *grace*."""
        if self._proc.returncode is not None:
            return
        with contextlib.suppress(ProcessLookupError):
            self._proc.terminate()
        try:
            await asyncio.wait_for(self._proc.wait(), timeout=grace)
        except TimeoutError:
            logger.warning("git_kill_escalated", command=self.args, pid=self.pid)
            await self.kill()


class GitRunner:
    """Spawns the configured git binary with the augmented environment."""

    def __init__(self, config: WorktrackConfig) -> None:
        self._config = config

    async def spawn(self, *args: str, cwd: Path) -> GitProcess:
        proc = await self._create(args, cwd)
        return GitProcess(proc, args, self._config.stderr_cap_bytes)

    async def run(
        self, *args: str, cwd: Path, timeout: float | None = None
    ) -> tuple[int, str, str]:
        """Run a short git command to completion."""
        timeout = timeout or self._config.aux_timeout_seconds
        proc = await self.spawn(*args, cwd=cwd)
        try:
            stdout_bytes, returncode = await asyncio.wait_for(
                proc.communicate(), timeout=timeout
            )
            stderr = await proc.stderr_text()
        except TimeoutError:
            logger.warning("git_exec_timeout", command=args, timeout=timeout)
            await proc.kill()
            raise GitCommandError(
                args, -1, f"Command timed out after {timeout}s"
            ) from None
        finally:
            proc.close()
        return returncode, stdout_bytes.decode("utf-8", errors="replace"), stderr

    async def run_checked(
        self, *args: str, cwd: Path, timeout: float | None = None
    ) -> str:
        code, stdout, stderr = await self.run(*args, cwd=cwd, timeout=timeout)
        if code != 0:
            raise GitCommandError(args, code, stderr or stdout)
        return stdout

    async def _create(
        self, args: tuple[str, ...], cwd: Path
    ) -> asyncio.subprocess.Process:
        if not cwd.is_dir():
            raise GitSpawnError(f"Directory does not exist: {cwd}")

        cmd = (self._config.git_binary, *args)
        logger.debug("git_exec", command=cmd, cwd=str(cwd))
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                cwd=cwd,
                env=build_git_env(self._config, cwd),
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise GitSpawnError(
                f"{self._config.git_binary} is not installed or not in PATH"
            ) from e
        except OSError as e:
            logger.error("git_exec_error", command=cmd, error=str(e))
            raise GitSpawnError(str(e)) from e

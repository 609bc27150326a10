"""Shared fixtures and fake git processes for testing."""

from __future__ import annotations

import asyncio
import os

import pytest

from worktrack.core.config import WorktrackConfig
from worktrack.core.events import EventBus
from worktrack.exceptions import GitCommandError


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch):
    """Prevent .env file and shell env from leaking into tests."""
    monkeypatch.setitem(WorktrackConfig.model_config, "env_file", None)
    for key in list(os.environ):
        if key.startswith("WORKTRACK_"):
            monkeypatch.delenv(key, raising=False)


class FakeGitProcess:
    """Stands in for GitProcess; stdout is served from a list of chunks."""

    def __init__(
        self,
        chunks: list[bytes] | None = None,
        *,
        returncode: int = 0,
        stderr: str = "",
        hang: bool = False,
        args: tuple[str, ...] = ("status",),
    ) -> None:
        self.args = args
        self.pid = 4242
        self.returncode: int | None = None
        self.terminated = False
        self.closed = False
        self.chunks_read = 0
        self._chunks = list(chunks or [])
        self._final_code = returncode
        self._stderr = stderr
        self._hang = hang
        self._stopped = asyncio.Event()

    @property
    def chunks_left(self) -> int:
        return len(self._chunks)

    async def read_chunk(self, size: int = 65536) -> bytes:
        if self.terminated:
            return b""
        if self._chunks:
            self.chunks_read += 1
            return self._chunks.pop(0)
        if self._hang:
            await self._stopped.wait()
        return b""

    async def wait(self) -> int:
        if self._hang and not self.terminated:
            await self._stopped.wait()
        if self.returncode is None:
            self.returncode = self._final_code
        return self.returncode

    async def terminate(self, grace: float) -> None:
        self.terminated = True
        self.returncode = -15
        self._stopped.set()

    async def stderr_text(self) -> str:
        return self._stderr

    def close(self) -> None:
        self.closed = True


class FakeRunner:
    """Records git invocations and replays scripted (code, stdout, stderr) results."""

    def __init__(
        self,
        results: list[tuple[int, str, str]] | None = None,
        *,
        proc: FakeGitProcess | None = None,
    ) -> None:
        self.results = list(results or [])
        self.proc = proc
        self.calls: list[tuple[str, ...]] = []
        self.spawned: list[tuple[str, ...]] = []

    async def spawn(self, *args, cwd):
        self.spawned.append(args)
        assert self.proc is not None
        return self.proc

    async def run(self, *args, cwd, timeout=None):
        self.calls.append(args)
        if self.results:
            return self.results.pop(0)
        return 0, "", ""

    async def run_checked(self, *args, cwd, timeout=None):
        code, stdout, stderr = await self.run(*args, cwd=cwd, timeout=timeout)
        if code != 0:
            raise GitCommandError(args, code, stderr or stdout)
        return stdout


def porcelain(*records: str) -> bytes:
    """Encode records the way ``git status -z`` does."""
    return b"".join(r.encode() + b"\0" for r in records)


@pytest.fixture
def config():
    return WorktrackConfig(kill_grace_seconds=0.1)


@pytest.fixture
def event_bus():
    return EventBus()

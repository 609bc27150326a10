"""Bounded streaming of git output into a record consumer."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import structlog

from worktrack.exceptions import GitCommandError
from worktrack.git.parser import PorcelainStreamParser

if TYPE_CHECKING:
    from worktrack.git.runner import GitProcess, GitRunner

logger = structlog.get_logger()


class RecordSink(Protocol):
    @property
    def saturated(self) -> bool: ...

    def accept(self, record: str) -> None: ...

    def finish(self) -> None: ...

    def mark_truncated(self) -> None: ...


class BoundedCollector:
    """Streams one git invocation into a sink under a wall-clock timeout.

    The subprocess is stopped as soon as the sink is saturated or the
    timeout elapses; both cases return ``True`` (truncated) instead of
    raising. A non-zero exit of a process that ran to completion raises
    GitCommandError with the captured stderr.
    """

    def __init__(self, runner: GitRunner, *, timeout: float, kill_grace: float) -> None:
        self._runner = runner
        self._timeout = timeout
        self._kill_grace = kill_grace

    async def collect(self, sink: RecordSink, *args: str, cwd: Path) -> bool:
        proc = await self._runner.spawn(*args, cwd=cwd)
        parser = PorcelainStreamParser(sink.accept)
        try:
            try:
                returncode = await asyncio.wait_for(
                    self._pump(proc, parser, sink), timeout=self._timeout
                )
            except TimeoutError:
                logger.warning(
                    "git_stream_timeout",
                    command=args,
                    timeout=self._timeout,
                    records=parser.records_emitted,
                )
                sink.mark_truncated()
                returncode = None
            except asyncio.CancelledError:
                await proc.terminate(self._kill_grace)
                raise

            parser.finish()
            sink.finish()

            if returncode is None:
                await proc.terminate(self._kill_grace)
                return True
            if returncode != 0:
                raise GitCommandError(args, returncode, await proc.stderr_text())
            return sink.saturated
        finally:
            proc.close()

    async def _pump(
        self, proc: GitProcess, parser: PorcelainStreamParser, sink: RecordSink
    ) -> int | None:
        """Feed stdout to the parser; ``None`` means the sink stopped early."""
        while True:
            chunk = await proc.read_chunk()
            if not chunk:
                break
            parser.feed(chunk)
            if sink.saturated:
                logger.debug("git_stream_saturated", command=proc.args, pid=proc.pid)
                return None
        return await proc.wait()

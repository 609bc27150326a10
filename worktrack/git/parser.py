"""Incremental splitter for NUL-delimited git output."""

from __future__ import annotations

from collections.abc import Callable
from typing import NamedTuple

import structlog

logger = structlog.get_logger()

RECORD_DELIMITER = b"\0"


class StreamState(NamedTuple):
    """Bytes received after the last delimiter, awaiting completion."""

    remainder: bytes = b""


def split_records(state: StreamState, chunk: bytes) -> tuple[StreamState, list[str]]:
    """Append *chunk* to the remainder and cut off every complete record.

    Splitting happens on raw bytes: NUL never occurs inside a multi-byte
    UTF-8 sequence, so a character split across chunks is reassembled
    before decoding.
    """
    if not chunk:
        return state, []
    *complete, rest = (state.remainder + chunk).split(RECORD_DELIMITER)
    records = [r.decode("utf-8", errors="replace") for r in complete]
    return StreamState(rest), records


class PorcelainStreamParser:
    """Feeds complete records to *on_record* in the order git wrote them."""

    def __init__(self, on_record: Callable[[str], None]) -> None:
        self._on_record = on_record
        self._state = StreamState()
        self.records_emitted = 0

    @property
    def remainder(self) -> bytes:
        return self._state.remainder

    def feed(self, chunk: bytes) -> int:
        self._state, records = split_records(self._state, chunk)
        for record in records:
            self._on_record(record)
        self.records_emitted += len(records)
        return len(records)

    def finish(self) -> None:
        """End of stream; an unterminated trailing fragment is dropped."""
        if self._state.remainder:
            logger.debug(
                "porcelain_trailing_fragment_dropped",
                size=len(self._state.remainder),
            )
        self._state = StreamState()

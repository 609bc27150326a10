"""Porcelain v2 record interpretation shared by the status and change-list consumers.

Record shapes (``-z`` mode)::

    # branch.head <name>|(detached)
    # branch.upstream <upstream>
    # branch.ab +<ahead> -<behind>
    1 XY sub mH mI mW hH hI <path>
    2 XY sub mH mI mW hH hI Xscore <path>      followed by <origPath> record
    u XY sub m1 m2 m3 mW h1 h2 h3 <path>
    ? <path>
    ! <path>
"""

from __future__ import annotations

from typing import NamedTuple

import structlog

from worktrack.git.models import FileChangeStatus

logger = structlog.get_logger()

# Number of space-separated fields before the path, per entry type.
_PATH_FIELD_INDEX = {"1": 8, "2": 9, "u": 10}

_UNCHANGED = frozenset(".?!")

_INDEX_STATUS: dict[str, FileChangeStatus] = {
    "A": "added",
    "D": "deleted",
    "R": "renamed",
    "C": "copied",
    "U": "conflicted",
}


def index_status(x: str) -> FileChangeStatus:
    return _INDEX_STATUS.get(x, "modified")


def is_conflict(x: str, y: str, unmerged: bool = False) -> bool:
    return unmerged or x == "U" or y == "U"


def is_staged(x: str) -> bool:
    return x not in _UNCHANGED


class PendingRename(NamedTuple):
    """Rename/copy header waiting for its companion path record."""

    xy: str
    path: str | None


class EntryFields(NamedTuple):
    xy: str
    path: str | None


def split_entry(record: str, entry_type: str) -> EntryFields | None:
    """Split an entry on its fixed-width field prefix; the path keeps its spaces."""
    index = _PATH_FIELD_INDEX[entry_type]
    parts = record.split(" ", index)
    if len(parts) < 2 or len(parts[1]) != 2:
        return None
    if len(parts) <= index or not parts[index]:
        return EntryFields(parts[1], None)
    return EntryFields(parts[1], parts[index])


class PorcelainRecordReader:
    """State machine over porcelain v2 records.

    Idle until a rename/copy header arrives; then the next non-empty record
    completes the pending rename regardless of its leading character.
    Subclasses accumulate entries in ``_on_entry`` / ``_on_untracked``.
    """

    def __init__(self) -> None:
        self.current: str | None = None
        self.tracking: str | None = None
        self.ahead = 0
        self.behind = 0
        self._pending: PendingRename | None = None

    @property
    def awaiting_rename_path(self) -> bool:
        return self._pending is not None

    @property
    def saturated(self) -> bool:
        """True once no further entries will be accepted."""
        return False

    def accept(self, record: str) -> None:
        record = record.strip("\r\n")
        if not record.strip():
            return

        if self._pending is not None:
            self._complete_rename(self._pending, record)
            self._pending = None
            return

        if record.startswith("# "):
            self._on_header(record[2:])
        elif record.startswith("? "):
            self._on_untracked(record[2:])
        elif record.startswith("! "):
            return
        elif record[0] in ("1", "u"):
            fields = split_entry(record, record[0])
            if fields is None or fields.path is None:
                logger.debug("porcelain_malformed_entry", record=record[:200])
                return
            self._on_entry(fields.xy, fields.path, None, record[0] == "u")
        elif record[0] == "2":
            self._start_rename(record)

    def finish(self) -> None:
        if self._pending is not None:
            logger.debug("porcelain_incomplete_rename_dropped", xy=self._pending.xy)
            self._pending = None

    def _on_header(self, header: str) -> None:
        key, _, value = header.partition(" ")
        if key == "branch.head":
            self.current = None if value == "(detached)" else value
        elif key == "branch.upstream":
            self.tracking = value or None
        elif key == "branch.ab":
            for part in value.split():
                try:
                    count = int(part[1:])
                except ValueError:
                    continue
                if part.startswith("+"):
                    self.ahead = count
                elif part.startswith("-"):
                    self.behind = count

    def _start_rename(self, record: str) -> None:
        fields = split_entry(record, "2")
        if fields is None:
            logger.debug("porcelain_malformed_entry", record=record[:200])
            return
        if fields.path is not None and "\t" in fields.path:
            # Non -z output carries "<path>\t<origPath>" on one line.
            path, _, original = fields.path.partition("\t")
            self._on_entry(fields.xy, path, original or None, False)
            return
        self._pending = PendingRename(fields.xy, fields.path)

    def _complete_rename(self, pending: PendingRename, record: str) -> None:
        if pending.path is None:
            self._on_entry(pending.xy, record, None, False)
        else:
            self._on_entry(pending.xy, pending.path, record, False)

    def _on_entry(
        self, xy: str, path: str, original_path: str | None, unmerged: bool
    ) -> None:
        raise NotImplementedError

    def _on_untracked(self, path: str) -> None:
        raise NotImplementedError

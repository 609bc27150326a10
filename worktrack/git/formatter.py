"""Pure functions to format working-tree state for terminal display."""

from worktrack.exceptions import (
    GitCommandError,
    GitError,
    PushRejectedError,
    RebaseConflictError,
)
from worktrack.git.models import BranchInfo, FileChangesResult, WorkingTreeStatus

_STATUS_CODE = {
    "modified": "M",
    "added": "A",
    "deleted": "D",
    "renamed": "R",
    "copied": "C",
    "conflicted": "U",
    "untracked": "?",
}


def format_branch(branch: BranchInfo) -> str:
    name = branch.current or "(detached HEAD)"
    line = f"Branch: {name}"
    if branch.tracking:
        tracking_parts = [f"tracking {branch.tracking}"]
        if branch.ahead:
            tracking_parts.append(f"{branch.ahead} ahead")
        if branch.behind:
            tracking_parts.append(f"{branch.behind} behind")
        line += f" ({', '.join(tracking_parts)})"
    return line


def _truncation_notice(limit: int | None) -> str:
    return f"Showing first {limit} entries; the working tree has more changes."


def format_status(status: WorkingTreeStatus) -> str:
    """Format WorkingTreeStatus for display."""
    lines: list[str] = [format_branch(status.branch)]

    if status.conflicted:
        lines.append("")
        lines.append("Conflicts:")
        for path in status.conflicted:
            lines.append(f"  U {path}")

    if status.staged:
        lines.append("")
        lines.append("Staged:")
        for path in status.staged:
            code = _STATUS_CODE.get(status.staged_status.get(path, "modified"), "M")
            lines.append(f"  {code} {path}")

    if status.modified or status.deleted:
        lines.append("")
        lines.append("Unstaged:")
        for path in status.modified:
            lines.append(f"  M {path}")
        for path in status.deleted:
            lines.append(f"  D {path}")

    if status.untracked:
        lines.append("")
        lines.append("Untracked:")
        for path in status.untracked:
            lines.append(f"  {path}")

    if status.truncated:
        lines.append("")
        lines.append(_truncation_notice(status.truncated_limit))
    elif status.is_clean:
        lines.append("")
        lines.append("Working tree clean")

    return "\n".join(lines)


def format_file_changes(result: FileChangesResult) -> str:
    if not result.changes and not result.skipped_dirs and not result.truncated:
        return "No changes."

    lines: list[str] = []
    for change in result.changes:
        side = "staged" if change.staged else "unstaged"
        code = _STATUS_CODE.get(change.status, "?")
        entry = f"  {code} {change.path}"
        if change.original_path:
            entry += f" (from {change.original_path})"
        lines.append(f"{entry} [{side}]")

    if result.skipped_dirs:
        count = len(result.skipped_dirs)
        noun = "directory" if count == 1 else "directories"
        lines.append("")
        lines.append(
            f"{count} {noun} skipped: {', '.join(result.skipped_dirs)} "
            "(consider adding to .gitignore)"
        )

    if result.truncated:
        lines.append("")
        lines.append(_truncation_notice(result.truncated_limit))

    return "\n".join(lines)


def format_sync_error(error: GitError) -> str:
    if isinstance(error, RebaseConflictError):
        headline = "Pull failed: rebase hit conflicts and was aborted."
    elif isinstance(error, PushRejectedError):
        headline = "Push rejected by the remote after pulling once. Resolve manually."
    else:
        headline = "Git operation failed."
    if isinstance(error, GitCommandError) and error.stderr.strip():
        return f"{headline}\n{error.stderr.strip()}"
    return f"{headline}\n{error}"

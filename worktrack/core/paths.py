"""Repository boundary enforcement for file-level operations."""

from pathlib import Path

import structlog

from worktrack.exceptions import PathTraversalError

logger = structlog.get_logger()


def resolve_in_repo(root: Path, relative: str) -> Path:
    """Resolve *relative* against *root*, refusing anything that escapes it.

    Symbolic links are rejected before resolution so a link pointing outside
    the repository cannot be followed.
    """
    if not relative or Path(relative).is_absolute():
        logger.debug("path_rejected_absolute", path=relative)
        raise PathTraversalError(f"Invalid file path: {relative!r}")

    root = root.resolve()
    candidate = root / relative
    if candidate.is_symlink():
        logger.debug("path_rejected_symlink", path=relative)
        raise PathTraversalError(f"Cannot operate on symbolic links: {relative}")

    try:
        resolved = candidate.resolve()
    except (ValueError, OSError) as e:
        raise PathTraversalError(f"Invalid file path: {e}") from e

    try:
        resolved.relative_to(root)
    except ValueError:
        logger.debug("path_rejected_traversal", path=relative, root=str(root))
        raise PathTraversalError(
            f"Invalid file path: path traversal detected - {relative}"
        ) from None
    if resolved == root:
        raise PathTraversalError(f"Invalid file path: {relative!r}")
    return resolved


def check_tree_path(relative: str) -> str:
    """Validate a repository path that is looked up in git objects, not on disk."""
    path = Path(relative)
    if not relative or path.is_absolute() or ".." in path.parts:
        logger.debug("tree_path_rejected", path=relative)
        raise PathTraversalError(f"Invalid file path: {relative!r}")
    return relative

"""CLI entry point for worktrack."""

import argparse
import asyncio
import sys
from pathlib import Path

import structlog

from worktrack.app import build_registry, configure_logging
from worktrack.core.config import WorktrackConfig, load_config
from worktrack.exceptions import ConfigError, GitError, WorktrackError
from worktrack.git import formatter

logger = structlog.get_logger()


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="worktrack", description="Working-tree state for git worktrees."
    )
    parser.add_argument(
        "--cwd", type=Path, default=Path.cwd(), help="worktree directory"
    )
    parser.add_argument(
        "--json", action="store_true", help="print JSON instead of text"
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init", help="create a repository in --cwd")
    sub.add_parser("status", help="bucketed working-tree status")
    sub.add_parser("changes", help="flat staged/unstaged change list")

    pull = sub.add_parser("pull", help="fast-forward, else rebase, pull")
    pull.add_argument("--remote", default="origin")
    pull.add_argument("--branch")

    push = sub.add_parser("push", help="push, pulling and retrying once if rejected")
    push.add_argument("--remote", default="origin")
    push.add_argument("--branch")
    push.add_argument("--set-upstream", action="store_true")
    return parser


async def _dispatch(args: argparse.Namespace, config: WorktrackConfig) -> str:
    registry = build_registry(config)
    if args.command == "init":
        service = await registry.init_repository(args.cwd)
        return f"Initialized git repository in {service.workdir}"
    service = registry.get(args.cwd)

    if args.command == "status":
        status = await service.get_status()
        if args.json:
            return status.model_dump_json(indent=2)
        return formatter.format_status(status)
    if args.command == "changes":
        changes = await service.get_file_changes()
        if args.json:
            return changes.model_dump_json(indent=2, exclude_none=True)
        return formatter.format_file_changes(changes)
    if args.command == "pull":
        await service.pull(args.remote, args.branch)
        return "Pull successful"
    await service.push(args.remote, args.branch, set_upstream=args.set_upstream)
    return "Push successful"


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    try:
        config = load_config()
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1
    configure_logging(config)

    try:
        output = asyncio.run(_dispatch(args, config))
    except GitError as e:
        logger.debug("cli_git_error", command=args.command, error=str(e))
        print(formatter.format_sync_error(e), file=sys.stderr)
        return 1
    except WorktrackError as e:
        print(str(e), file=sys.stderr)
        return 1
    print(output)
    return 0


def run() -> None:
    sys.exit(main())

"""CLI for taskgate.

Usage:
    taskgate                          Start the AgentField server (default)
    taskgate check-commits RANGE      Check a commit range against the commit policy

check-commits options:
    --path PATH                       Repository path (default: current dir)
"""

from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Sequence


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="taskgate",
        description="taskgate: quality-gated task execution for coding agents",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    check_parser = subparsers.add_parser(
        "check-commits",
        help="Validate Conventional Commit headers and co-author trailers in a range",
    )
    check_parser.add_argument("range", help="Commit range, e.g. main..HEAD")
    check_parser.add_argument(
        "--path",
        "-C",
        default=".",
        help="Repository path (default: current directory)",
    )

    return parser.parse_args(argv)


async def _check_commits(args: argparse.Namespace) -> int:
    from taskgate.execution.commit_policy import validate_commit_range
    from taskgate.execution.errors import PolicyViolation
    from taskgate.execution.git_probe import GitError, SubprocessGitProbe

    try:
        await validate_commit_range(
            SubprocessGitProbe(), args.path, args.range, f"range {args.range}",
        )
    except (PolicyViolation, GitError) as e:
        print(f"FAILED: {e}", file=sys.stderr)
        return 1

    print(f"OK: every commit in {args.range} follows the commit policy")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI."""
    args = _parse_args(argv)

    if args.command == "check-commits":
        return asyncio.run(_check_commits(args))

    from taskgate.app import main as server_main

    server_main()
    return 0


if __name__ == "__main__":
    sys.exit(main())

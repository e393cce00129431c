"""Commit hygiene: Conventional Commit headers, no agent co-author trailers."""

from __future__ import annotations

import logging
import re

from taskgate.execution.errors import CommitPolicyViolation
from taskgate.execution.git_probe import GitProbe
from taskgate.execution.schemas import CommitRecord

logger = logging.getLogger(__name__)

CONVENTIONAL_COMMIT_HEADER = re.compile(r"^[a-z]+(?:\([^)]+\))?!?: .+")
CLAUDE_COAUTHOR_TRAILER = re.compile(r"co-authored-by:\s*.*claude", re.IGNORECASE)


def check_commit(record: CommitRecord, context: str) -> None:
    """Raise ``CommitPolicyViolation`` if *record* breaks the policy."""
    if not CONVENTIONAL_COMMIT_HEADER.match(record.subject.strip()):
        raise CommitPolicyViolation(
            f"Commit policy violation in {context}: commit {record.hash} "
            f"is not Conventional Commit compliant.",
            commit_hash=record.hash,
            context=context,
        )
    message = f"{record.subject}\n{record.body}"
    if CLAUDE_COAUTHOR_TRAILER.search(message):
        raise CommitPolicyViolation(
            f"Commit policy violation in {context}: commit {record.hash} "
            f"includes forbidden Claude co-author trailer.",
            commit_hash=record.hash,
            context=context,
        )


def check_commits(records: list[CommitRecord], context: str) -> None:
    if not records:
        raise CommitPolicyViolation(f"No commits found in {context}.", context=context)
    for record in records:
        check_commit(record, context)


async def validate_commit_range(
    probe: GitProbe,
    cwd: str,
    commit_range: str,
    context: str,
) -> None:
    """Validate every commit in *commit_range* (oldest to newest)."""
    records = await probe.log_range(cwd, commit_range)
    check_commits(records, context)
    logger.info("Commit policy ok for %s: %d commit(s) in %s", context, len(records), commit_range)

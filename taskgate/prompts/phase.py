"""Prompt builders for the phase-level committer flows (merge, stabilize)."""

from __future__ import annotations

from taskgate.prompts._utils import numbered_list

NO_MERGE_CONTEXT = "No additional merge context provided."
NO_PHASE_CONTEXT = "No additional phase context provided."


def phase_merge_task_prompt(
    cwd: str,
    target_branch: str,
    phase_number: int,
    branches: list[str],
    merge_context: str | None = None,
    validation_commands: list[str] | None = None,
) -> str:
    """Build the prompt for merging a phase's task branches in order.

    Args:
        cwd: Repository root.
        target_branch: Branch the task branches are merged into.
        phase_number: Phase being merged.
        branches: Task branches, in merge order.
        merge_context: Task intent and execution outcomes for conflict resolution.
        validation_commands: Commands that must pass before finishing.
    """
    context = (merge_context or "").strip() or NO_MERGE_CONTEXT
    return f"""\
You are the dedicated committer agent for queue merge.

Repository root: {cwd}
Target branch: {target_branch}
Phase number: {phase_number}
Branches to merge in order:
{numbered_list(branches)}

Merge context (task intent + execution outcomes):
{context}

Validation commands (must all pass before you finish):
{numbered_list(validation_commands or [])}

Merge policy (strict):
1) Verify working tree is clean before merging.
2) Checkout the target branch.
3) Merge each branch in listed order using no-fast-forward merge commits.
4) Merge commit messages MUST follow Conventional Commits:
   <type>[optional scope]: <description>
5) Never include any Co-authored-by trailer that mentions Claude.
6) If a merge conflict occurs, resolve it using the merge context above:
   - preserve intended behavior of already-merged work on target branch
   - preserve the incoming task's stated acceptance criteria
   - keep fixes minimal and scoped to conflict/integration correctness
7) After merges, run every validation command. If a command fails, make minimal integration fixes, commit with Conventional Commits, and rerun until all pass or truly blocked.
8) If blocked, report concrete blockers (files + why) and leave the repo in a clean, non-conflicted state.
9) Provide a concise summary of merged branches, conflict resolutions, validation command results, and resulting commit hashes.

You are the only agent allowed to run git merge in this step.
"""


def phase_stabilize_task_prompt(
    cwd: str,
    target_branch: str,
    integration_branch: str,
    phase_number: int,
    context_summary: str | None = None,
    validation_commands: list[str] | None = None,
) -> str:
    """Build the prompt for stabilizing a phase integration branch before promotion."""
    context = (context_summary or "").strip() or NO_PHASE_CONTEXT
    return f"""\
You are the dedicated committer agent for phase integration stabilization.

Repository root: {cwd}
Phase number: {phase_number}
Integration branch: {integration_branch}
Target branch for promotion: {target_branch}

Phase context (what was intended + what already landed):
{context}

Validation commands:
{numbered_list(validation_commands or [])}

Stabilization policy (strict):
1) Checkout {integration_branch}.
2) If any merge/cherry-pick/rebase conflict state exists, resolve it or cleanly abort the operation. Never leave the repository conflicted.
3) Review integration diff relative to {target_branch}; keep changes minimal and aligned with phase intent.
4) Run all validation commands. If any fail, make minimal integration fixes, commit with Conventional Commits, and rerun until all pass or truly blocked.
5) Never include any Co-authored-by trailer that mentions Claude.
6) Before finishing, ensure git status is clean and branch is ready for fast-forward promotion.
7) Provide a concise summary of fixes, validations, and resulting commit hashes.
"""

"""Prompt builders for the task pipeline stages.

implementation → architecture-review ⇄ architecture-refactor → tester → committer
"""

from __future__ import annotations

from taskgate.agent_ai.types import SubAgentSpec

WORKER_AGENT_NAME = "ralph-worker"

IMPLEMENTATION_WORKER = SubAgentSpec(
    description="Strict implementation worker for one task. Never run git commit or git merge.",
    prompt="""\
You implement only the requested task.
Stay in scope, update code, and prepare for architecture review.
Do NOT run git commit or git merge.\
""",
)

REFACTOR_WORKER = SubAgentSpec(
    description="Focused refactor worker for architecture findings. Never run git commit or git merge.",
    prompt="""\
Apply only targeted refactors from architecture findings.
Do not widen scope.
Do NOT run git commit or git merge.\
""",
)


def _join(*parts: str) -> str:
    return "\n\n".join(p.strip("\n") for p in parts if p and p.strip())


def implementation_task_prompt(task_context: str, retry: str = "", worktree: str = "") -> str:
    """Build the implementation stage prompt.

    Args:
        task_context: Rendered task block (PRD, plan progress, task details).
        retry: Optional retry notice from a previous failed attempt.
        worktree: Optional isolated-worktree notice.

    Returns:
        The prompt text; empty sections are dropped.
    """
    return _join(
        "You are running stage: implementation.",
        retry,
        worktree,
        task_context,
        """\
Instructions:
1) Use the in-prompt PRD and plan progress history as authoritative context.
2) Implement only this task.
3) Keep code changes scoped and production-safe.
4) Do NOT run git commit or git merge.
5) Return concise changed-files summary.""",
    )


def architecture_review_task_prompt(task_context: str) -> str:
    """Architecture review prompt; the answer must match ``ArchitectureReview``."""
    return _join(
        "You are running stage: architecture-review.",
        task_context,
        "Return ONLY valid JSON for this schema.",
        """\
Review objectives:
- Check if the task changes are in the right service/module.
- Enforce SOLID with strong SRP focus.
- Detect duplicate code and suggest safe DRY refactors.
- Recommend concrete refactor actions when needed.""",
        """\
Status policy:
- pass: zero findings and no actionable quality issue.
- pass_with_notes: non-critical findings are present and still require targeted code changes before continuation.
- needs_refactor: any structural/code-quality issue that should be fixed before testing.
- blocked: critical issue that prevents safe continuation.""",
        """\
Quality gate rules (strict):
- Any critical finding => blocked.
- Any high finding => needs_refactor or blocked.
- Any medium finding on boundary/srp/duplication/solid => needs_refactor.
- If findings exist, recommended_actions must be concrete and non-empty.""",
    )


def architecture_refactor_task_prompt(
    task_context: str,
    findings: str,
    recommended_actions: list[str],
) -> str:
    """Build the architecture refactor prompt.

    *findings* is the pre-rendered findings list from the last review;
    *recommended_actions* are listed verbatim, or a placeholder when empty.
    """
    actions = "\n".join(recommended_actions) if recommended_actions else "- none provided"
    return _join(
        "You are running stage: architecture-refactor.",
        task_context,
        f"Architecture findings to fix now:\n{findings}",
        f"Recommended actions:\n{actions}",
        """\
Instructions:
1) Apply only necessary refactors to resolve findings.
2) Preserve task scope and behavior.
3) Do NOT run git commit or git merge.
4) Return concise summary of refactors.""",
    )


def tester_task_prompt(task_context: str) -> str:
    """Tester stage prompt: integration-first testing, no commits."""
    return _join(
        "You are running stage: tester.",
        task_context,
        """\
Testing policy (strict):
1) Prefer integration/e2e/system tests in real runtime conditions whenever available.
2) If integration tests are not feasible, run strongest fallback and explain why.
3) Unit tests are fallback-only.
4) Provide commands run and pass/fail evidence.
5) Do NOT run git commit or git merge.""",
    )


def committer_task_prompt(task_context: str, worktree: str = "") -> str:
    """Committer stage prompt enforcing Conventional Commits and no merges."""
    return _join(
        "You are running stage: committer.",
        task_context,
        worktree,
        """\
Commit policy (strict):
1) Review current diff and ensure task scope is respected.
2) Create commit(s) using Conventional Commits:
   <type>[optional scope]: <description>
3) Allowed examples: feat, fix, docs, refactor, test, chore, perf, improvement.
4) Never include "Co-authored-by" trailer mentioning Claude.
5) Do NOT run git merge in this stage.
6) Return commit hash(es) and commit message(s).""",
    )

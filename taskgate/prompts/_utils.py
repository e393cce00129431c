"""Shared prompt utility functions for the prompts package."""

from __future__ import annotations

from taskgate.execution.schemas import Plan, RetryContext, Task

NO_PROGRESS_CONTEXT = "No prior progress entries have been recorded for this plan."


def numbered_list(items: list[str], empty: str = "(none)") -> str:
    """``1. a\\n2. b``; *empty* when there are no items."""
    if not items:
        return empty
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


def task_context_block(plan: Plan, task: Task, plan_progress_context: str | None = None) -> str:
    """Plan summary, PRD, progress history and the task itself."""
    progress = (plan_progress_context or "").strip() or NO_PROGRESS_CONTEXT
    dependencies = ", ".join(task.dependencies) if task.dependencies else "none"

    lines: list[str] = [
        "Plan summary:",
        plan.summary,
        "",
        "PRD:",
        plan.prd_text,
        "",
        "Plan progress history:",
        progress,
        "",
        "Task:",
        f"- id: {task.id}",
        f"- title: {task.title}",
        f"- description: {task.description}",
        f"- dependencies completed: {dependencies}",
    ]
    if task.acceptance_criteria:
        lines.append("- acceptance criteria:")
        lines.extend(f"  - {ac}" for ac in task.acceptance_criteria)
    lines.extend(["", "Technical notes:", task.technical_notes])
    return "\n".join(lines)


def retry_block(retry_context: RetryContext | None) -> str:
    if retry_context is None:
        return ""
    return (
        f"Previous attempt failed: {retry_context.previous_error}\n"
        f"Retry attempt: #{retry_context.retry_count}"
    )


def worktree_block(cwd: str, branch_name: str | None, phase_number: int | None) -> str:
    """Execution context line; empty for shared-checkout runs."""
    if not branch_name:
        return ""
    phase = phase_number if phase_number is not None else "n/a"
    return f"Execution context: cwd={cwd}, branch={branch_name}, phase={phase}"

"""Execution reasoners: task pipeline, phase merge, phase stabilization.

Registered on the shared router and reachable through ``app.call()``. Each
reasoner returns a plain dict; pipeline errors are reported in the payload
(``success=False``) instead of crashing the node.
"""

from __future__ import annotations

import logging
import os
from typing import Any

from pydantic import ValidationError

from taskgate.agent_ai.types import AgentRole, ModelResolver
from taskgate.execution.errors import QualityGateError, TaskgateError
from taskgate.execution.phase_committer import PhaseCommitter
from taskgate.execution.pipeline import TaskPipeline
from taskgate.execution.schemas import PipelineConfig, Plan, RetryContext, Task
from taskgate.execution.stages import CommitterCallbacks, RunTaskCallbacks

from . import router

logger = logging.getLogger(__name__)

# Service-level defaults; the execution core itself has none.
DEFAULT_MODEL_BY_ROLE: dict[AgentRole, str] = {
    AgentRole.TASK_EXECUTION: "opus",
    AgentRole.ARCHITECTURE_SPECIALIST: "sonnet",
    AgentRole.TESTER: "sonnet",
    AgentRole.COMMITTER: "sonnet",
}


def _note(msg: str, tags: list[str] | None = None) -> None:
    """Log a message via router.note() when attached, else fall back to logger."""
    try:
        router.note(msg, tags=tags or [])
    except RuntimeError:
        logger.debug("[taskgate] %s (tags=%s)", msg, tags)


def build_model_resolver(models: dict[str, str] | None = None) -> ModelResolver:
    """Resolver over explicit *models*, then ``TASKGATE_MODEL_<ROLE>``, then defaults."""
    overrides = dict(models or {})

    def _resolve(role: AgentRole) -> str:
        if overrides.get(role.value):
            return overrides[role.value]
        env_value = os.getenv(f"TASKGATE_MODEL_{role.value.upper()}")
        if env_value:
            return env_value
        return DEFAULT_MODEL_BY_ROLE[role]

    return _resolve


def _stage_note(payload: dict[str, Any]) -> None:
    kind = payload.get("kind")
    if kind == "agent_stage":
        _note(
            f"Stage {payload.get('stage')} {payload.get('status')}",
            tags=["task", str(payload.get("stage")), str(payload.get("status"))],
        )
    elif kind == "architecture_review":
        review = payload.get("review") or {}
        _note(
            f"Architecture review {payload.get('iteration')}/{payload.get('max_iterations')}: "
            f"{review.get('status')}",
            tags=["task", "architecture_review"],
        )
    elif kind == "committer_summary":
        _note(
            f"Committer: {payload.get('head_before')}..{payload.get('head_after')}",
            tags=["task", "committer", "complete"],
        )


def _error_payload(e: Exception) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "success": False,
        "error_type": type(e).__name__,
        "error_message": str(e),
    }
    if isinstance(e, QualityGateError):
        payload["review"] = e.review.model_dump(mode="json")
    return payload


@router.reasoner()
async def run_task(
    plan: dict,
    task: dict,
    working_directory: str = "",
    branch_name: str = "",
    phase_number: int | None = None,
    plan_progress_context: str = "",
    retry_context: dict | None = None,
    models: dict | None = None,
    config: dict | None = None,
) -> dict:
    """Run one task through the quality-gated stage pipeline.

    Returns a PipelineRunResult dict with ``success=True``, or an error
    payload naming the failure class.
    """
    task_id = task.get("id", "?")
    _note(f"Task {task_id} starting: {task.get('title', '')}", tags=["task", "start"])

    try:
        task_model = Task(**task)
        pipeline = TaskPipeline(
            build_model_resolver(models),
            config=PipelineConfig(**(config or {})),
        )
        result = await pipeline.run_task(
            Plan(**plan),
            task_model,
            RunTaskCallbacks(on_subagent=_stage_note),
            retry_context=RetryContext(**retry_context) if retry_context else None,
            plan_progress_context=plan_progress_context or None,
            working_directory=working_directory or None,
            branch_name=branch_name or None,
            phase_number=phase_number,
        )
    except (TaskgateError, ValidationError) as e:
        _note(f"Task {task_id} failed: {type(e).__name__}: {e}", tags=["task", "error"])
        return _error_payload(e)

    _note(f"Task {task_id} complete", tags=["task", "complete"])
    return {"success": True, **result.model_dump()}


@router.reasoner()
async def merge_phase(
    repo_root: str,
    target_branch: str,
    branches: list[str],
    phase_number: int,
    merge_context_summary: str = "",
    validation_commands: list[str] | None = None,
    models: dict | None = None,
    config: dict | None = None,
) -> dict:
    """Merge a phase's task branches into *target_branch* via the committer agent."""
    _note(
        f"Phase {phase_number} merge starting: {len(branches)} branch(es) into {target_branch}",
        tags=["phase", "merge", "start"],
    )
    try:
        committer = PhaseCommitter(build_model_resolver(models), config=PipelineConfig(**(config or {})))
        result = await committer.merge_phase(
            repo_root,
            target_branch,
            branches,
            phase_number,
            CommitterCallbacks(),
            merge_context_summary=merge_context_summary or None,
            validation_commands=validation_commands,
        )
    except (TaskgateError, ValidationError) as e:
        _note(f"Phase {phase_number} merge failed: {e}", tags=["phase", "merge", "error"])
        return _error_payload(e)

    _note(f"Phase {phase_number} merge finished", tags=["phase", "merge", "complete"])
    return {"success": True, **result.model_dump()}


@router.reasoner()
async def stabilize_phase(
    repo_root: str,
    target_branch: str,
    integration_branch: str,
    phase_number: int,
    validation_commands: list[str],
    phase_context_summary: str = "",
    models: dict | None = None,
    config: dict | None = None,
) -> dict:
    """Stabilize *integration_branch* for fast-forward promotion to *target_branch*."""
    _note(
        f"Phase {phase_number} stabilization starting on {integration_branch}",
        tags=["phase", "stabilize", "start"],
    )
    try:
        committer = PhaseCommitter(build_model_resolver(models), config=PipelineConfig(**(config or {})))
        result = await committer.stabilize_phase(
            repo_root,
            target_branch,
            integration_branch,
            phase_number,
            validation_commands,
            CommitterCallbacks(),
            phase_context_summary=phase_context_summary or None,
        )
    except (TaskgateError, ValidationError) as e:
        _note(f"Phase {phase_number} stabilization failed: {e}", tags=["phase", "stabilize", "error"])
        return _error_payload(e)

    _note(f"Phase {phase_number} stabilization finished", tags=["phase", "stabilize", "complete"])
    return {"success": True, **result.model_dump()}

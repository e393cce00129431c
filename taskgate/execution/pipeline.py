"""Task pipeline: the quality-gated stage sequence for one task.

    IMPLEMENTATION → ARCHITECTURE_REVIEW ⇄ ARCHITECTURE_REFACTOR → TESTER → COMMITTER → DONE

The review/refactor loop is bounded by ``max_arch_refactor_cycles``. Between
stages the git-head guard makes sure nothing but the committer advanced HEAD;
after the committer, the new commit range is checked against the commit policy.
Every failure is raised to the caller; nothing is retried here.
"""

from __future__ import annotations

import json
import logging
import os
import re
from typing import Any, Callable

from pydantic import ValidationError

from taskgate.agent_ai.client import AgentSessionClient
from taskgate.agent_ai.types import AgentRole, ModelResolver
from taskgate.execution.commit_policy import validate_commit_range
from taskgate.execution.errors import (
    AgentInvocationError,
    PolicyViolation,
    QualityGateBlocked,
    QualityGateExhausted,
)
from taskgate.execution.git_probe import GitProbe, SubprocessGitProbe
from taskgate.execution.quality_gate import enforce, summarize_findings
from taskgate.execution.schemas import (
    ArchitectureReview,
    PipelineConfig,
    PipelineRunResult,
    Plan,
    RetryContext,
    ReviewStatus,
    StageResult,
    Task,
)
from taskgate.execution.stage_runner import StageRunner, start_cleared_session
from taskgate.execution.stages import (
    PipelineState,
    RunTaskCallbacks,
    StageKind,
    StageSpec,
    stage_name,
)
from taskgate.prompts._utils import retry_block, task_context_block, worktree_block
from taskgate.prompts.task_stages import (
    IMPLEMENTATION_WORKER,
    REFACTOR_WORKER,
    WORKER_AGENT_NAME,
    architecture_refactor_task_prompt,
    architecture_review_task_prompt,
    committer_task_prompt,
    implementation_task_prompt,
    tester_task_prompt,
)

logger = logging.getLogger(__name__)


def resolve_query_cwd(project_path: str | None) -> str:
    """*project_path* if it exists on disk, else the process cwd."""
    normalized = (project_path or "").strip()
    if normalized and os.path.exists(normalized):
        return normalized
    return os.getcwd()


def parse_structured_text(text: str) -> Any | None:
    """Pull a JSON value out of free-form model text.

    Tries the whole text, then fenced blocks, then the outermost ``{...}``
    and ``[...]`` spans.
    """
    trimmed = text.strip()
    if not trimmed:
        return None

    candidates: list[str] = [trimmed]
    candidates.extend(m.group(1) for m in re.finditer(r"```(?:json)?\s*([\s\S]*?)```", trimmed))
    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        first, last = trimmed.find(open_ch), trimmed.rfind(close_ch)
        if first != -1 and last > first:
            candidates.append(trimmed[first:last + 1])

    seen: set[str] = set()
    for candidate in candidates:
        candidate = candidate.strip()
        if not candidate or candidate in seen:
            continue
        seen.add(candidate)
        try:
            return json.loads(candidate)
        except json.JSONDecodeError:
            continue
    return None


def parse_review(result: StageResult, stage: str) -> ArchitectureReview:
    payload = result.structured_payload
    if payload is None:
        payload = parse_structured_text(result.text)
    if payload is None:
        raise AgentInvocationError(
            f"{stage} produced no structured architecture review.", stage=stage,
        )
    try:
        return ArchitectureReview.model_validate(payload)
    except ValidationError as e:
        raise AgentInvocationError(
            f"{stage} produced an invalid architecture review: {e}", stage=stage,
        ) from e


class HeadGuard:
    """Tracks the expected git HEAD between non-committer stages.

    Strict mode (dedicated branch) treats any HEAD movement as a violation.
    Otherwise HEAD movement is assumed to be another task committing into
    the same checkout, and the baseline moves forward.
    """

    def __init__(
        self,
        probe: GitProbe,
        cwd: str,
        expected_head: str,
        *,
        strict: bool,
        on_log: Callable[[str], None] | None = None,
    ) -> None:
        self.probe = probe
        self.cwd = cwd
        self.expected_head = expected_head
        self.strict = strict
        self._on_log = on_log or (lambda _line: None)

    async def ensure_no_commit_yet(self, stage_label: str) -> None:
        current = await self.probe.head_of(self.cwd)
        if not current or current == self.expected_head:
            return

        if self.strict:
            raise PolicyViolation(
                f"Runtime policy violation: git HEAD changed before committer stage "
                f"({stage_label}). expected={self.expected_head}, current={current}."
            )

        self._on_log(
            f"\n[policy] Shared-checkout HEAD drift detected before committer stage "
            f"({stage_label}). expected={self.expected_head}, current={current}. "
            f"Continuing and rebasing guard baseline.\n"
        )
        logger.info("HEAD drift in %s at %s: %s -> %s", self.cwd, stage_label,
                    self.expected_head, current)
        self.expected_head = current


class TaskPipeline:
    """Runs one task through every stage.

    Usage:
        pipeline = TaskPipeline(resolve_model)
        result = await pipeline.run_task(plan, task, callbacks, branch_name="task/42")
    """

    def __init__(
        self,
        model_resolver: ModelResolver,
        *,
        client: AgentSessionClient | None = None,
        git_probe: GitProbe | None = None,
        config: PipelineConfig | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.get_model = model_resolver
        if client is None:
            from taskgate.agent_ai.client import ClaudeSessionClient

            client = ClaudeSessionClient(
                permission_mode=self.config.permission_mode,
                setting_sources=list(self.config.setting_sources),
            )
        self.client = client
        self.git = git_probe or SubprocessGitProbe()

    async def run_task(
        self,
        plan: Plan,
        task: Task,
        callbacks: RunTaskCallbacks | None = None,
        *,
        retry_context: RetryContext | None = None,
        plan_progress_context: str | None = None,
        working_directory: str | None = None,
        branch_name: str | None = None,
        phase_number: int | None = None,
    ) -> PipelineRunResult:
        callbacks = callbacks or RunTaskCallbacks()
        cfg = self.config
        cwd = resolve_query_cwd(working_directory or plan.project_path)

        task_model = self.get_model(AgentRole.TASK_EXECUTION)
        architecture_model = self.get_model(AgentRole.ARCHITECTURE_SPECIALIST)
        tester_model = self.get_model(AgentRole.TESTER)
        committer_model = self.get_model(AgentRole.COMMITTER)

        logger.info("Task %s starting in %s (branch=%s)", task.id, cwd, branch_name or "-")

        state = PipelineState(cwd=cwd, task_id=task.id)
        state.session_id = await start_cleared_session(self.client, task_model, cwd)

        initial_head = await self.git.head_of(cwd)
        if not initial_head:
            raise PolicyViolation("Unable to determine current git HEAD for task execution.")
        guard = HeadGuard(
            self.git, cwd, initial_head,
            strict=bool(branch_name), on_log=callbacks.on_log,
        )

        runner = StageRunner(self.client, callbacks, log_dir=cfg.log_dir)
        task_context = task_context_block(plan, task, plan_progress_context)
        worktree = worktree_block(cwd, branch_name, phase_number)

        async def run_stage(spec: StageSpec) -> StageResult:
            result = await runner.run(spec, state)
            state.record(spec.name, result)
            return result

        # -- implementation ------------------------------------------------
        await run_stage(StageSpec(
            kind=StageKind.IMPLEMENTATION,
            model=task_model,
            max_turns=cfg.implementation_max_turns,
            sub_agents={WORKER_AGENT_NAME: IMPLEMENTATION_WORKER},
            prompt=implementation_task_prompt(
                task_context, retry=retry_block(retry_context), worktree=worktree,
            ),
        ))
        await guard.ensure_no_commit_yet(StageKind.IMPLEMENTATION.value)

        # -- architecture review ⇄ refactor -------------------------------
        max_cycles = cfg.max_arch_refactor_cycles
        while True:
            state.review_iteration += 1
            iteration = state.review_iteration

            review_spec = StageSpec(
                kind=StageKind.ARCHITECTURE_REVIEW,
                iteration=iteration,
                model=architecture_model,
                max_turns=cfg.review_max_turns,
                output_schema=ArchitectureReview,
                prompt=architecture_review_task_prompt(task_context),
            )
            review_result = await runner.run(review_spec, state)
            state.record(review_spec.name, review_result.model_copy(update={"text": ""}))

            review = enforce(parse_review(review_result, review_spec.name))
            state.last_review = review
            callbacks.on_subagent({
                "kind": "architecture_review",
                "iteration": iteration,
                "max_iterations": max_cycles,
                "review": review.model_dump(mode="json"),
            })
            logger.info("Task %s architecture review %d: %s", task.id, iteration, review.status.value)

            if review.status == ReviewStatus.PASS:
                break

            if review.status == ReviewStatus.PASS_WITH_NOTES:
                callbacks.on_log(
                    "\n[policy] pass_with_notes is treated as changes required. "
                    "Continuing with architecture refactor.\n"
                )

            if review.status == ReviewStatus.BLOCKED:
                raise QualityGateBlocked(
                    f"Architecture review blocked execution: {review.summary}\n"
                    f"{summarize_findings(review)}",
                    review,
                )

            if iteration >= max_cycles:
                raise QualityGateExhausted(
                    f"Architecture review still requires refactor after {max_cycles} "
                    f"cycle(s): {review.summary}\n{summarize_findings(review)}",
                    review,
                )

            refactor_label = stage_name(StageKind.ARCHITECTURE_REFACTOR, iteration)
            await run_stage(StageSpec(
                kind=StageKind.ARCHITECTURE_REFACTOR,
                iteration=iteration,
                model=task_model,
                max_turns=cfg.refactor_max_turns,
                sub_agents={WORKER_AGENT_NAME: REFACTOR_WORKER},
                prompt=architecture_refactor_task_prompt(
                    task_context,
                    findings=summarize_findings(review),
                    recommended_actions=list(review.recommended_actions),
                ),
            ))
            await guard.ensure_no_commit_yet(refactor_label)

        await guard.ensure_no_commit_yet("architecture-gate-complete")

        # -- tester ----------------------------------------------------------
        await run_stage(StageSpec(
            kind=StageKind.TESTER,
            model=tester_model,
            max_turns=cfg.tester_max_turns,
            prompt=tester_task_prompt(task_context),
        ))
        await guard.ensure_no_commit_yet(StageKind.TESTER.value)

        # -- committer -------------------------------------------------------
        head_before = await self.git.head_of(cwd)
        if not head_before:
            raise PolicyViolation("Unable to determine HEAD before committer stage.")

        committer_result = await run_stage(StageSpec(
            kind=StageKind.COMMITTER,
            model=committer_model,
            max_turns=cfg.committer_max_turns,
            prompt=committer_task_prompt(task_context, worktree=worktree),
        ))

        head_after = await self.git.head_of(cwd)
        if not head_after or head_after == head_before:
            raise PolicyViolation(
                "Runtime policy violation: committer stage completed without creating a commit."
            )

        await validate_commit_range(
            self.git, cwd, f"{head_before}..{head_after}", f"task {task.id} committer stage",
        )
        callbacks.on_subagent({
            "kind": "committer_summary",
            "head_before": head_before,
            "head_after": head_after,
        })

        # -- done ------------------------------------------------------------
        if state.last_review is not None:
            state.sections.append(
                f"## architecture-gate-summary\n"
                f"status: {state.last_review.status.value}\n"
                f"summary: {state.last_review.summary}"
            )

        logger.info("Task %s done: %s..%s", task.id, head_before[:12], head_after[:12])
        return PipelineRunResult(
            session_id=state.session_id,
            result_text="\n\n".join(state.sections),
            stop_reason=committer_result.stop_reason,
            duration_ms=state.total_duration_ms if state.total_duration_ms > 0 else None,
            cost_usd=state.total_cost_usd if state.has_cost else None,
        )

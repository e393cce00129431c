"""Phase-level committer flows: merge task branches, stabilize integration.

The committer agent in these flows is the only agent allowed to run
``git merge``, so it gets the full ``DEFAULT_TOOLS`` allow-list and an
allow-all tool policy. Neither the head guard nor the commit validator runs
here; merge-commit hygiene is left to the agent's instructions.
"""

from __future__ import annotations

import logging

from taskgate.agent_ai.client import AgentSession, AgentSessionClient
from taskgate.agent_ai.types import (
    DEFAULT_TOOLS,
    AgentRole,
    Init,
    ModelResolver,
    Result,
    SessionOptions,
    TextDelta,
)
from taskgate.execution.errors import AgentInvocationError, TaskgateError
from taskgate.execution.pipeline import resolve_query_cwd
from taskgate.execution.schemas import PhaseFlowResult, PipelineConfig
from taskgate.execution.stage_runner import start_cleared_session
from taskgate.execution.stages import CommitterCallbacks
from taskgate.execution.tool_policy import allow_all_tools
from taskgate.prompts.phase import phase_merge_task_prompt, phase_stabilize_task_prompt

logger = logging.getLogger(__name__)


async def stream_committer_session(
    session: AgentSession,
    initial_session_id: str | None,
    callbacks: CommitterCallbacks,
) -> PhaseFlowResult:
    """Drain a committer session: text to ``on_log``, keep id/result/stop reason."""
    session_id = initial_session_id
    result_text = ""
    stop_reason: str | None = None

    async for event in session.events():
        if isinstance(event, TextDelta):
            callbacks.on_log(event.text)
        elif isinstance(event, Init):
            session_id = event.session_id
        elif isinstance(event, Result):
            result_text = event.text
            stop_reason = event.stop_reason

    return PhaseFlowResult(session_id=session_id, result_text=result_text, stop_reason=stop_reason)


class PhaseCommitter:
    """Drives the dedicated committer agent for phase merges and stabilization."""

    def __init__(
        self,
        model_resolver: ModelResolver,
        *,
        client: AgentSessionClient | None = None,
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

    async def _run(
        self,
        flow: str,
        cwd: str,
        prompt: str,
        max_turns: int,
        callbacks: CommitterCallbacks,
    ) -> PhaseFlowResult:
        model = self.get_model(AgentRole.COMMITTER)
        session_id = await start_cleared_session(self.client, model, cwd, label="committer")
        options = SessionOptions(
            model=model,
            cwd=cwd,
            max_turns=max_turns,
            resume=session_id,
            tool_policy=allow_all_tools,
            allowed_tools=list(DEFAULT_TOOLS),
        )

        logger.info("Phase %s starting in %s (session=%s)", flow, cwd, session_id)
        try:
            async with self.client.open(prompt, options) as session:
                callbacks.on_query(session)
                result = await stream_committer_session(session, session_id, callbacks)
        except TaskgateError:
            raise
        except Exception as e:
            raise AgentInvocationError(f"Phase {flow} committer session failed: {e}", stage=flow) from e

        logger.info("Phase %s finished (stop_reason=%s)", flow, result.stop_reason)
        return result

    async def merge_phase(
        self,
        repo_root: str,
        target_branch: str,
        branches: list[str],
        phase_number: int,
        callbacks: CommitterCallbacks | None = None,
        *,
        merge_context_summary: str | None = None,
        validation_commands: list[str] | None = None,
    ) -> PhaseFlowResult:
        """Merge *branches*, in order, into *target_branch* and validate."""
        cwd = resolve_query_cwd(repo_root)
        prompt = phase_merge_task_prompt(
            cwd=cwd,
            target_branch=target_branch,
            phase_number=phase_number,
            branches=branches,
            merge_context=merge_context_summary,
            validation_commands=validation_commands,
        )
        return await self._run(
            "merge", cwd, prompt, self.config.merge_max_turns, callbacks or CommitterCallbacks(),
        )

    async def stabilize_phase(
        self,
        repo_root: str,
        target_branch: str,
        integration_branch: str,
        phase_number: int,
        validation_commands: list[str],
        callbacks: CommitterCallbacks | None = None,
        *,
        phase_context_summary: str | None = None,
    ) -> PhaseFlowResult:
        """Bring *integration_branch* to a clean, validated, fast-forwardable state."""
        cwd = resolve_query_cwd(repo_root)
        prompt = phase_stabilize_task_prompt(
            cwd=cwd,
            target_branch=target_branch,
            integration_branch=integration_branch,
            phase_number=phase_number,
            context_summary=phase_context_summary,
            validation_commands=validation_commands,
        )
        return await self._run(
            "stabilize", cwd, prompt, self.config.stabilize_max_turns, callbacks or CommitterCallbacks(),
        )

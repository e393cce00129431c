"""Runs one agent stage end-to-end.

Applies the stage's tool policy, drains the session's event stream in order,
forwards text/todo/sub-agent activity to the caller's sinks and returns a
normalized ``StageResult``. Whether the pipeline continues is not decided here.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import asdict
from pathlib import Path
from typing import IO, Any

from taskgate.agent_ai.client import AgentSessionClient
from taskgate.agent_ai.types import (
    Init,
    Result,
    SessionEvent,
    SessionOptions,
    TextDelta,
    Tool,
    ToolUse,
)
from taskgate.execution.errors import AgentInvocationError, NoSessionError, TaskgateError
from taskgate.execution.schemas import StageResult
from taskgate.execution.stages import PipelineState, RunTaskCallbacks, StageSpec
from taskgate.execution.tool_policy import stage_tool_policy

logger = logging.getLogger(__name__)

CLEAR_PROMPT = "/clear"
_SUMMARY_LIMIT = 400


# ---------------------------------------------------------------------------
# JSONL event log
# ---------------------------------------------------------------------------


def _open_log(log_file: str | Path | None) -> IO[str] | None:
    """Open a log file for appending. Returns None if no log_file."""
    if log_file is None:
        return None
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)
    return open(path, "a", encoding="utf-8")


def _write_log(fh: IO[str] | None, event: str, **data: Any) -> None:
    """Append a single JSONL event to the log file handle."""
    if fh is None:
        return
    entry = {"ts": time.time(), "event": event, **data}
    fh.write(json.dumps(entry, default=str) + "\n")
    fh.flush()


def _event_to_dict(event: SessionEvent) -> dict[str, Any]:
    data = asdict(event)
    if isinstance(data.get("text"), str):
        data["text"] = data["text"][:500]
    return {"type": type(event).__name__.lower(), **data}


# ---------------------------------------------------------------------------
# Sub-agent spawn parsing
# ---------------------------------------------------------------------------


def parse_task_invocation(tool_input: dict[str, Any]) -> tuple[str, str, str] | None:
    """(subagent_type, description, prompt) from a ``Task`` tool input."""
    subagent_type = tool_input.get("subagent_type")
    subagent_type = subagent_type.strip() if isinstance(subagent_type, str) else ""
    description = tool_input.get("description")
    description = description if isinstance(description, str) else ""
    prompt = tool_input.get("prompt")
    prompt = prompt if isinstance(prompt, str) else ""

    if not subagent_type and not description.strip() and not prompt.strip():
        return None
    return subagent_type or "unknown", description, prompt


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


async def start_cleared_session(
    client: AgentSessionClient,
    model: str,
    cwd: str,
    *,
    label: str = "task",
) -> str:
    """Open a fresh ``/clear`` session and return its id."""
    options = SessionOptions(
        model=model, cwd=cwd, max_turns=1, include_partial_messages=False,
    )
    session_id: str | None = None
    try:
        async with client.open(CLEAR_PROMPT, options) as session:
            async for event in session.events():
                if isinstance(event, Init):
                    session_id = event.session_id
    except TaskgateError:
        raise
    except Exception as e:
        raise AgentInvocationError(f"Unable to start a cleared {label} session: {e}") from e

    if not session_id:
        raise NoSessionError(f"Unable to start a cleared {label} session.")
    return session_id


class StageRunner:
    """Drives one stage invocation for a task run."""

    def __init__(
        self,
        client: AgentSessionClient,
        callbacks: RunTaskCallbacks,
        *,
        log_dir: str | Path | None = None,
    ) -> None:
        self.client = client
        self.callbacks = callbacks
        self.log_dir = log_dir

    def _log_path(self, state: PipelineState, name: str) -> Path | None:
        if not self.log_dir:
            return None
        return Path(self.log_dir) / state.task_id / f"{name}.jsonl"

    def _notify(self, spec: StageSpec, status: str, summary: str, **extra: Any) -> None:
        payload: dict[str, Any] = {
            "kind": "agent_stage",
            "stage": spec.name,
            "agent_role": spec.role.value,
            "status": status,
            "summary": summary,
        }
        payload.update({k: v for k, v in extra.items() if v is not None})
        self.callbacks.on_subagent(payload)

    async def run(self, spec: StageSpec, state: PipelineState) -> StageResult:
        name = spec.name
        self.callbacks.on_log(f"\n[stage] {name} started\n")
        self._notify(spec, "started", f"{name} started")
        logger.info("Stage %s started (task=%s model=%s)", name, state.task_id, spec.model)

        log_fh = _open_log(self._log_path(state, name))
        try:
            _write_log(log_fh, "start", stage=name, model=spec.model,
                       max_turns=spec.max_turns, resume=state.session_id)
            result = await self._invoke(spec, state, log_fh)
            _write_log(log_fh, "end", stop_reason=result.stop_reason,
                       duration_ms=result.duration_ms, cost_usd=result.cost_usd)
        except Exception as e:
            _write_log(log_fh, "end", is_error=True, error=str(e))
            self._notify(spec, "failed", str(e)[:_SUMMARY_LIMIT])
            logger.warning("Stage %s failed: %s", name, e)
            if isinstance(e, TaskgateError):
                raise
            raise AgentInvocationError(f"Stage {name} failed: {e}", stage=name) from e
        finally:
            if log_fh:
                log_fh.close()

        self.callbacks.on_log(f"\n[stage] {name} completed\n")
        self._notify(
            spec, "completed", result.text.strip()[:_SUMMARY_LIMIT],
            stop_reason=result.stop_reason,
        )
        logger.info(
            "Stage %s completed (stop_reason=%s duration_ms=%s cost_usd=%s)",
            name, result.stop_reason, result.duration_ms, result.cost_usd,
        )
        return result

    async def _invoke(
        self,
        spec: StageSpec,
        state: PipelineState,
        log_fh: IO[str] | None,
    ) -> StageResult:
        options = SessionOptions(
            model=spec.model,
            cwd=state.cwd,
            max_turns=spec.max_turns,
            resume=state.session_id,
            output_schema=spec.output_schema.model_json_schema() if spec.output_schema else None,
            sub_agents=dict(spec.sub_agents),
            tool_policy=stage_tool_policy(spec.kind, spec.name),
        )

        result: StageResult | None = None
        async with self.client.open(spec.prompt, options) as session:
            self.callbacks.on_query(session)
            async for event in session.events():
                _write_log(log_fh, "event", **_event_to_dict(event))
                if isinstance(event, Init):
                    state.session_id = event.session_id
                    self.callbacks.on_session(event.session_id)
                elif isinstance(event, TextDelta):
                    self.callbacks.on_log(event.text)
                elif isinstance(event, ToolUse):
                    self._handle_tool_use(spec, event)
                elif isinstance(event, Result):
                    if event.is_error:
                        logger.warning("Stage %s ended with an error result: %s",
                                       spec.name, event.stop_reason)
                    result = StageResult(
                        text=event.text,
                        stop_reason=event.stop_reason,
                        duration_ms=event.duration_ms,
                        cost_usd=event.cost_usd,
                        structured_payload=(
                            event.structured_payload if spec.output_schema else None
                        ),
                    )

        if not state.session_id:
            raise NoSessionError(f"Stage {spec.name} never reported a session id.", stage=spec.name)
        if result is None:
            raise AgentInvocationError(
                f"Stage {spec.name} ended without a result message.", stage=spec.name,
            )
        return result

    def _handle_tool_use(self, spec: StageSpec, event: ToolUse) -> None:
        if event.name == Tool.TODO_WRITE.value:
            todos = event.input.get("todos")
            if isinstance(todos, list):
                self.callbacks.on_todo(todos)
            return

        if event.name == Tool.TASK.value:
            invocation = parse_task_invocation(event.input)
            if invocation:
                subagent_type, description, prompt = invocation
                self.callbacks.on_log(
                    f"\n[subagent-spawn] stage={spec.name} subagent={subagent_type} "
                    f"description={json.dumps(description)}\n"
                )
                self.callbacks.on_log(f"[subagent-spawn-prompt] {json.dumps(prompt)}\n")
            self.callbacks.on_subagent({"stage": spec.name, **event.input})

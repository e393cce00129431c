"""Stage kinds, stage specs, caller callbacks and shared pipeline state."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Protocol, Type

from pydantic import BaseModel

from taskgate.agent_ai.types import AgentRole, SubAgentSpec
from taskgate.execution.schemas import ArchitectureReview, StageResult


class StageKind(str, Enum):
    IMPLEMENTATION = "implementation"
    ARCHITECTURE_REVIEW = "architecture-review"
    ARCHITECTURE_REFACTOR = "architecture-refactor"
    TESTER = "tester"
    COMMITTER = "committer"


_ROLE_BY_KIND: dict[StageKind, AgentRole] = {
    StageKind.IMPLEMENTATION: AgentRole.TASK_EXECUTION,
    StageKind.ARCHITECTURE_REVIEW: AgentRole.ARCHITECTURE_SPECIALIST,
    StageKind.ARCHITECTURE_REFACTOR: AgentRole.TASK_EXECUTION,
    StageKind.TESTER: AgentRole.TESTER,
    StageKind.COMMITTER: AgentRole.COMMITTER,
}


def role_for_stage(kind: StageKind) -> AgentRole:
    return _ROLE_BY_KIND[kind]


def stage_name(kind: StageKind, iteration: int | None = None) -> str:
    """Display name: ``architecture-review-2``, ``tester``, ..."""
    if iteration is None:
        return kind.value
    return f"{kind.value}-{iteration}"


@dataclass
class StageSpec:
    """One stage invocation. Built per call, never persisted."""

    kind: StageKind
    prompt: str
    model: str
    max_turns: int
    iteration: int | None = None
    output_schema: Type[BaseModel] | None = None
    sub_agents: dict[str, SubAgentSpec] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return stage_name(self.kind, self.iteration)

    @property
    def role(self) -> AgentRole:
        return role_for_stage(self.kind)


# ---------------------------------------------------------------------------
# Callbacks
# ---------------------------------------------------------------------------


class Interruptible(Protocol):
    async def interrupt(self) -> None: ...


def _noop(*_args: Any) -> None:
    return None


@dataclass
class RunTaskCallbacks:
    """Sinks supplied by the caller for one task run."""

    on_log: Callable[[str], None] = _noop
    on_todo: Callable[[list[dict[str, Any]]], None] = _noop
    on_session: Callable[[str], None] = _noop
    on_subagent: Callable[[dict[str, Any]], None] = _noop
    on_query: Callable[[Interruptible], None] = _noop


@dataclass
class CommitterCallbacks:
    """Sinks for the phase-level committer flows."""

    on_log: Callable[[str], None] = _noop
    on_query: Callable[[Interruptible], None] = _noop


# ---------------------------------------------------------------------------
# Shared state
# ---------------------------------------------------------------------------


@dataclass
class PipelineState:
    """Mutable state threaded through the stages of one run.

    Only the active stage writes ``session_id``; the next stage resumes it.
    """

    cwd: str
    task_id: str
    session_id: str | None = None
    total_duration_ms: int = 0
    total_cost_usd: float = 0.0
    has_cost: bool = False
    sections: list[str] = field(default_factory=list)
    review_iteration: int = 0
    last_review: ArchitectureReview | None = None

    def record(self, name: str, result: StageResult) -> None:
        """Accumulate a stage's duration, cost and non-empty text."""
        self.total_duration_ms += result.duration_ms or 0
        if result.cost_usd is not None:
            self.total_cost_usd += result.cost_usd
            self.has_cost = True
        text = (result.text or "").strip()
        if text:
            self.sections.append(f"## {name}\n{text}")

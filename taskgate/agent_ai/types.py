"""Typed session events and options for agent invocations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Union


class Tool(str, Enum):
    """Claude Code tool names the runtime inspects."""

    READ = "Read"
    WRITE = "Write"
    EDIT = "Edit"
    BASH = "Bash"
    GLOB = "Glob"
    GREP = "Grep"
    TODO_WRITE = "TodoWrite"
    TASK = "Task"


DEFAULT_TOOLS: list[str] = [
    Tool.READ, Tool.WRITE, Tool.EDIT, Tool.BASH, Tool.GLOB, Tool.GREP, Tool.TODO_WRITE,
]


class AgentRole(str, Enum):
    """Roles a model can be resolved for."""

    TASK_EXECUTION = "task_execution"
    ARCHITECTURE_SPECIALIST = "architecture_specialist"
    TESTER = "tester"
    COMMITTER = "committer"


ModelResolver = Callable[[AgentRole], str]


# ---------------------------------------------------------------------------
# Session events
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Init:
    """Session started (or resumed) with this id."""

    session_id: str


@dataclass(frozen=True, slots=True)
class TextDelta:
    """Streamed chunk of assistant text."""

    text: str


@dataclass(frozen=True, slots=True)
class ToolUse:
    """Tool invocation by the assistant."""

    name: str
    input: dict[str, Any]


@dataclass(frozen=True, slots=True)
class Result:
    """Terminal result of a session."""

    text: str
    stop_reason: str | None = None
    duration_ms: int | None = None
    cost_usd: float | None = None
    structured_payload: Any = None
    is_error: bool = False


SessionEvent = Union[Init, TextDelta, ToolUse, Result]


# ---------------------------------------------------------------------------
# Tool policy
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Allow:
    pass


@dataclass(frozen=True, slots=True)
class Deny:
    message: str


ToolDecision = Union[Allow, Deny]

ToolPolicy = Callable[[str, dict[str, Any]], Awaitable[ToolDecision]]


# ---------------------------------------------------------------------------
# Options
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SubAgentSpec:
    """Named sub-agent persona made available to a session."""

    description: str
    prompt: str


@dataclass
class SessionOptions:
    """Everything an agent invocation needs besides the prompt."""

    model: str
    cwd: str
    max_turns: int
    resume: str | None = None
    output_schema: dict[str, Any] | None = None
    sub_agents: dict[str, SubAgentSpec] = field(default_factory=dict)
    tool_policy: ToolPolicy | None = None
    # Pre-approved tools skip ``tool_policy``; leave empty where a policy must see every call.
    allowed_tools: list[str] = field(default_factory=list)
    include_partial_messages: bool = True

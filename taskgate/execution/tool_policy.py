"""Per-stage capability policy for shell commands run by the agent."""

from __future__ import annotations

import json
import re
from typing import Any

from taskgate.agent_ai.types import Allow, Deny, Tool, ToolDecision, ToolPolicy
from taskgate.execution.stages import StageKind

MUTATING_GIT_COMMAND_PATTERN = re.compile(
    r"\bgit\s+(?:add|am|apply|branch|checkout|cherry-pick|commit|merge|mv|pull|push|"
    r"rebase|reset|revert|rm|stash|switch|tag|update-ref|worktree)\b",
    re.IGNORECASE,
)
GIT_MERGE_COMMAND_PATTERN = re.compile(r"\bgit\s+merge\b", re.IGNORECASE)

_COMMAND_KEYS = ("command", "cmd", "script", "input", "args", "argv")


def extract_bash_command(tool_input: dict[str, Any]) -> str:
    """Best-effort command text from a Bash tool input."""
    for key in _COMMAND_KEYS:
        value = tool_input.get(key)
        if isinstance(value, str):
            return value
        if isinstance(value, list):
            joined = " ".join(part for part in value if isinstance(part, str))
            if joined.strip():
                return joined
    return json.dumps(tool_input, default=str)


def decide(kind: StageKind, stage_name: str, tool_name: str, tool_input: dict[str, Any]) -> ToolDecision:
    if tool_name != Tool.BASH.value:
        return Allow()

    command = extract_bash_command(tool_input)

    if kind is not StageKind.COMMITTER and MUTATING_GIT_COMMAND_PATTERN.search(command):
        return Deny(
            f"Runtime policy: {stage_name} cannot execute mutating git commands. "
            "Only the committer stage may perform git state mutations."
        )

    if kind is StageKind.COMMITTER and GIT_MERGE_COMMAND_PATTERN.search(command):
        return Deny(
            "Runtime policy: committer task stage cannot run git merge. "
            "Merges are only allowed in the dedicated phase-merge committer flow."
        )

    return Allow()


def stage_tool_policy(kind: StageKind, stage_name: str) -> ToolPolicy:
    """Build the ``can_use_tool`` callback for one stage."""

    async def _policy(tool_name: str, tool_input: dict[str, Any]) -> ToolDecision:
        return decide(kind, stage_name, tool_name, tool_input)

    return _policy


async def allow_all_tools(tool_name: str, tool_input: dict[str, Any]) -> ToolDecision:
    """Policy for the phase committer flows, which may run any tool, ``git merge`` included."""
    return Allow()

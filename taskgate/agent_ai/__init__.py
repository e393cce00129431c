from taskgate.agent_ai.client import (
    AgentSession,
    AgentSessionClient,
    ClaudeSession,
    ClaudeSessionClient,
    decode_message,
)
from taskgate.agent_ai.types import (
    AgentRole,
    Allow,
    Deny,
    Init,
    ModelResolver,
    Result,
    SessionEvent,
    SessionOptions,
    SubAgentSpec,
    TextDelta,
    Tool,
    ToolDecision,
    ToolPolicy,
    ToolUse,
)

__all__ = [
    "AgentRole",
    "AgentSession",
    "AgentSessionClient",
    "Allow",
    "ClaudeSession",
    "ClaudeSessionClient",
    "Deny",
    "Init",
    "ModelResolver",
    "Result",
    "SessionEvent",
    "SessionOptions",
    "SubAgentSpec",
    "TextDelta",
    "Tool",
    "ToolDecision",
    "ToolPolicy",
    "ToolUse",
    "decode_message",
]

"""Agent session client: typed async wrapper around claude_agent_sdk.

SDK messages are decoded once, at this boundary, into the closed
``SessionEvent`` variants from :mod:`taskgate.agent_ai.types`. Nothing above
this module touches SDK message classes.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from typing import Any, Protocol

from claude_agent_sdk import (
    AgentDefinition,
    AssistantMessage as _AssistantMessage,
    ClaudeAgentOptions,
    ClaudeSDKClient,
    PermissionResultAllow,
    PermissionResultDeny,
    ResultMessage as _ResultMessage,
    SystemMessage as _SystemMessage,
    ToolUseBlock as _ToolUseBlock,
)
from claude_agent_sdk.types import StreamEvent as _StreamEvent

from taskgate.agent_ai.types import (
    Deny,
    Init,
    Result,
    SessionEvent,
    SessionOptions,
    TextDelta,
    ToolUse,
)

logger = logging.getLogger(__name__)

DEFAULT_SETTING_SOURCES: list[str] = ["project", "local", "user"]


class AgentSession(Protocol):
    """One running agent invocation.

    Used as an async context manager; ``events()`` yields decoded events in
    arrival order and ``interrupt()`` asks the agent to stop.
    """

    async def __aenter__(self) -> "AgentSession": ...

    async def __aexit__(self, *exc_info: Any) -> None: ...

    def events(self) -> AsyncIterator[SessionEvent]: ...

    async def interrupt(self) -> None: ...


class AgentSessionClient(Protocol):
    def open(self, prompt: str, options: SessionOptions) -> AgentSession: ...


# ---------------------------------------------------------------------------
# Decoding
# ---------------------------------------------------------------------------


def decode_message(message: Any) -> list[SessionEvent]:
    """Map one SDK message to zero or more session events."""
    if isinstance(message, _SystemMessage):
        session_id = (message.data or {}).get("session_id")
        if message.subtype == "init" and isinstance(session_id, str) and session_id:
            return [Init(session_id=session_id)]
        return []

    if isinstance(message, _StreamEvent):
        event = message.event or {}
        if event.get("type") != "content_block_delta":
            return []
        delta = event.get("delta") or {}
        text = delta.get("text")
        if delta.get("type") == "text_delta" and isinstance(text, str) and text:
            return [TextDelta(text=text)]
        return []

    if isinstance(message, _AssistantMessage):
        return [
            ToolUse(name=block.name, input=dict(block.input or {}))
            for block in (message.content or [])
            if isinstance(block, _ToolUseBlock) and block.name
        ]

    if isinstance(message, _ResultMessage):
        return [
            Result(
                text=message.result or "",
                stop_reason=getattr(message, "stop_reason", None),
                duration_ms=message.duration_ms,
                cost_usd=message.total_cost_usd,
                structured_payload=getattr(message, "structured_output", None),
                is_error=bool(message.is_error),
            )
        ]

    return []


# ---------------------------------------------------------------------------
# Claude implementation
# ---------------------------------------------------------------------------


def build_sdk_options(
    options: SessionOptions,
    *,
    permission_mode: str | None = None,
    setting_sources: list[str] | None = None,
    env: dict[str, str] | None = None,
) -> ClaudeAgentOptions:
    """Translate ``SessionOptions`` into ``ClaudeAgentOptions``."""
    opts_kwargs: dict[str, Any] = {
        "model": options.model,
        "cwd": options.cwd,
        "max_turns": options.max_turns,
        "include_partial_messages": options.include_partial_messages,
        "setting_sources": list(setting_sources or DEFAULT_SETTING_SOURCES),
    }
    if options.resume:
        opts_kwargs["resume"] = options.resume
    if permission_mode:
        opts_kwargs["permission_mode"] = permission_mode
    if env:
        opts_kwargs["env"] = env
    if options.allowed_tools:
        opts_kwargs["allowed_tools"] = [str(getattr(t, "value", t)) for t in options.allowed_tools]
    if options.sub_agents:
        opts_kwargs["agents"] = {
            name: AgentDefinition(description=spec.description, prompt=spec.prompt)
            for name, spec in options.sub_agents.items()
        }
    if options.output_schema:
        opts_kwargs["output_format"] = {
            "type": "json_schema",
            "schema": options.output_schema,
        }
    if options.tool_policy is not None:
        policy = options.tool_policy

        async def _can_use_tool(tool_name: str, tool_input: dict[str, Any], _context: Any):
            decision = await policy(tool_name, tool_input)
            if isinstance(decision, Deny):
                return PermissionResultDeny(message=decision.message)
            return PermissionResultAllow()

        opts_kwargs["can_use_tool"] = _can_use_tool

    return ClaudeAgentOptions(**opts_kwargs)


class ClaudeSession:
    """A streaming-mode Claude Code session.

    Streaming mode (``ClaudeSDKClient``) is required for ``can_use_tool`` and
    gives us ``interrupt()`` for cancellation.
    """

    def __init__(self, prompt: str, sdk_options: ClaudeAgentOptions) -> None:
        self.prompt = prompt
        self._client = ClaudeSDKClient(options=sdk_options)

    async def __aenter__(self) -> "ClaudeSession":
        await self._client.connect()
        await self._client.query(self.prompt)
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self._client.disconnect()

    async def events(self) -> AsyncIterator[SessionEvent]:
        async for message in self._client.receive_response():
            for event in decode_message(message):
                yield event

    async def interrupt(self) -> None:
        logger.info("Interrupting agent session")
        await self._client.interrupt()


class ClaudeSessionClient:
    """Opens Claude Code sessions.

    Usage:
        client = ClaudeSessionClient(permission_mode="acceptEdits")
        async with client.open("Explain the auth module.", options) as session:
            async for event in session.events():
                ...
    """

    def __init__(
        self,
        *,
        permission_mode: str | None = None,
        setting_sources: list[str] | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self.permission_mode = permission_mode
        self.setting_sources = setting_sources
        self.env = dict(env or {})

    def open(self, prompt: str, options: SessionOptions) -> ClaudeSession:
        sdk_options = build_sdk_options(
            options,
            permission_mode=self.permission_mode,
            setting_sources=self.setting_sources,
            env=self.env,
        )
        logger.debug(
            "Opening agent session model=%s cwd=%s max_turns=%s resume=%s",
            options.model, options.cwd, options.max_turns, options.resume,
        )
        return ClaudeSession(prompt, sdk_options)

"""Tests for taskgate.execution.phase_committer."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from claude_agent_sdk import PermissionResultAllow

from conftest import FakeSession, FakeSessionClient, clear_script, stage_script
from taskgate.agent_ai.client import build_sdk_options
from taskgate.agent_ai.types import AgentRole, Init, Result, TextDelta
from taskgate.execution.errors import AgentInvocationError, NoSessionError
from taskgate.execution.phase_committer import PhaseCommitter, stream_committer_session
from taskgate.execution.schemas import PipelineConfig
from taskgate.execution.stages import CommitterCallbacks


def _resolver(role: AgentRole) -> str:
    assert role == AgentRole.COMMITTER
    return "committer-model"


def _committer(client: FakeSessionClient, **config) -> PhaseCommitter:
    return PhaseCommitter(_resolver, client=client, config=PipelineConfig(**config))


class TestStreamCommitterSession:
    def test_collects_text_and_result(self) -> None:
        session = FakeSession([
            TextDelta(text="merging "),
            Init(session_id="s-9"),
            TextDelta(text="done"),
            Result(text="merged 2 branches", stop_reason="end_turn"),
        ])
        on_log = MagicMock()

        result = asyncio.run(stream_committer_session(session, "s-1", CommitterCallbacks(on_log=on_log)))

        assert result.session_id == "s-9"
        assert result.result_text == "merged 2 branches"
        assert result.stop_reason == "end_turn"
        assert [c.args[0] for c in on_log.call_args_list] == ["merging ", "done"]

    def test_keeps_initial_session_without_init(self) -> None:
        session = FakeSession([Result(text="ok")])
        result = asyncio.run(stream_committer_session(session, "s-1", CommitterCallbacks()))
        assert result.session_id == "s-1"


class TestMergePhase:
    def test_merge_prompt_and_options(self, tmp_path: Path) -> None:
        client = FakeSessionClient([clear_script("c-0"), stage_script("merged", session_id="c-1")])
        on_query = MagicMock()

        result = asyncio.run(
            _committer(client).merge_phase(
                str(tmp_path),
                "main",
                ["task/1", "task/2"],
                3,
                CommitterCallbacks(on_query=on_query),
                merge_context_summary="task/1 adds export; task/2 adds import",
                validation_commands=["pytest -q", "ruff check ."],
            )
        )

        assert result.session_id == "c-1"
        assert result.result_text == "merged"
        on_query.assert_called_once_with(client.sessions[1])

        prompt, options = client.calls[1]
        assert client.prompts[0] == "/clear"
        assert options.model == "committer-model"
        assert options.max_turns == 80
        assert options.resume == "c-0"
        assert options.tool_policy is not None
        assert options.cwd == str(tmp_path)
        assert "1. task/1\n2. task/2" in prompt
        assert "Target branch: main" in prompt
        assert "Phase number: 3" in prompt
        assert "task/2 adds import" in prompt
        assert "1. pytest -q\n2. ruff check ." in prompt
        assert "only agent allowed to run git merge" in prompt

    def test_merge_defaults(self, tmp_path: Path) -> None:
        client = FakeSessionClient([clear_script(), stage_script("merged")])
        asyncio.run(_committer(client).merge_phase(str(tmp_path), "main", ["task/1"], 1))
        prompt = client.prompts[1]
        assert "No additional merge context provided." in prompt
        assert "(none)" in prompt

    def test_session_failure_is_wrapped(self, tmp_path: Path) -> None:
        client = FakeSessionClient([clear_script(), RuntimeError("connection reset")])
        with pytest.raises(AgentInvocationError, match="Phase merge committer session failed"):
            asyncio.run(_committer(client).merge_phase(str(tmp_path), "main", ["task/1"], 1))

    def test_clear_session_without_id(self, tmp_path: Path) -> None:
        client = FakeSessionClient([[Result(text="")]])
        with pytest.raises(NoSessionError):
            asyncio.run(_committer(client).merge_phase(str(tmp_path), "main", ["task/1"], 1))
        assert client.remaining == 0

    def test_bash_permitted_in_sdk_options(self, tmp_path: Path) -> None:
        client = FakeSessionClient([clear_script(), stage_script("merged")])
        asyncio.run(_committer(client).merge_phase(str(tmp_path), "main", ["task/1"], 1))

        opts = build_sdk_options(client.calls[1][1], permission_mode="acceptEdits")
        assert "Bash" in opts.allowed_tools
        assert {"Read", "Edit", "Write"} <= set(opts.allowed_tools)
        for command in ("git merge --no-ff task/1", "pytest -q", "git push origin main"):
            decision = asyncio.run(opts.can_use_tool("Bash", {"command": command}, None))
            assert isinstance(decision, PermissionResultAllow)


class TestStabilizePhase:
    def test_stabilize_prompt_and_budget(self, tmp_path: Path) -> None:
        client = FakeSessionClient([clear_script(), stage_script("stable", session_id="c-2")])

        result = asyncio.run(
            _committer(client, stabilize_max_turns=12).stabilize_phase(
                str(tmp_path),
                "main",
                "phase-2-integration",
                2,
                ["make test"],
                phase_context_summary="Two tasks landed.",
            )
        )

        assert result.session_id == "c-2"
        assert result.result_text == "stable"
        prompt, options = client.calls[1]
        assert options.max_turns == 12
        assert "Bash" in options.allowed_tools
        assert "Checkout phase-2-integration." in prompt
        assert "relative to main" in prompt
        assert "Two tasks landed." in prompt
        assert "1. make test" in prompt

    def test_missing_repo_root_falls_back_to_process_cwd(self, tmp_path: Path) -> None:
        import os

        client = FakeSessionClient([clear_script(), stage_script("stable")])
        asyncio.run(
            _committer(client).stabilize_phase(
                str(tmp_path / "missing"), "main", "integration", 1, [],
            )
        )
        assert client.calls[1][1].cwd == os.getcwd()
        assert "No additional phase context provided." in client.prompts[1]

"""Tests for taskgate.execution.tool_policy."""

from __future__ import annotations

import asyncio

import pytest

from taskgate.agent_ai.types import Allow, Deny
from taskgate.execution.stages import StageKind
from taskgate.execution.tool_policy import allow_all_tools, decide, extract_bash_command, stage_tool_policy

_NON_COMMITTER = [
    StageKind.IMPLEMENTATION,
    StageKind.ARCHITECTURE_REVIEW,
    StageKind.ARCHITECTURE_REFACTOR,
    StageKind.TESTER,
]


class TestExtractBashCommand:
    def test_command_key(self) -> None:
        assert extract_bash_command({"command": "ls -la"}) == "ls -la"

    def test_argv_list_is_joined(self) -> None:
        assert extract_bash_command({"argv": ["git", "commit", "-m", "x"]}) == "git commit -m x"

    def test_unknown_shape_falls_back_to_json(self) -> None:
        text = extract_bash_command({"weird": {"nested": "git push"}})
        assert "git push" in text


class TestDecide:
    @pytest.mark.parametrize("kind", _NON_COMMITTER)
    @pytest.mark.parametrize(
        "command",
        [
            "git commit -m 'feat: x'",
            "cd repo && git add .",
            "GIT PUSH origin main",
            "git   checkout -b other",
            "git stash",
            "git worktree add ../wt",
        ],
    )
    def test_mutating_git_denied_outside_committer(self, kind: StageKind, command: str) -> None:
        decision = decide(kind, kind.value, "Bash", {"command": command})
        assert isinstance(decision, Deny)
        assert kind.value in decision.message

    @pytest.mark.parametrize("kind", _NON_COMMITTER)
    def test_read_only_git_allowed(self, kind: StageKind) -> None:
        for command in ("git status", "git diff HEAD", "git log --oneline", "pytest -q"):
            assert isinstance(decide(kind, kind.value, "Bash", {"command": command}), Allow)

    def test_committer_may_commit(self) -> None:
        decision = decide(StageKind.COMMITTER, "committer", "Bash", {"command": "git add -A && git commit -m 'feat: x'"})
        assert isinstance(decision, Allow)

    def test_committer_may_not_merge(self) -> None:
        decision = decide(StageKind.COMMITTER, "committer", "Bash", {"command": "git merge feature"})
        assert isinstance(decision, Deny)
        assert "git merge" in decision.message

    def test_non_bash_tools_always_allowed(self) -> None:
        decision = decide(StageKind.IMPLEMENTATION, "implementation", "Edit", {"command": "git commit"})
        assert isinstance(decision, Allow)

    def test_word_boundary(self) -> None:
        decision = decide(StageKind.TESTER, "tester", "Bash", {"command": "legit commitment"})
        assert isinstance(decision, Allow)


class TestStageToolPolicy:
    def test_policy_is_async_and_scoped(self) -> None:
        policy = stage_tool_policy(StageKind.ARCHITECTURE_REFACTOR, "architecture-refactor-1")
        decision = asyncio.run(policy("Bash", {"command": "git reset --hard"}))
        assert isinstance(decision, Deny)
        assert "architecture-refactor-1" in decision.message

    def test_allow_all_permits_merge(self) -> None:
        decision = asyncio.run(allow_all_tools("Bash", {"command": "git merge --no-ff task/1"}))
        assert isinstance(decision, Allow)

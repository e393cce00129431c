"""Tests for taskgate.execution.git_probe against a throwaway repository."""

from __future__ import annotations

import asyncio
import shutil
import subprocess
from pathlib import Path

import pytest

from taskgate.execution.errors import TaskgateError
from taskgate.execution.git_probe import GitError, SubprocessGitProbe, parse_log_output

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available")


def _git(repo: Path, *args: str) -> str:
    proc = subprocess.run(
        ["git", *args], cwd=repo, capture_output=True, text=True, check=True,
    )
    return proc.stdout.strip()


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    if shutil.which("git") is None:
        pytest.skip("git binary not available")
    _git(tmp_path, "init", "-q")
    _git(tmp_path, "config", "user.email", "dev@example.com")
    _git(tmp_path, "config", "user.name", "Dev")
    _git(tmp_path, "config", "commit.gpgsign", "false")
    (tmp_path / "README.md").write_text("hello\n")
    _git(tmp_path, "add", "README.md")
    _git(tmp_path, "commit", "-q", "-m", "chore: initial commit")
    return tmp_path


def _commit(repo: Path, name: str, message: str) -> str:
    (repo / name).write_text(name)
    _git(repo, "add", name)
    _git(repo, "commit", "-q", "-m", message)
    return _git(repo, "rev-parse", "HEAD")


class TestParseLogOutput:
    def test_oldest_first(self) -> None:
        output = "bbb\x1ffeat: two\x1ffeat: two\n\x1e\naaa\x1ffix: one\x1ffix: one\n\nbody\n\x1e\n"
        records = parse_log_output(output)
        assert [r.hash for r in records] == ["aaa", "bbb"]
        assert records[0].subject == "fix: one"
        assert "body" in records[0].body

    def test_empty_output(self) -> None:
        assert parse_log_output("") == []
        assert parse_log_output("\n\x1e\n") == []


@requires_git
class TestSubprocessGitProbe:
    def test_head_of(self, repo: Path) -> None:
        head = asyncio.run(SubprocessGitProbe().head_of(str(repo)))
        assert head == _git(repo, "rev-parse", "HEAD")

    def test_head_of_non_repo_is_none(self, tmp_path: Path) -> None:
        assert asyncio.run(SubprocessGitProbe().head_of(str(tmp_path))) is None

    def test_head_of_missing_binary_is_none(self, repo: Path) -> None:
        probe = SubprocessGitProbe(git_bin="definitely-not-git-binary")
        assert asyncio.run(probe.head_of(str(repo))) is None

    def test_log_range_oldest_to_newest(self, repo: Path) -> None:
        base = _git(repo, "rev-parse", "HEAD")
        first = _commit(repo, "a.txt", "feat: add a")
        second = _commit(repo, "b.txt", "fix(b): add b\n\nCo-authored-by: Claude <x@y>")

        records = asyncio.run(SubprocessGitProbe().log_range(str(repo), f"{base}..{second}"))

        assert [r.hash for r in records] == [first, second]
        assert records[1].subject == "fix(b): add b"
        assert "Co-authored-by: Claude" in records[1].body

    def test_log_range_bad_range_raises(self, repo: Path) -> None:
        with pytest.raises(GitError):
            asyncio.run(SubprocessGitProbe().log_range(str(repo), "nope..alsonope"))


def test_git_error_is_pipeline_error() -> None:
    assert issubclass(GitError, TaskgateError)

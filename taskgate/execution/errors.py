"""Error taxonomy for the task pipeline.

Every error here is fatal to the current ``run_task`` call.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from taskgate.execution.schemas import ArchitectureReview


class TaskgateError(RuntimeError):
    """Base class for pipeline errors."""


class AgentInvocationError(TaskgateError):
    """The agent session failed or produced no usable result."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class NoSessionError(AgentInvocationError):
    """No session id was ever observed for an invocation."""


class PolicyViolation(TaskgateError):
    """A git-state or commit-hygiene rule was broken."""


class CommitPolicyViolation(PolicyViolation):
    """A commit in the validated range breaks the commit policy."""

    def __init__(self, message: str, *, commit_hash: str | None = None, context: str = "") -> None:
        super().__init__(message)
        self.commit_hash = commit_hash
        self.context = context


class QualityGateError(TaskgateError):
    def __init__(self, message: str, review: "ArchitectureReview") -> None:
        super().__init__(message)
        self.review = review


class QualityGateBlocked(QualityGateError):
    """Architecture review was enforced to ``blocked``."""


class QualityGateExhausted(QualityGateError):
    """Refactor cycle budget spent while the review still fails."""

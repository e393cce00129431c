"""taskgate: quality-gated task execution for external coding agents."""

from taskgate.execution.errors import (
    AgentInvocationError,
    CommitPolicyViolation,
    NoSessionError,
    PolicyViolation,
    QualityGateBlocked,
    QualityGateExhausted,
    TaskgateError,
)
from taskgate.execution.phase_committer import PhaseCommitter
from taskgate.execution.pipeline import TaskPipeline
from taskgate.execution.schemas import (
    PhaseFlowResult,
    PipelineConfig,
    PipelineRunResult,
    Plan,
    RetryContext,
    Task,
)
from taskgate.execution.stages import CommitterCallbacks, RunTaskCallbacks

__all__ = [
    "AgentInvocationError",
    "CommitPolicyViolation",
    "CommitterCallbacks",
    "NoSessionError",
    "PhaseCommitter",
    "PhaseFlowResult",
    "PipelineConfig",
    "PipelineRunResult",
    "Plan",
    "PolicyViolation",
    "QualityGateBlocked",
    "QualityGateExhausted",
    "RetryContext",
    "RunTaskCallbacks",
    "Task",
    "TaskPipeline",
    "TaskgateError",
]

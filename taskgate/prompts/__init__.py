"""Prompt builders for the task pipeline stages and phase committer flows."""

from taskgate.prompts.phase import phase_merge_task_prompt, phase_stabilize_task_prompt
from taskgate.prompts.task_stages import (
    architecture_review_task_prompt,
    architecture_refactor_task_prompt,
    committer_task_prompt,
    implementation_task_prompt,
    tester_task_prompt,
)

__all__ = [
    "implementation_task_prompt",
    "architecture_review_task_prompt",
    "architecture_refactor_task_prompt",
    "tester_task_prompt",
    "committer_task_prompt",
    "phase_merge_task_prompt",
    "phase_stabilize_task_prompt",
]

"""Architecture quality gate.

The reviewer's self-reported status can only be tightened here, never
loosened, with one exception: a review with zero findings is always ``pass``.
"""

from __future__ import annotations

from taskgate.execution.schemas import (
    ArchitectureReview,
    FindingRule,
    ReviewStatus,
    Severity,
)

QUALITY_RULES = frozenset(
    {FindingRule.BOUNDARY, FindingRule.SRP, FindingRule.DUPLICATION, FindingRule.SOLID}
)

_STATUS_RANK: dict[ReviewStatus, int] = {
    ReviewStatus.PASS: 0,
    ReviewStatus.PASS_WITH_NOTES: 1,
    ReviewStatus.NEEDS_REFACTOR: 2,
    ReviewStatus.BLOCKED: 3,
}


def most_restrictive(left: ReviewStatus, right: ReviewStatus) -> ReviewStatus:
    return left if _STATUS_RANK[left] >= _STATUS_RANK[right] else right


def enforce(review: ArchitectureReview) -> ArchitectureReview:
    """Derive the enforced review. *review* itself is left untouched."""
    findings = review.findings
    has_critical = any(f.severity == Severity.CRITICAL for f in findings)
    has_high = any(f.severity == Severity.HIGH for f in findings)
    has_medium_quality = any(
        f.severity == Severity.MEDIUM and f.rule in QUALITY_RULES for f in findings
    )
    missing_actions = bool(findings) and not review.recommended_actions

    notes: list[str] = []
    if has_critical:
        status = most_restrictive(review.status, ReviewStatus.BLOCKED)
        notes.append("critical finding present")
    elif has_high or has_medium_quality or missing_actions:
        status = most_restrictive(review.status, ReviewStatus.NEEDS_REFACTOR)
        if has_high:
            notes.append("high-severity finding present")
        if has_medium_quality:
            notes.append("medium-severity quality rule violation present")
        if missing_actions:
            notes.append("missing recommended actions")
    elif findings:
        status = most_restrictive(review.status, ReviewStatus.PASS_WITH_NOTES)
        notes.append("non-critical findings present")
    else:
        status = ReviewStatus.PASS
        notes.append("no findings reported")

    if status == review.status:
        return review

    return review.model_copy(
        update={
            "status": status,
            "summary": f"{review.summary} [quality gate enforced: {', '.join(notes)}]",
        }
    )


def summarize_findings(review: ArchitectureReview) -> str:
    """Numbered one-line-per-finding summary, or the review summary if none."""
    if not review.findings:
        return review.summary
    return "\n".join(
        f"{i}. [{f.severity.value}] ({f.rule.value}) {f.location}: {f.message}"
        for i, f in enumerate(review.findings, start=1)
    )

"""
Summary reporter — aggregate a run's outcomes into a Report.

Pure: no I/O. Terminal rendering lives in ``devbox.ui.cli.report``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from devbox.core.models.step import Outcome, OutcomeStatus


@dataclass
class AttentionItem:
    """A step the user has to look at (failed or manual)."""

    step_id: str
    status: OutcomeStatus
    detail: str
    error_kind: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "step_id": self.step_id,
            "status": str(self.status),
            "detail": self.detail,
            "error_kind": self.error_kind,
        }


@dataclass
class Report:
    """Aggregate view of one provisioning run."""

    outcomes: list[Outcome] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    total_duration_ms: int = 0
    attention: list[AttentionItem] = field(default_factory=list)
    warnings: list[tuple[str, str]] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)
    rollback_hints: list[tuple[str, str]] = field(default_factory=list)
    interrupted: bool = False

    def count(self, status: OutcomeStatus) -> int:
        return self.counts.get(str(status), 0)

    @property
    def applied(self) -> int:
        return self.count(OutcomeStatus.APPLIED)

    @property
    def skipped(self) -> int:
        return self.count(OutcomeStatus.SKIPPED)

    @property
    def failed(self) -> int:
        return self.count(OutcomeStatus.FAILED)

    @property
    def manual(self) -> int:
        return self.count(OutcomeStatus.MANUAL)

    @property
    def not_run(self) -> int:
        return self.count(OutcomeStatus.NOT_RUN)

    @property
    def ok(self) -> bool:
        return self.failed == 0 and not self.interrupted

    @property
    def status(self) -> str:
        if self.interrupted:
            return "interrupted"
        if self.failed == 0:
            return "attention" if self.manual else "ok"
        if self.applied or self.skipped:
            return "partial"
        return "failed"

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "counts": dict(self.counts),
            "total_duration_ms": self.total_duration_ms,
            "interrupted": self.interrupted,
            "attention": [a.to_dict() for a in self.attention],
            "warnings": [{"step_id": s, "message": m} for s, m in self.warnings],
            "pending": list(self.pending),
            "rollback_hints": [{"step_id": s, "hint": h} for s, h in self.rollback_hints],
            "outcomes": [o.to_dict() for o in self.outcomes],
        }


def summarize(outcomes: list[Outcome], *, interrupted: bool = False) -> Report:
    """Build a Report from a run's outcomes.

    Rollback hints are listed only when something failed, newest
    applied step first.

    Args:
        outcomes: Outcomes in execution order.
        interrupted: Whether the run stopped on an interrupt.

    Returns:
        Report with every status present in ``counts`` (zero included).
    """
    counts = {str(s): 0 for s in OutcomeStatus}
    report = Report(outcomes=list(outcomes), counts=counts, interrupted=interrupted)

    for outcome in outcomes:
        counts[str(outcome.status)] += 1
        report.total_duration_ms += outcome.duration_ms
        if outcome.needs_attention:
            report.attention.append(AttentionItem(
                step_id=outcome.step_id,
                status=outcome.status,
                detail=outcome.detail,
                error_kind=outcome.error_kind,
            ))
        for warning in outcome.warnings:
            report.warnings.append((outcome.step_id, warning))
        if outcome.metadata.get("dry_run"):
            report.pending.append(outcome.step_id)

    if report.failed or interrupted:
        for outcome in reversed(outcomes):
            hint = outcome.metadata.get("rollback")
            if outcome.status == OutcomeStatus.APPLIED and hint:
                report.rollback_hints.append((outcome.step_id, hint))

    return report

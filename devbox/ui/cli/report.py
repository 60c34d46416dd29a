"""
CLI rendering for provisioning runs.

Thin presentation over ``devbox.core.engine.report``: one line per
outcome while the run is in progress, then the summary block.
"""

from __future__ import annotations

import click

from devbox.core.engine.report import Report
from devbox.core.models.step import Outcome, OutcomeStatus, StepDescriptor

_ICONS = {
    OutcomeStatus.APPLIED: ("✓", "green"),
    OutcomeStatus.SKIPPED: ("⊘", "white"),
    OutcomeStatus.FAILED: ("✗", "red"),
    OutcomeStatus.MANUAL: ("!", "yellow"),
    OutcomeStatus.NOT_RUN: ("·", "bright_black"),
}

_STATUS_COLORS = {
    "ok": "green",
    "attention": "yellow",
    "partial": "yellow",
    "failed": "red",
    "interrupted": "red",
}


def echo_outcome(outcome: Outcome, verbose: bool = False) -> None:
    """One status line for a finished step."""
    icon, color = _ICONS[outcome.status]
    click.secho(f"   {icon} {outcome.step_id}", fg=color, nl=False)
    timing = f" ({outcome.duration_ms}ms)" if outcome.duration_ms else ""
    click.echo(timing)

    show_detail = verbose or outcome.status in (OutcomeStatus.FAILED, OutcomeStatus.NOT_RUN)
    if show_detail and outcome.detail:
        for line in outcome.detail.split("\n")[:5]:
            click.echo(f"     │ {line}")


def echo_report(report: Report, *, dry_run: bool = False) -> None:
    """Summary block: counts, attention items, warnings, rollback hints."""
    click.echo()
    color = _STATUS_COLORS.get(report.status, "white")
    label = "Dry run" if dry_run else "Result"
    click.secho(
        f"   {label}: {report.status} — "
        f"{report.applied} applied, {report.skipped} skipped, {report.failed} failed, "
        f"{report.manual} manual, {report.not_run} not run "
        f"({report.total_duration_ms / 1000:.1f}s)",
        fg=color,
        bold=True,
    )

    if report.pending:
        click.echo()
        click.secho(f"   Would apply ({len(report.pending)}):", fg="cyan")
        for step_id in report.pending:
            click.echo(f"     • {step_id}")

    if report.attention:
        click.echo()
        click.secho("   Needs attention:", fg="yellow", bold=True)
        for item in report.attention:
            icon, item_color = _ICONS[item.status]
            kind = f" [{item.error_kind}]" if item.error_kind else ""
            click.secho(f"     {icon} {item.step_id}{kind}", fg=item_color)
            for line in item.detail.split("\n"):
                click.echo(f"       {line}")

    if report.warnings:
        click.echo()
        click.secho("   ⚠️  Warnings:", fg="yellow")
        for step_id, message in report.warnings:
            click.echo(f"     • {step_id}: {message}")

    if report.rollback_hints:
        click.echo()
        click.secho("   Applied this run (undo in this order if needed):", fg="white", bold=True)
        for step_id, hint in report.rollback_hints:
            click.echo(f"     • {step_id}: {hint}")

    click.echo()


def echo_steps(steps: list[StepDescriptor]) -> None:
    """The ordered registry, one step per line."""
    for i, step in enumerate(steps, start=1):
        click.secho(f"   {i:>3}. {step.id}", fg="cyan", nl=False)
        click.echo(f"  {step.description}")
        if step.depends_on:
            click.echo(f"        after: {', '.join(sorted(step.depends_on))}")
        if step.rollback:
            click.echo(f"        undo:  {step.rollback}")
    click.echo()

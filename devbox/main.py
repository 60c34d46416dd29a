"""
devbox — CLI entrypoint.

Usage:
    devbox --help
    devbox run --dry-run
    devbox run --only go,zshrc
    devbox steps
    devbox config check
"""

from __future__ import annotations

import json
import os
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click

from devbox import __version__
from devbox.core.observability.logging_config import resolve_level, setup_logging

if TYPE_CHECKING:
    from devbox.core.models.settings import WorkstationConfig


@click.group()
@click.version_option(version=__version__, prog_name="devbox")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output.")
@click.option("--debug", is_flag=True, help="Enable debug logging (very verbose).")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to devbox.yml (default: $DEVBOX_CONFIG or ~/.config/devbox/devbox.yml).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """devbox — idempotent workstation provisioning."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["quiet"] = quiet
    ctx.obj["debug"] = debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    # ── Logging setup (once, at process start) ──────────────────
    setup_logging(
        level=resolve_level(debug=debug, verbose=verbose, quiet=quiet),
        log_file=os.environ.get("DEVBOX_LOG_FILE"),
        log_file_level=os.environ.get("DEVBOX_LOG_FILE_LEVEL"),
    )


def _split_ids(values: tuple[str, ...]) -> list[str]:
    """``--only a,b --only c`` → ``["a", "b", "c"]``."""
    ids: list[str] = []
    for value in values:
        ids.extend(part.strip() for part in value.split(",") if part.strip())
    return ids


def _collect_identity(settings: WorkstationConfig) -> WorkstationConfig:
    """Prompt for missing identity fields when a human is at the terminal."""
    identity = settings.identity
    if settings.non_interactive or identity.complete or not sys.stdin.isatty():
        return settings

    click.secho("Git identity is not configured.", fg="cyan")
    updates = {
        "name": identity.name or click.prompt("   Full name"),
        "email": identity.email or click.prompt("   Email"),
        "github_user": identity.github_user
        or click.prompt("   GitHub username", default="", show_default=False),
    }
    return settings.model_copy(update={"identity": identity.model_copy(update=updates)})


# ── run ─────────────────────────────────────────────────────────


@cli.command()
@click.option("--continue-on-error", is_flag=True, help="Keep going after a failed step.")
@click.option(
    "--only",
    "only",
    multiple=True,
    metavar="ID[,ID...]",
    help="Run only these steps (and what they depend on).",
)
@click.option("--dry-run", is_flag=True, help="Probe every step but change nothing.")
@click.option("--non-interactive", is_flag=True, help="Never prompt; missing input becomes manual.")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def run(
    ctx: click.Context,
    continue_on_error: bool,
    only: tuple[str, ...],
    dry_run: bool,
    non_interactive: bool,
    as_json: bool,
) -> None:
    """Provision this workstation.

    Examples:

        devbox run

        devbox run --dry-run

        devbox run --only go,zshrc --continue-on-error
    """
    from devbox.core.errors import ConfigError
    from devbox.core.use_cases.run import EXIT_CONFIG, load_settings, run_provision
    from devbox.ui.cli.report import echo_outcome, echo_report

    overrides = {"non_interactive": True} if non_interactive else None
    try:
        settings = load_settings(ctx.obj.get("config_path"), overrides=overrides)
    except ConfigError as e:
        if as_json:
            click.echo(json.dumps({"error": str(e), "exit_code": EXIT_CONFIG}, indent=2))
        else:
            click.secho(f"❌ {e}", fg="red")
        sys.exit(EXIT_CONFIG)

    if not as_json:
        settings = _collect_identity(settings)

    verbose = ctx.obj.get("verbose", False)
    quiet = ctx.obj.get("quiet", False)

    if not as_json and not quiet:
        mode_label = "[dry-run] " if dry_run else ""
        click.secho(f"\n⚡ {mode_label}devbox — {settings.root}", fg="cyan", bold=True)
        click.echo()

    result = run_provision(
        settings=settings,
        only=_split_ids(only) or None,
        continue_on_error=continue_on_error,
        dry_run=dry_run,
        on_outcome=None if as_json else (lambda o: echo_outcome(o, verbose)),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    assert result.report is not None
    echo_report(result.report, dry_run=dry_run)

    if result.interrupted:
        click.secho("   Interrupted; re-run to continue where this run stopped.", fg="red")
    sys.exit(result.exit_code)


# ── status ──────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def status(ctx: click.Context, as_json: bool) -> None:
    """Show which steps are satisfied (probe only, changes nothing)."""
    from devbox.core.use_cases.run import run_provision
    from devbox.ui.cli.report import echo_outcome, echo_report

    verbose = ctx.obj.get("verbose", False)
    result = run_provision(
        ctx.obj.get("config_path"),
        dry_run=True,
        continue_on_error=True,
        overrides={"non_interactive": True},
        on_outcome=None if as_json else (lambda o: echo_outcome(o, verbose)),
    )

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(result.exit_code)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(result.exit_code)

    assert result.report is not None
    echo_report(result.report, dry_run=True)
    sys.exit(result.exit_code)


# ── steps ───────────────────────────────────────────────────────


@cli.command()
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def steps(ctx: click.Context, as_json: bool) -> None:
    """List every step in execution order."""
    from devbox.core.use_cases.run import EXIT_CONFIG
    from devbox.core.use_cases.steps import list_steps
    from devbox.ui.cli.report import echo_steps

    result = list_steps(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(EXIT_CONFIG if result.error else 0)

    if result.error:
        click.secho(f"❌ {result.error}", fg="red")
        sys.exit(EXIT_CONFIG)

    if not ctx.obj.get("quiet", False):
        click.secho(f"\n📋 Steps: {len(result.steps)}", fg="cyan", bold=True)
    echo_steps(result.steps)


# ── config ──────────────────────────────────────────────────────


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command("check")
@click.option("--json-output", "--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_context
def config_check(ctx: click.Context, as_json: bool) -> None:
    """Validate devbox.yml configuration."""
    from devbox.core.use_cases.config_check import check_config
    from devbox.core.use_cases.run import EXIT_CONFIG

    result = check_config(config_path=ctx.obj.get("config_path"))

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        sys.exit(0 if result.valid else EXIT_CONFIG)

    if result.valid:
        assert result.settings is not None  # guaranteed when valid
        click.secho("✅ Configuration is valid", fg="green", bold=True)
        click.echo(f"   File:  {result.config_path or '(defaults)'}")
        click.echo(f"   Root:  {result.settings.root}")
        click.echo(f"   Go:    {result.settings.go.version}")
        click.echo(f"   Steps: {result.step_count}")
    else:
        click.secho("❌ Configuration errors:", fg="red", bold=True)
        for err in result.errors:
            click.echo(f"   • {err}")

    if result.warnings:
        click.echo()
        click.secho("⚠️  Warnings:", fg="yellow")
        for warn in result.warnings:
            click.echo(f"   • {warn}")

    if not result.valid:
        click.echo()
        sys.exit(EXIT_CONFIG)

    click.echo()


if __name__ == "__main__":
    cli()

"""
Run use case — provision the workstation.

This is the top-level orchestrator: it loads config, gathers host facts,
builds the step catalog, runs the Executor, and summarizes the outcomes.
The full vertical slice from ``devbox run`` to a Report.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from devbox.adapters.packages.apt import AptPackageManager
from devbox.adapters.shell.command import CommandRunner
from devbox.core.catalog import build_catalog, seed_model
from devbox.core.config.loader import find_config_file, load_config
from devbox.core.engine.dag import select_steps
from devbox.core.engine.executor import Executor
from devbox.core.engine.report import Report, summarize
from devbox.core.errors import ConfigError
from devbox.core.models.environment import EnvironmentModel
from devbox.core.models.settings import WorkstationConfig
from devbox.core.models.step import Host, Outcome
from devbox.core.services.downloads import fetch_bytes
from devbox.core.services.facts import gather_facts
from devbox.core.services.versions import VersionResolver

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2
EXIT_INTERRUPTED = 130

Fetch = Callable[[str, float], bytes]


@dataclass
class RunResult:
    """Result of a provisioning run."""

    report: Report | None = None
    outcomes: list[Outcome] = field(default_factory=list)
    selected: list[str] = field(default_factory=list)
    error: str | None = None
    dry_run: bool = False
    continue_on_error: bool = False
    interrupted: bool = False

    @property
    def exit_code(self) -> int:
        if self.error is not None:
            return EXIT_CONFIG
        if self.interrupted:
            return EXIT_INTERRUPTED
        if self.report and self.report.failed and not self.continue_on_error:
            return EXIT_FAILED
        return EXIT_OK

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"exit_code": self.exit_code}
        if self.error:
            result["error"] = self.error
            return result

        result["dry_run"] = self.dry_run
        result["continue_on_error"] = self.continue_on_error
        result["selected"] = list(self.selected)
        if self.report:
            result["report"] = self.report.to_dict()
        return result


def load_settings(
    config_path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> WorkstationConfig:
    """Locate and load the configuration.

    Raises:
        ConfigError: Missing explicit file or invalid configuration.
    """
    path = find_config_file(config_path, env)
    return load_config(path, env=env, overrides=overrides)


def build_host(
    settings: WorkstationConfig,
    *,
    runner: CommandRunner | None = None,
    fetch: Fetch | None = None,
) -> Host:
    """Wire the adapters every step receives.

    When ``settings.root`` is not the invoking user's home, commands run
    with ``HOME`` pointed at it so installers, git and ssh write there.
    """
    if runner is None:
        base_env: dict[str, str] = {}
        if settings.root.resolve() != Path.home().resolve():
            base_env["HOME"] = str(settings.root)
        runner = CommandRunner(non_interactive=settings.non_interactive, base_env=base_env)

    fetch = fetch or fetch_bytes
    resolver = VersionResolver(
        settings.go.fallback,
        timeout=settings.network_timeout,
        fetch=lambda url, t: fetch(url, t).decode("utf-8", errors="replace"),
    )
    return Host(
        runner=runner,
        apt=AptPackageManager(runner),
        settings=settings,
        resolver=resolver,
        fetch=fetch,
    )


def run_provision(
    config_path: Path | None = None,
    *,
    settings: WorkstationConfig | None = None,
    only: list[str] | None = None,
    continue_on_error: bool = False,
    dry_run: bool = False,
    overrides: Mapping[str, Any] | None = None,
    env: Mapping[str, str] | None = None,
    runner: CommandRunner | None = None,
    fetch: Fetch | None = None,
    os_release: Path = Path("/etc/os-release"),
    on_outcome: Callable[[Outcome], None] | None = None,
) -> RunResult:
    """Provision the workstation.

    Args:
        config_path: Optional explicit path to devbox.yml.
        settings: Already-loaded configuration (skips loading).
        only: Step ids to run; their dependencies are pulled in.
        continue_on_error: Keep going after a failed step.
        dry_run: Probe only.
        overrides: Dotted-key config values from CLI flags.
        env: Environment mapping (default: ``os.environ``).
        runner: Command runner (default: a real subprocess runner).
        fetch: ``(url, timeout) -> bytes`` for downloads.
        os_release: Where to read distro facts from.
        on_outcome: Called with each Outcome as it is recorded.

    Returns:
        RunResult; ``error`` is set for configuration and cycle errors,
        in which case no step has run.
    """
    result = RunResult(dry_run=dry_run, continue_on_error=continue_on_error)

    # ── Load config and build the plan ───────────────────────────
    try:
        if settings is None:
            settings = load_settings(config_path, env=env, overrides=overrides)
        steps = select_steps(build_catalog(settings), only)
    except ConfigError as e:
        result.error = str(e)
        return result

    result.selected = [s.id for s in steps]
    host = build_host(settings, runner=runner, fetch=fetch)

    facts = gather_facts(host.runner, user=settings.user, os_release=os_release)
    model = EnvironmentModel(seed_model(settings, facts))

    # ── Execute ──────────────────────────────────────────────────
    executor = Executor(
        host,
        continue_on_error=continue_on_error,
        dry_run=dry_run,
        on_outcome=on_outcome,
    )
    try:
        outcomes = executor.run(steps, model)
    except ConfigError as e:
        # CycleDetected is a ConfigError; raised before any step runs
        result.error = str(e)
        return result

    result.outcomes = outcomes
    result.interrupted = executor.interrupted
    result.report = summarize(outcomes, interrupted=executor.interrupted)

    logger.info(
        "Run finished: %s (%d applied, %d skipped, %d failed, %d manual, %d not run)",
        result.report.status,
        result.report.applied,
        result.report.skipped,
        result.report.failed,
        result.report.manual,
        result.report.not_run,
    )
    return result

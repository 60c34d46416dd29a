"""
apt adapter — package queries and installs for the single supported target.

Queries (``dpkg-query``, ``apt-get -s``) are read-only and safe to call
from probes. Mutating calls (``update``, ``install``, ``upgrade``,
``autoremove``) run under sudo and raise the typed errors from
``CommandResult.require()`` on failure.
"""

from __future__ import annotations

import logging
import re

from devbox.adapters.shell.command import CommandResult, CommandRunner

logger = logging.getLogger(__name__)

_APT_ENV = {"DEBIAN_FRONTEND": "noninteractive"}

_SIM_PATTERNS = {
    "upgrade": re.compile(r"(\d+) upgraded"),
    "autoremove": re.compile(r"(\d+) to remove"),
}


class AptPackageManager:
    """Thin wrapper over ``dpkg-query`` and ``apt-get``."""

    name = "apt"

    def __init__(self, runner: CommandRunner, *, timeout: float = 1800):
        self._runner = runner
        self._timeout = timeout

    # ── Queries (probe-safe) ────────────────────────────────────

    def installed_version(self, package: str) -> str | None:
        """Installed version of ``package``, or None if not installed."""
        result = self._runner.run(
            ["dpkg-query", "-W", "-f=${Status}\t${Version}", package],
            timeout=30,
        )
        if not result.ok:
            return None
        status, _, version = result.stdout.strip().partition("\t")
        if not status.endswith("install ok installed"):
            return None
        return version or None

    def installed_versions(self, packages: list[str]) -> dict[str, str | None]:
        """Map each package to its installed version (None = absent)."""
        return {pkg: self.installed_version(pkg) for pkg in packages}

    def missing(self, packages: list[str]) -> list[str]:
        """Packages from the list that are not installed."""
        return [pkg for pkg, ver in self.installed_versions(packages).items() if ver is None]

    def pending_count(self, action: str) -> int | None:
        """Number of packages ``apt-get -s <action>`` would touch.

        Args:
            action: ``"upgrade"`` or ``"autoremove"``.

        Returns:
            Count parsed from the simulation, or None if it could not run.
        """
        pattern = _SIM_PATTERNS[action]
        result = self._runner.run(["apt-get", "-s", action], env=_APT_ENV, timeout=120)
        if not result.ok:
            return None
        match = pattern.search(result.stdout)
        return int(match.group(1)) if match else 0

    # ── Mutations ───────────────────────────────────────────────

    def update(self) -> CommandResult:
        """Refresh the package index."""
        logger.info("Refreshing apt package index")
        return self._apt(["update"]).require("apt-get update")

    def install(self, packages: list[str]) -> CommandResult:
        """Install packages (no-op command is never issued for an empty list)."""
        logger.info("Installing packages: %s", ", ".join(packages))
        return self._apt(["install", "-y", *packages]).require(
            f"apt-get install {' '.join(packages)}"
        )

    def upgrade(self) -> CommandResult:
        return self._apt(["upgrade", "-y"]).require("apt-get upgrade")

    def autoremove(self) -> CommandResult:
        self._apt(["autoremove", "-y"]).require("apt-get autoremove")
        return self._apt(["autoclean"]).require("apt-get autoclean")

    def _apt(self, args: list[str]) -> CommandResult:
        return self._runner.run(
            ["apt-get", *args],
            needs_sudo=True,
            env=_APT_ENV,
            timeout=self._timeout,
        )

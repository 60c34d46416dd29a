"""
Package steps — apt packages, third-party repositories, system upkeep.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from devbox.core.catalog.common import install_root_file, run_remote_script, verify_tool
from devbox.core.data.recipes import APT_REPOS, BAT_LINK, NODESOURCE
from devbox.core.models.step import StepContext, StepDescriptor, StepResult
from devbox.core.models.template import Template
from devbox.core.services.probes import (
    file_has_content,
    packages_installed,
    symlink_points_to,
    user_in_group,
)
from devbox.core.services.templates import render

logger = logging.getLogger(__name__)


def system_upgrade_step() -> StepDescriptor:
    def probe(ctx: StepContext) -> bool:
        return ctx.apt.pending_count("upgrade") == 0

    def apply(ctx: StepContext) -> StepResult:
        ctx.apt.update()
        ctx.apt.upgrade()
        return StepResult("package index refreshed, installed packages upgraded")

    return StepDescriptor(
        id="system-upgrade",
        description="Refresh the package index and upgrade installed packages",
        probe=probe,
        apply=apply,
        tags=("packages", "system"),
        spec=("apt-upgrade",),
    )


def install_packages_step(
    step_id: str,
    packages: list[str],
    *,
    description: str = "",
    depends_on: set[str] | frozenset[str] = frozenset(),
    verify: dict[str, tuple[list[str], str]] | None = None,
    refresh: bool = False,
) -> StepDescriptor:
    """Ensure every package in ``packages`` is installed.

    Args:
        step_id: Step id.
        packages: apt package names.
        description: Summary shown in listings.
        depends_on: Step ids that must complete first.
        verify: ``tool -> (argv, regex)`` checked after installing.
        refresh: Run ``apt-get update`` before installing.
    """
    packages = list(packages)
    verify = dict(verify or {})

    def probe(ctx: StepContext) -> bool:
        return packages_installed(ctx.apt, packages)

    def apply(ctx: StepContext) -> StepResult:
        missing = ctx.apt.missing(packages)
        if not missing:
            return StepResult("nothing to install")
        if refresh:
            ctx.apt.update()
        ctx.apt.install(missing)
        delta = {
            f"tool.{tool}.version": verify_tool(ctx, argv, pattern, tool)
            for tool, (argv, pattern) in verify.items()
        }
        return StepResult(f"installed {', '.join(missing)}", delta=delta)

    return StepDescriptor(
        id=step_id,
        description=description or f"Install {', '.join(packages)}",
        probe=probe,
        apply=apply,
        depends_on=frozenset(depends_on),
        rollback=f"sudo apt-get remove {' '.join(packages)}",
        tags=("packages",),
        spec=("apt-install", tuple(sorted(packages))),
    )


# ── Third-party repositories ────────────────────────────────────────


def apt_repo_step(name: str, repo: dict) -> StepDescriptor:
    """Install a signing key and a sources.list entry, then refresh."""
    source = Template(name=f"{name}-source", body=repo["source"])
    keyring = Path(repo["keyring"])
    source_file = Path(repo["source_file"])

    def probe(ctx: StepContext) -> bool:
        return keyring.is_file() and file_has_content(source_file, render(source, ctx.model))

    def apply(ctx: StepContext) -> StepResult:
        line = render(source, ctx.model)
        key = ctx.host.fetch(repo["key_url"], 120)
        if repo["dearmor"]:
            _dearmor_key(ctx, key, keyring)
        else:
            install_root_file(ctx, key, str(keyring))
        install_root_file(ctx, line.encode("utf-8"), str(source_file))
        ctx.apt.update()
        return StepResult(f"{repo['label']} repository added ({source_file})")

    return StepDescriptor(
        id=f"repo-{name}",
        description=f"Add the {repo['label']} apt repository",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"base-deps"}),
        rollback=f"sudo rm -f {source_file} {keyring}",
        tags=("packages", "repos"),
        spec=("apt-repo", name, repo["source"], str(keyring)),
    )


def _dearmor_key(ctx: StepContext, armored: bytes, keyring: Path) -> None:
    fd, tmp = tempfile.mkstemp(prefix="devbox_key_", suffix=".asc")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(armored)
        ctx.runner.run(
            ["install", "-d", "-m", "0755", str(keyring.parent)], needs_sudo=True, timeout=30,
        ).require(f"create {keyring.parent}")
        ctx.runner.run(
            ["gpg", "--batch", "--yes", "--dearmor", "-o", str(keyring), tmp],
            needs_sudo=True, timeout=60,
        ).require(f"dearmor {keyring}")
        ctx.runner.run(["chmod", "a+r", str(keyring)], needs_sudo=True, timeout=30).require()
    finally:
        Path(tmp).unlink(missing_ok=True)


def repo_steps() -> list[StepDescriptor]:
    """One repository step plus one package step per third-party repo."""
    steps: list[StepDescriptor] = []
    for name, repo in APT_REPOS.items():
        steps.append(apt_repo_step(name, repo))
        steps.append(install_packages_step(
            name,
            repo["packages"],
            description=f"Install {repo['label']}",
            depends_on={f"repo-{name}"},
            verify={name: repo["verify"]},
        ))
    return steps


def nodesource_steps() -> list[StepDescriptor]:
    source_file = Path(NODESOURCE["source_file"])

    def probe(ctx: StepContext) -> bool:
        return source_file.is_file()

    def apply(ctx: StepContext) -> StepResult:
        run_remote_script(ctx, NODESOURCE["setup_url"], ["bash"], needs_sudo=True, timeout=600)
        return StepResult("NodeSource LTS repository added")

    repo = StepDescriptor(
        id="repo-nodesource",
        description=f"Add the {NODESOURCE['label']} apt repository",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"base-deps"}),
        rollback=f"sudo rm -f {source_file}",
        tags=("packages", "repos"),
        spec=("nodesource", NODESOURCE["setup_url"]),
    )
    nodejs = install_packages_step(
        "nodejs",
        NODESOURCE["packages"],
        description="Install Node.js and npm",
        depends_on={"repo-nodesource"},
        verify={"node": NODESOURCE["verify"]},
    )
    return [repo, nodejs]


# ── Post-install system tweaks ──────────────────────────────────────


def docker_group_step() -> StepDescriptor:
    def probe(ctx: StepContext) -> bool:
        return user_in_group(ctx.runner, ctx.settings.user, "docker")

    def apply(ctx: StepContext) -> StepResult:
        user = ctx.settings.user
        ctx.runner.run(
            ["usermod", "-aG", "docker", user], needs_sudo=True, timeout=30,
        ).require(f"add {user} to docker group")
        return StepResult(
            f"{user} added to the docker group",
            warnings=["Log out and back in (or run `newgrp docker`) for docker group membership to apply"],
        )

    return StepDescriptor(
        id="docker-group",
        description="Let the user run docker without sudo",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"docker"}),
        rollback="sudo gpasswd -d $USER docker",
        tags=("system",),
        spec=("group", "docker"),
    )


def bat_link_step() -> StepDescriptor:
    link, target = Path(BAT_LINK["link"]), Path(BAT_LINK["target"])

    def probe(ctx: StepContext) -> bool:
        return symlink_points_to(link, target)

    def apply(ctx: StepContext) -> StepResult:
        ctx.runner.run(
            ["ln", "-sfn", str(target), str(link)], needs_sudo=True, timeout=30,
        ).require(f"link {link}")
        return StepResult(f"{link} -> {target}")

    return StepDescriptor(
        id="bat-link",
        description="Expose Ubuntu's batcat as bat",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"core-packages"}),
        rollback=f"sudo rm -f {link}",
        tags=("system",),
        spec=("symlink", str(link), str(target)),
    )


def cleanup_step(depends_on: set[str]) -> StepDescriptor:
    def probe(ctx: StepContext) -> bool:
        return ctx.apt.pending_count("autoremove") == 0

    def apply(ctx: StepContext) -> StepResult:
        ctx.apt.autoremove()
        return StepResult("unused packages removed, package cache cleaned")

    return StepDescriptor(
        id="cleanup",
        description="Remove unused packages and clean the apt cache",
        probe=probe,
        apply=apply,
        depends_on=frozenset(depends_on),
        tags=("packages", "system"),
        spec=("apt-autoremove",),
    )

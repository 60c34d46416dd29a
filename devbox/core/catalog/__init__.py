"""
Step catalog — the workstation's step registry, built from configuration.

    from devbox.core.catalog import build_catalog, seed_model

    steps = build_catalog(settings)
    model = EnvironmentModel(seed_model(settings, facts))
"""

from __future__ import annotations

import dataclasses
import logging
from typing import Any

from devbox.core.catalog.credentials import credential_steps
from devbox.core.catalog.packages import (
    bat_link_step,
    cleanup_step,
    docker_group_step,
    install_packages_step,
    nodesource_steps,
    repo_steps,
    system_upgrade_step,
)
from devbox.core.catalog.shell import shell_steps
from devbox.core.catalog.toolchains import (
    go_profile_steps,
    go_root,
    go_step,
    goprivate_step,
    install_script_steps,
)
from devbox.core.data.recipes import BASE_DEPS, PACKAGE_GROUPS
from devbox.core.errors import ConfigError
from devbox.core.models.settings import WorkstationConfig
from devbox.core.models.step import StepDescriptor

logger = logging.getLogger(__name__)


def package_steps(settings: WorkstationConfig) -> list[StepDescriptor]:
    steps = [
        system_upgrade_step(),
        install_packages_step(
            "base-deps", BASE_DEPS,
            description="Install base build and download dependencies",
            depends_on={"system-upgrade"},
        ),
    ]
    for group_id, group in PACKAGE_GROUPS.items():
        steps.append(install_packages_step(
            group_id,
            group["packages"],
            description=group["label"],
            depends_on={"base-deps"},
            verify=group["verify"],
        ))
    if settings.packages:
        steps.append(install_packages_step(
            "extra-packages",
            settings.packages,
            description="Extra packages from devbox.yml",
            depends_on={"base-deps"},
        ))
    steps += repo_steps()
    steps += nodesource_steps()
    steps += [docker_group_step(), bat_link_step()]
    return steps


def build_catalog(settings: WorkstationConfig) -> list[StepDescriptor]:
    """All workstation steps in declaration order, minus ``settings.skip``.

    Raises:
        ConfigError: ``skip`` names a step that does not exist.
    """
    steps = package_steps(settings)
    steps += [go_step(settings), *go_profile_steps(), goprivate_step(settings)]
    steps += install_script_steps()
    steps += shell_steps(settings)
    steps += credential_steps(settings)
    steps.append(cleanup_step({s.id for s in steps if "packages" in s.tags}))
    return apply_skip(steps, settings.skip)


def apply_skip(steps: list[StepDescriptor], skip: list[str]) -> list[StepDescriptor]:
    """Drop skipped steps and forget dependencies on them."""
    if not skip:
        return steps
    known = {s.id for s in steps}
    unknown = sorted(set(skip) - known)
    if unknown:
        raise ConfigError(f"skip lists unknown step id(s): {', '.join(unknown)}")

    dropped = set(skip)
    logger.info("Skipping steps: %s", ", ".join(sorted(dropped)))
    return [
        dataclasses.replace(s, depends_on=s.depends_on - dropped)
        for s in steps
        if s.id not in dropped
    ]


def seed_model(settings: WorkstationConfig, facts: dict[str, str] | None = None) -> dict[str, Any]:
    """Initial environment model: host facts plus config-derived keys."""
    identity = settings.identity
    return {
        **(facts or {}),
        "home": str(settings.root),
        "identity.name": identity.name,
        "identity.email": identity.email,
        "identity.github_user": identity.github_user,
        "zsh.theme": settings.zsh.theme,
        "zsh.plugins": "\n".join(f"    {p}" for p in settings.zsh.plugins),
        "go.root": str(go_root(settings)),
        "go.private": settings.go.private,
        "ssh.host": settings.ssh.host,
    }


__all__ = ["apply_skip", "build_catalog", "package_steps", "seed_model"]

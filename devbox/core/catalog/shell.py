"""
Shell steps — Oh My Zsh plugins, Spaceship theme, rendered dotfiles.
"""

from __future__ import annotations

import logging
from pathlib import Path

from devbox.core.catalog.common import git_clone
from devbox.core.data.recipes import SPACESHIP, USER_DIRS, ZSH_CUSTOM_PLUGINS_DIR
from devbox.core.data.templates import SPACESHIP_CONFIG, UPDATE_SYSTEM_SCRIPT, ZSHRC
from devbox.core.models.settings import WorkstationConfig
from devbox.core.models.step import StepContext, StepDescriptor, StepResult
from devbox.core.models.template import Template
from devbox.core.services.probes import (
    directory_exists,
    file_has_content,
    file_mode_is,
    git_checkout_present,
    symlink_points_to,
)
from devbox.core.services.templates import carry_blocks, ensure_file, render, write_atomic

logger = logging.getLogger(__name__)

ZSHRC_PATH = "~/.zshrc"


def zsh_plugin_step(name: str, url: str) -> StepDescriptor:
    dest = f"{ZSH_CUSTOM_PLUGINS_DIR}/{name}"

    def probe(ctx: StepContext) -> bool:
        return git_checkout_present(ctx.path(dest), url)

    def apply(ctx: StepContext) -> StepResult:
        git_clone(ctx, url, ctx.path(dest))
        return StepResult(f"cloned {name}")

    return StepDescriptor(
        id=f"zsh-plugin-{name}",
        description=f"Install the {name} zsh plugin",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"oh-my-zsh"}),
        rollback=f"rm -rf {dest}",
        tags=("shell",),
        spec=("git-clone", url, dest),
    )


def spaceship_theme_step() -> StepDescriptor:
    def probe(ctx: StepContext) -> bool:
        return (
            git_checkout_present(ctx.path(SPACESHIP["dir"]), SPACESHIP["repo"])
            and symlink_points_to(ctx.path(SPACESHIP["link"]), ctx.path(SPACESHIP["target"]))
        )

    def apply(ctx: StepContext) -> StepResult:
        checkout = ctx.path(SPACESHIP["dir"])
        if not git_checkout_present(checkout, SPACESHIP["repo"]):
            git_clone(ctx, SPACESHIP["repo"], checkout)
        link, target = ctx.path(SPACESHIP["link"]), ctx.path(SPACESHIP["target"])
        if link.is_symlink() or link.exists():
            link.unlink()
        link.symlink_to(target)
        return StepResult("Spaceship prompt installed")

    return StepDescriptor(
        id="spaceship-theme",
        description="Install the Spaceship prompt theme",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"oh-my-zsh"}),
        rollback=f"rm -rf {SPACESHIP['dir']} {SPACESHIP['link']}",
        tags=("shell",),
        spec=("git-clone", SPACESHIP["repo"], SPACESHIP["dir"]),
    )


def template_file_step(
    step_id: str,
    template: Template,
    dest: str,
    *,
    description: str,
    mode: int | None = None,
    depends_on: set[str] | frozenset[str] = frozenset(),
) -> StepDescriptor:
    """Render ``template`` to ``dest`` (exact content, optional mode)."""

    def probe(ctx: StepContext) -> bool:
        path = ctx.path(dest)
        if not file_has_content(path, render(template, ctx.model)):
            return False
        return mode is None or file_mode_is(path, mode)

    def apply(ctx: StepContext) -> StepResult:
        path = ctx.path(dest)
        ensure_file(path, render(template, ctx.model), mode=mode)
        return StepResult(f"wrote {path}")

    return StepDescriptor(
        id=step_id,
        description=description,
        probe=probe,
        apply=apply,
        depends_on=frozenset(depends_on),
        rollback=f"restore {dest} from its .bak copy",
        tags=("shell", "files"),
        spec=("template", template.name, dest, mode),
    )


def zshrc_step(settings: WorkstationConfig) -> StepDescriptor:
    """Render ~/.zshrc, keeping blocks other steps manage inside it."""
    plugin_steps = {f"zsh-plugin-{name}" for name in settings.zsh.custom_plugins}

    def _desired(ctx: StepContext, path: Path) -> str:
        current = path.read_text(encoding="utf-8", errors="replace") if path.exists() else ""
        return carry_blocks(current, render(ZSHRC, ctx.model))

    def probe(ctx: StepContext) -> bool:
        path = ctx.path(ZSHRC_PATH)
        return file_has_content(path, _desired(ctx, path))

    def apply(ctx: StepContext) -> StepResult:
        path = ctx.path(ZSHRC_PATH)
        backup = write_atomic(path, _desired(ctx, path))
        detail = f"wrote {path}"
        if backup is not None:
            detail += f" (previous version at {backup.name})"
        return StepResult(detail)

    return StepDescriptor(
        id="zshrc",
        description="Render ~/.zshrc (Oh My Zsh, Spaceship, aliases)",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"oh-my-zsh", "spaceship-theme", "spaceship-config", *plugin_steps}),
        rollback="restore ~/.zshrc from ~/.zshrc.bak.*",
        tags=("shell", "files"),
        spec=("template", ZSHRC.name, ZSHRC_PATH),
    )


def directories_step() -> StepDescriptor:
    def probe(ctx: StepContext) -> bool:
        return all(directory_exists(ctx.path(d)) for d in USER_DIRS)

    def apply(ctx: StepContext) -> StepResult:
        created = []
        for d in USER_DIRS:
            path = ctx.path(d)
            if not path.is_dir():
                path.mkdir(parents=True, exist_ok=True)
                created.append(d)
        return StepResult(f"created {', '.join(created)}")

    return StepDescriptor(
        id="directories",
        description="Create ~/projects, ~/scripts and ~/bin",
        probe=probe,
        apply=apply,
        tags=("files",),
        spec=("dirs", tuple(USER_DIRS)),
    )


def shell_steps(settings: WorkstationConfig) -> list[StepDescriptor]:
    steps = [
        zsh_plugin_step(name, url) for name, url in settings.zsh.custom_plugins.items()
    ]
    steps += [
        spaceship_theme_step(),
        template_file_step(
            "spaceship-config",
            SPACESHIP_CONFIG,
            "~/.config/spaceship/spaceship.zsh",
            description="Spaceship last-commit prompt section",
            depends_on={"spaceship-theme"},
        ),
        zshrc_step(settings),
        directories_step(),
        template_file_step(
            "update-script",
            UPDATE_SYSTEM_SCRIPT,
            "~/scripts/update-system.sh",
            description="Install ~/scripts/update-system.sh",
            mode=0o755,
            depends_on={"directories"},
        ),
    ]
    return steps

"""
Toolchain steps — Go from the upstream tarball, vendor install scripts.

The Go step replaces whatever is in ``<install_dir>/go`` with the
resolved version; shell profiles get a managed block instead of the
append-and-sed edits of older setup scripts.
"""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from devbox.core.catalog.common import run_remote_script, verify_tool
from devbox.core.data.recipes import GO_LEGACY_PATTERNS, GO_PROFILES, INSTALL_SCRIPTS
from devbox.core.data.templates import GO_PROFILE_BLOCK
from devbox.core.errors import CommandFailed, PermissionDenied, VerificationFailed
from devbox.core.models.settings import WorkstationConfig
from devbox.core.models.step import StepContext, StepDescriptor, StepResult
from devbox.core.services.downloads import DOWNLOAD_TIMEOUT
from devbox.core.services.probes import tool_version
from devbox.core.services.templates import (
    ensure_block,
    remove_lines_matching,
    render,
    upsert_block,
)

logger = logging.getLogger(__name__)

GO_VERSION_PATTERN = r"go version go(\d+\.\d+(?:\.\d+)?)"
GO_BLOCK = "go"


def go_root(settings: WorkstationConfig) -> Path:
    return settings.path(settings.go.install_dir) / "go"


def go_binary(settings: WorkstationConfig) -> Path:
    return go_root(settings) / "bin" / "go"


def go_step(settings: WorkstationConfig) -> StepDescriptor:
    go = settings.go
    root = go_root(settings)
    binary = go_binary(settings)

    def probe(ctx: StepContext) -> bool:
        resolved = ctx.resolver.resolve(go.version, go.source_url)
        installed = tool_version(ctx.runner, [str(binary), "version"], GO_VERSION_PATTERN)
        logger.debug("Go installed=%s wanted=%s", installed, resolved.version)
        if resolved.fallback and installed is not None:
            # The default only stands in for an unknown "latest"; keep what is there.
            logger.warning("Keeping Go %s: %s", installed, resolved.warning)
            return True
        return installed == resolved.version

    def apply(ctx: StepContext) -> StepResult:
        resolved = ctx.resolver.resolve(go.version, go.source_url)
        arch = ctx.model.get("platform.arch") or "amd64"
        url = go.download_url.format(version=resolved.version, arch=arch)
        data = ctx.host.fetch(url, DOWNLOAD_TIMEOUT)

        with tempfile.TemporaryDirectory(prefix="devbox_go_") as tmp:
            tarball = Path(tmp) / url.rsplit("/", 1)[-1]
            tarball.write_bytes(data)
            _replace_go_tree(ctx, tarball, root)

        installed = verify_tool(ctx, [str(binary), "version"], GO_VERSION_PATTERN, "go")
        if installed != resolved.version:
            raise VerificationFailed(f"Expected Go {resolved.version}, found {installed}")

        warnings = [resolved.warning] if resolved.warning else []
        return StepResult(
            f"Go {installed} installed to {root}",
            delta={"go.version": installed},
            warnings=warnings,
        )

    return StepDescriptor(
        id="go",
        description=f"Install the Go toolchain ({go.version})",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"base-deps"}),
        rollback=f"sudo rm -rf {root}",
        tags=("toolchains",),
        spec=("go", go.version, str(root)),
    )


def _replace_go_tree(ctx: StepContext, tarball: Path, root: Path) -> None:
    """Extract next to ``root`` and swap it in, so ``root`` is never half-removed.

    The previous tree is moved aside first and restored if the new one
    cannot be moved into place.
    """
    staging = root.with_name(f".{root.name}-devbox-new")
    previous = root.with_name(f".{root.name}-devbox-old")

    def sudo(argv: list[str], what: str, timeout: float = 120) -> None:
        ctx.runner.run(argv, needs_sudo=True, timeout=timeout).require(what)

    sudo(["rm", "-rf", str(staging), str(previous)], "clear staging directories")
    sudo(["mkdir", "-p", str(staging)], f"create {staging}")
    sudo(["tar", "-C", str(staging), "-xzf", str(tarball)], f"extract {tarball.name}", timeout=600)

    had_previous = ctx.runner.run(["test", "-e", str(root)], timeout=10).ok
    if had_previous:
        sudo(["mv", "-T", str(root), str(previous)], f"move {root} aside")
    try:
        sudo(["mv", "-T", str(staging / "go"), str(root)], f"move new Go tree to {root}")
    except (CommandFailed, PermissionDenied):
        if had_previous:
            ctx.runner.run(["mv", "-T", str(previous), str(root)], needs_sudo=True, timeout=120)
        raise
    sudo(["rm", "-rf", str(staging), str(previous)], "remove old Go tree")


def _profile_text(path: Path) -> str:
    return path.read_text(encoding="utf-8", errors="replace") if path.exists() else ""


def go_profile_step(name: str, profile: str) -> StepDescriptor:
    """Managed Go PATH block in one shell profile (legacy lines removed)."""

    def _desired(ctx: StepContext, text: str) -> str:
        content = render(GO_PROFILE_BLOCK, ctx.model)
        return upsert_block(remove_lines_matching(text, GO_LEGACY_PATTERNS), GO_BLOCK, content)

    def probe(ctx: StepContext) -> bool:
        path = ctx.path(profile)
        text = _profile_text(path)
        return bool(text) and _desired(ctx, text) == text

    def apply(ctx: StepContext) -> StepResult:
        path = ctx.path(profile)
        ensure_block(
            path, GO_BLOCK, render(GO_PROFILE_BLOCK, ctx.model),
            remove_patterns=GO_LEGACY_PATTERNS,
        )
        return StepResult(f"Go block written to {path}")

    depends = {"go"}
    if name == "zshrc":
        depends.add("zshrc")
    return StepDescriptor(
        id=f"go-profile-{name}",
        description=f"Put Go on PATH in {profile}",
        probe=probe,
        apply=apply,
        depends_on=frozenset(depends),
        rollback=f"delete the devbox:{GO_BLOCK} block from {profile}",
        tags=("toolchains", "shell"),
        spec=("block", profile, GO_BLOCK),
    )


def go_profile_steps() -> list[StepDescriptor]:
    return [go_profile_step(name, path) for name, path in GO_PROFILES.items()]


def goprivate_step(settings: WorkstationConfig) -> StepDescriptor:
    binary = str(go_binary(settings))
    private = settings.go.private

    def probe(ctx: StepContext) -> bool:
        result = ctx.runner.run([binary, "env", "GOPRIVATE"], timeout=30)
        return result.ok and result.stdout.strip() == private

    def apply(ctx: StepContext) -> StepResult:
        ctx.runner.run([binary, "env", "-w", f"GOPRIVATE={private}"], timeout=30).require(
            "go env -w GOPRIVATE"
        )
        return StepResult(f"GOPRIVATE={private}")

    return StepDescriptor(
        id="goprivate",
        description="Let Go fetch private modules over SSH",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"go"}),
        rollback=f"{binary} env -u GOPRIVATE",
        tags=("toolchains", "credentials"),
        spec=("goprivate", private),
    )


# ── Vendor install scripts ──────────────────────────────────────────


def install_script_step(name: str, recipe: dict) -> StepDescriptor:
    marker = recipe["marker"]

    def probe(ctx: StepContext) -> bool:
        return ctx.path(marker).exists()

    def apply(ctx: StepContext) -> StepResult:
        run_remote_script(
            ctx, recipe["url"], recipe["shell"], recipe["args"], env=recipe["env"],
        )
        path = ctx.path(marker)
        if not path.exists():
            raise VerificationFailed(f"{recipe['label']} installer finished but {path} is missing")
        return StepResult(f"{recipe['label']} installed")

    return StepDescriptor(
        id=name,
        description=f"Install {recipe['label']}",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"base-deps", *recipe["requires"]}),
        rollback=recipe["rollback"],
        tags=("toolchains",),
        spec=("script", recipe["url"], marker),
    )


def install_script_steps() -> list[StepDescriptor]:
    return [install_script_step(name, recipe) for name, recipe in INSTALL_SCRIPTS.items()]

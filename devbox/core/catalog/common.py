"""
Shared step helpers — verification, root-owned files, vendor scripts.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

from devbox.core.errors import VerificationFailed
from devbox.core.models.step import StepContext
from devbox.core.services.probes import tool_version

logger = logging.getLogger(__name__)

SCRIPT_TIMEOUT = 1800


def verify_tool(ctx: StepContext, argv: list[str], pattern: str, label: str = "") -> str:
    """Confirm a freshly installed tool answers with a version.

    Raises:
        VerificationFailed: The tool is missing or its output does not match.
    """
    version = tool_version(ctx.runner, argv, pattern)
    if version is None:
        raise VerificationFailed(f"{label or argv[0]} not usable after install ({' '.join(argv)})")
    logger.info("%s %s verified", label or argv[0], version)
    return version


def install_root_file(ctx: StepContext, data: bytes, dest: str, mode: str = "0644") -> None:
    """Place ``data`` at a root-owned path via ``sudo install``."""
    fd, tmp = tempfile.mkstemp(prefix="devbox_", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        ctx.runner.run(
            ["install", "-D", "-m", mode, tmp, dest], needs_sudo=True, timeout=30,
        ).require(f"install {dest}")
    finally:
        Path(tmp).unlink(missing_ok=True)


def run_remote_script(
    ctx: StepContext,
    url: str,
    shell: list[str],
    args: list[str] | None = None,
    *,
    env: dict[str, str] | None = None,
    needs_sudo: bool = False,
    timeout: float = SCRIPT_TIMEOUT,
) -> None:
    """Download an installer and run it from a temp file.

    The script goes through a file rather than a pipe so sudo's
    password prompt and the script never compete for stdin.

    Raises:
        NetworkUnavailable: The script could not be downloaded.
        CommandFailed: The script exited non-zero.
    """
    script = ctx.host.fetch(url, 120)
    fd, tmp = tempfile.mkstemp(prefix="devbox_script_", suffix=".sh")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(script)
        logger.info("Running installer from %s", url)
        ctx.runner.run(
            [*shell, tmp, *(args or [])],
            needs_sudo=needs_sudo,
            env=env,
            timeout=timeout,
        ).require(f"installer {url}")
    finally:
        Path(tmp).unlink(missing_ok=True)


def git_clone(ctx: StepContext, url: str, dest: Path, *, depth: int | None = 1) -> None:
    argv = ["git", "clone"]
    if depth:
        argv += [f"--depth={depth}"]
    argv += [url, str(dest)]
    dest.parent.mkdir(parents=True, exist_ok=True)
    ctx.runner.run(argv, timeout=600).require(f"git clone {url}")

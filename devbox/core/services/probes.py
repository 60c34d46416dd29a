"""
Idempotency probes — read-only checks for "is the desired state there?".

Every function here is side-effect-free: it may read files and run
query commands, but never writes, installs, or touches the environment
model. Probes answer with a plain bool.
"""

from __future__ import annotations

import configparser
import logging
import os
import re
import shutil
from collections.abc import Mapping
from pathlib import Path

from devbox.adapters.packages.apt import AptPackageManager
from devbox.adapters.shell.command import CommandRunner
from devbox.core.services.templates import read_block

logger = logging.getLogger(__name__)


# ── Packages and tools ──────────────────────────────────────────────


def packages_installed(
    apt: AptPackageManager,
    names: list[str],
    versions: Mapping[str, str] | None = None,
) -> bool:
    """All packages installed (and at the pinned version, where pinned)."""
    versions = versions or {}
    for name in names:
        installed = apt.installed_version(name)
        if installed is None:
            return False
        wanted = versions.get(name)
        if wanted and installed != wanted:
            logger.debug("Package %s at %s, want %s", name, installed, wanted)
            return False
    return True


def tool_version(runner: CommandRunner, argv: list[str], pattern: str) -> str | None:
    """Parse a version out of ``argv``'s output (stdout or stderr).

    Returns:
        The first capture group of ``pattern``, or None if the tool is
        missing, fails, or prints nothing that matches.
    """
    result = runner.run(argv, timeout=15)
    if not result.ok:
        return None
    match = re.search(pattern, result.output)
    return match.group(1) if match else None


def command_available(name: str, runner: CommandRunner | None = None) -> bool:
    """Whether ``name`` resolves on PATH."""
    if runner is not None:
        return runner.which(name) is not None
    return shutil.which(name) is not None


# ── Files ───────────────────────────────────────────────────────────


def file_has_content(path: Path, content: str | bytes) -> bool:
    """Exact content match. Existence alone is not enough."""
    path = Path(path)
    if not path.is_file():
        return False
    if isinstance(content, bytes):
        return path.read_bytes() == content
    return path.read_text(encoding="utf-8", errors="replace") == content


def file_mode_is(path: Path, mode: int) -> bool:
    path = Path(path)
    return path.exists() and (path.stat().st_mode & 0o7777) == mode


def block_present(path: Path, marker: str, content: str) -> bool:
    """The named marker block exists with exactly this body."""
    path = Path(path)
    if not path.is_file():
        return False
    body = read_block(path.read_text(encoding="utf-8", errors="replace"), marker)
    return body == content.strip("\n")


def symlink_points_to(link: Path, target: Path) -> bool:
    link = Path(link)
    return link.is_symlink() and Path(os.readlink(link)) == Path(target)


def directory_exists(path: Path, mode: int | None = None) -> bool:
    """Directory present (and with ``mode`` permission bits, if given)."""
    path = Path(path)
    if not path.is_dir():
        return False
    return mode is None or (path.stat().st_mode & 0o7777) == mode


def git_checkout_present(path: Path, url: str | None = None) -> bool:
    """A git working tree exists at ``path`` (cloned from ``url``, if given).

    Reads ``.git/config`` directly; no git subprocess.
    """
    config_file = Path(path) / ".git" / "config"
    if not config_file.is_file():
        return False
    if url is None:
        return True
    parser = configparser.ConfigParser(strict=False)
    try:
        parser.read(config_file, encoding="utf-8")
    except configparser.Error:
        return False
    origin = parser.get('remote "origin"', "url", fallback="")
    return _normalize_git_url(origin) == _normalize_git_url(url)


def _normalize_git_url(url: str) -> str:
    url = url.strip().rstrip("/")
    return url[:-4] if url.endswith(".git") else url


# ── System state ────────────────────────────────────────────────────


def git_config_equals(runner: CommandRunner, key: str, value: str) -> bool:
    """``git config --global --get <key>`` returns exactly ``value``."""
    result = runner.run(["git", "config", "--global", "--get", key], timeout=10)
    return result.ok and result.stdout.strip() == value


def user_in_group(runner: CommandRunner, user: str, group: str) -> bool:
    """Whether ``user``'s group list (``id -nG``) includes ``group``."""
    result = runner.run(["id", "-nG", user], timeout=10)
    return result.ok and group in result.stdout.split()

"""
Host facts — read-only platform details seeded into the environment model.

Facts feed templates (apt source lines need the architecture and the
distribution codename) and download URLs (the Go tarball is per-arch).
"""

from __future__ import annotations

import logging
import platform
from pathlib import Path

from devbox.adapters.shell.command import CommandRunner

logger = logging.getLogger(__name__)

# uname machine → Debian architecture
_ARCH_MAP = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "armhf",
    "i686": "i386",
}


def parse_os_release(text: str) -> dict[str, str]:
    """Parse ``/etc/os-release`` KEY=value lines (quotes stripped)."""
    info: dict[str, str] = {}
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, _, value = line.partition("=")
        info[key.strip()] = value.strip().strip('"').strip("'")
    return info


def debian_arch(runner: CommandRunner) -> str:
    result = runner.run(["dpkg", "--print-architecture"], timeout=10)
    if result.ok and result.stdout.strip():
        return result.stdout.strip()
    machine = platform.machine().lower()
    return _ARCH_MAP.get(machine, machine)


def gather_facts(
    runner: CommandRunner,
    *,
    user: str,
    os_release: Path = Path("/etc/os-release"),
) -> dict[str, str]:
    """Collect platform facts as flat model keys.

    Returns:
        ``platform.arch``, ``platform.codename``, ``platform.distro``
        and ``user.name``. Unknown values are empty strings.
    """
    info: dict[str, str] = {}
    try:
        info = parse_os_release(os_release.read_text(encoding="utf-8"))
    except OSError:
        logger.debug("No os-release at %s", os_release)

    codename = info.get("VERSION_CODENAME") or info.get("UBUNTU_CODENAME", "")
    facts = {
        "platform.arch": debian_arch(runner),
        "platform.codename": codename,
        "platform.distro": info.get("ID", ""),
        "user.name": user,
    }
    logger.debug("Host facts: %s", facts)
    return facts

"""Adapters — bindings to the host system (commands, package manager).

Public re-exports for convenient access.
"""

from devbox.adapters.mock import FakeDpkg, FakeRunner
from devbox.adapters.packages.apt import AptPackageManager
from devbox.adapters.shell.command import CommandResult, CommandRunner

__all__ = [
    "AptPackageManager",
    "CommandResult",
    "CommandRunner",
    "FakeDpkg",
    "FakeRunner",
]

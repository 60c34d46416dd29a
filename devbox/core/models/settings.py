"""
Workstation configuration — loaded from devbox.yml.

This is the declared intent for the machine: who the user is, which
toolchain versions to pin, which extra packages to add, how SSH and Git
should be set up. Everything has a default, so an absent config file
still yields a complete, valid configuration.
"""

from __future__ import annotations

import getpass
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator


def _default_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return os.environ.get("USER", "root")


DEFAULT_ZSH_PLUGINS = [
    "git", "sudo", "extract", "web-search", "copypath", "copyfile",
    "copybuffer", "dirhistory", "history", "colored-man-pages",
    "command-not-found", "docker", "docker-compose", "npm", "node",
    "golang", "python", "pip", "rust", "httpie", "tmux", "aliases",
    "zsh-autosuggestions", "zsh-syntax-highlighting", "zsh-completions",
]

DEFAULT_CUSTOM_PLUGINS = {
    "zsh-autosuggestions": "https://github.com/zsh-users/zsh-autosuggestions",
    "zsh-syntax-highlighting": "https://github.com/zsh-users/zsh-syntax-highlighting.git",
    "zsh-completions": "https://github.com/zsh-users/zsh-completions",
}


class Identity(BaseModel):
    """Who the workstation belongs to (Git author, SSH key comment)."""

    name: str = ""
    email: str = ""
    github_user: str = ""

    @property
    def complete(self) -> bool:
        """Name and email are both present."""
        return bool(self.name.strip() and self.email.strip())


class GoSettings(BaseModel):
    """Go toolchain: ``latest`` or a pinned version."""

    version: str = "latest"
    fallback: str = "1.21.6"
    source_url: str = "https://go.dev/VERSION?m=text"
    download_url: str = "https://go.dev/dl/go{version}.linux-{arch}.tar.gz"
    install_dir: str = "/usr/local"
    private: str = "github.com"


class SshSettings(BaseModel):
    """SSH key and host stanza for the Git remote."""

    host: str = "github.com"
    hostname: str = "github.com"
    user: str = "git"
    key_path: str = "~/.ssh/github_key"
    key_type: Literal["ed25519", "ecdsa", "rsa"] = "ed25519"
    passphrase: str = ""
    check_timeout: float = 10.0


class GitSettings(BaseModel):
    """Global Git defaults applied alongside the identity."""

    default_branch: str = "main"
    pull_rebase: bool = False
    editor: str = "nvim"


class ZshSettings(BaseModel):
    """Oh My Zsh theme and plugin selection."""

    theme: str = "spaceship"
    plugins: list[str] = Field(default_factory=lambda: list(DEFAULT_ZSH_PLUGINS), min_length=1)
    custom_plugins: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_CUSTOM_PLUGINS)
    )


class WorkstationConfig(BaseModel):
    """Root configuration — the canonical truth for one run.

    ``root`` stands in for ``$HOME``: every ``~/`` path the steps manage
    is resolved against it, so a run can target a scratch directory.
    """

    version: int = 1

    root: Path = Field(default_factory=Path.home)
    user: str = Field(default_factory=_default_user)
    non_interactive: bool = False
    network_timeout: float = 5.0

    identity: Identity = Field(default_factory=Identity)
    go: GoSettings = Field(default_factory=GoSettings)
    ssh: SshSettings = Field(default_factory=SshSettings)
    git: GitSettings = Field(default_factory=GitSettings)
    zsh: ZshSettings = Field(default_factory=ZshSettings)

    packages: list[str] = Field(default_factory=list)
    skip: list[str] = Field(default_factory=list)

    @field_validator("root")
    @classmethod
    def _expand_root(cls, v: Path) -> Path:
        return v.expanduser()

    def path(self, value: str | Path) -> Path:
        """Resolve a ``~/``-relative or absolute path against ``root``."""
        text = str(value)
        if text == "~":
            return self.root
        if text.startswith("~/"):
            return self.root / text[2:]
        return Path(text)

"""
Workstation recipes — package groups, apt repositories, install scripts.

Pure data, no logic. The catalog turns these into step descriptors.
"""

from __future__ import annotations

# ── apt package groups ──────────────────────────────────────────────

BASE_DEPS: list[str] = [
    "curl", "wget", "software-properties-common", "apt-transport-https",
    "ca-certificates", "gnupg", "lsb-release", "build-essential",
]

PACKAGE_GROUPS: dict[str, dict] = {
    "core-packages": {
        "label": "Core development and terminal tools",
        "packages": [
            "git", "zsh",
            "python3", "python3-pip", "python3-venv", "python3-dev",
            "tmux", "tree", "fzf", "ripgrep", "bat",
            "htop", "btop", "ncdu", "iotop",
            "jq", "httpie",
            "vim", "neovim", "unzip", "zip", "tar", "gzip",
        ],
        "verify": {
            "git": (["git", "--version"], r"git version\s+(\d+\.\d+(?:\.\d+)?)"),
            "zsh": (["zsh", "--version"], r"zsh\s+(\d+\.\d+(?:\.\d+)?)"),
            "python3": (["python3", "--version"], r"Python\s+(\d+\.\d+\.\d+)"),
            "tmux": (["tmux", "-V"], r"tmux\s+(\d+\.\d+\w*)"),
            "rg": (["rg", "--version"], r"ripgrep\s+(\d+\.\d+\.\d+)"),
            "jq": (["jq", "--version"], r"jq-(\d+\.\d+(?:\.\d+)?)"),
            "nvim": (["nvim", "--version"], r"NVIM\s+v(\d+\.\d+\.\d+)"),
        },
    },
    "pyenv-deps": {
        "label": "pyenv build dependencies",
        "packages": [
            "make", "build-essential", "libssl-dev", "zlib1g-dev", "libbz2-dev",
            "libreadline-dev", "libsqlite3-dev", "llvm", "libncursesw5-dev",
            "xz-utils", "tk-dev", "libxml2-dev", "libxmlsec1-dev", "libffi-dev",
            "liblzma-dev",
        ],
        "verify": {},
    },
}

# ── Third-party apt repositories ────────────────────────────────────
#
# ``source`` is a template rendered against the environment model, so
# architecture and codename come from host facts.

APT_REPOS: dict[str, dict] = {
    "gh": {
        "label": "GitHub CLI",
        "key_url": "https://cli.github.com/packages/githubcli-archive-keyring.gpg",
        "dearmor": False,
        "keyring": "/usr/share/keyrings/githubcli-archive-keyring.gpg",
        "source_file": "/etc/apt/sources.list.d/github-cli.list",
        "source": (
            "deb [arch={{ platform.arch }} "
            "signed-by=/usr/share/keyrings/githubcli-archive-keyring.gpg] "
            "https://cli.github.com/packages stable main\n"
        ),
        "packages": ["gh"],
        "verify": (["gh", "--version"], r"gh version\s+(\d+\.\d+\.\d+)"),
    },
    "eza": {
        "label": "eza",
        "key_url": "https://raw.githubusercontent.com/eza-community/eza/main/deb.asc",
        "dearmor": True,
        "keyring": "/etc/apt/keyrings/gierens.gpg",
        "source_file": "/etc/apt/sources.list.d/gierens.list",
        "source": "deb [signed-by=/etc/apt/keyrings/gierens.gpg] http://deb.gierens.de stable main\n",
        "packages": ["eza"],
        "verify": (["eza", "--version"], r"v(\d+\.\d+\.\d+)"),
    },
    "docker": {
        "label": "Docker Engine",
        "key_url": "https://download.docker.com/linux/ubuntu/gpg",
        "dearmor": True,
        "keyring": "/etc/apt/keyrings/docker.gpg",
        "source_file": "/etc/apt/sources.list.d/docker.list",
        "source": (
            "deb [arch={{ platform.arch }} signed-by=/etc/apt/keyrings/docker.gpg] "
            "https://download.docker.com/linux/ubuntu {{ platform.codename }} stable\n"
        ),
        "packages": [
            "docker-ce", "docker-ce-cli", "containerd.io",
            "docker-buildx-plugin", "docker-compose-plugin",
        ],
        "verify": (["docker", "--version"], r"Docker version\s+(\d+\.\d+\.\d+)"),
    },
}

NODESOURCE = {
    "label": "Node.js LTS (NodeSource)",
    "setup_url": "https://deb.nodesource.com/setup_lts.x",
    "source_file": "/etc/apt/sources.list.d/nodesource.list",
    "packages": ["nodejs"],
    "verify": (["node", "--version"], r"v(\d+\.\d+\.\d+)"),
}

# ── Vendor install scripts ──────────────────────────────────────────
#
# ``marker`` is the file whose presence means "installed"; scripts run
# with HOME pointed at the configured root.

INSTALL_SCRIPTS: dict[str, dict] = {
    "nvm": {
        "label": "nvm (Node Version Manager)",
        "url": "https://raw.githubusercontent.com/nvm-sh/nvm/v0.39.0/install.sh",
        "shell": ["bash"],
        "args": [],
        "env": {"PROFILE": "/dev/null"},
        "marker": "~/.nvm/nvm.sh",
        "requires": [],
        "rollback": "rm -rf ~/.nvm",
    },
    "pyenv": {
        "label": "pyenv",
        "url": "https://pyenv.run",
        "shell": ["bash"],
        "args": [],
        "env": {},
        "marker": "~/.pyenv/bin/pyenv",
        "requires": ["pyenv-deps"],
        "rollback": "rm -rf ~/.pyenv",
    },
    "rustup": {
        "label": "Rust toolchain (rustup)",
        "url": "https://sh.rustup.rs",
        "shell": ["sh"],
        "args": ["-y", "--no-modify-path"],
        "env": {},
        "marker": "~/.cargo/bin/rustup",
        "requires": [],
        "rollback": "rustup self uninstall -y",
    },
    "zoxide": {
        "label": "zoxide",
        "url": "https://raw.githubusercontent.com/ajeetdsouza/zoxide/main/install.sh",
        "shell": ["bash"],
        "args": [],
        "env": {},
        "marker": "~/.local/bin/zoxide",
        "requires": [],
        "rollback": "rm -f ~/.local/bin/zoxide",
    },
    "oh-my-zsh": {
        "label": "Oh My Zsh",
        "url": "https://raw.githubusercontent.com/ohmyzsh/ohmyzsh/master/tools/install.sh",
        "shell": ["sh"],
        "args": ["--unattended", "--keep-zshrc"],
        "env": {"RUNZSH": "no", "CHSH": "no"},
        "marker": "~/.oh-my-zsh/oh-my-zsh.sh",
        "requires": ["core-packages"],
        "rollback": "rm -rf ~/.oh-my-zsh",
    },
}

SPACESHIP = {
    "repo": "https://github.com/spaceship-prompt/spaceship-prompt.git",
    "dir": "~/.oh-my-zsh/custom/themes/spaceship-prompt",
    "link": "~/.oh-my-zsh/custom/themes/spaceship.zsh-theme",
    "target": "~/.oh-my-zsh/custom/themes/spaceship-prompt/spaceship.zsh-theme",
}

ZSH_CUSTOM_PLUGINS_DIR = "~/.oh-my-zsh/custom/plugins"

BAT_LINK = {"link": "/usr/local/bin/bat", "target": "/usr/bin/batcat"}

USER_DIRS = ["~/projects", "~/scripts", "~/bin"]

# Legacy unmanaged Go lines written by older setup scripts.
GO_LEGACY_PATTERNS = [
    r"^# Go programming language",
    r"^export PATH.*/go/bin",
    r"^export GOPATH",
    r"^export GOROOT",
]

GO_PROFILES = {
    "bashrc": "~/.bashrc",
    "profile": "~/.profile",
    "zshrc": "~/.zshrc",
}

"""
File templates — fixed bodies with ``{{ key }}`` placeholders.

Pure data, no logic. Rendered by ``devbox.core.services.templates``.
"""

from __future__ import annotations

from devbox.core.models.template import Template

ZSHRC = Template(
    name="zshrc",
    required_keys=frozenset({"zsh.theme", "zsh.plugins"}),
    body=r"""# Managed by devbox. Local changes are kept in the .bak copy on re-render;
# put personal additions in ~/.zshrc.local instead.

# Path to your oh-my-zsh installation.
export ZSH="$HOME/.oh-my-zsh"

ZSH_THEME="{{ zsh.theme }}"

# Spaceship configuration
SPACESHIP_PROMPT_ORDER=(
  user          # Username section
  dir           # Current directory section
  host          # Hostname section
  git           # Git section (git_branch + git_status)
  git_last_commit    # Last commit message (custom section)
  hg            # Mercurial section
  exec_time     # Execution time
  line_sep      # Line break
  vi_mode       # Vi-mode indicator
  jobs          # Background jobs indicator
  exit_code     # Exit code section
  char          # Prompt character
)
SPACESHIP_USER_SHOW=always
SPACESHIP_PROMPT_ADD_NEWLINE=false
SPACESHIP_CHAR_SUFFIX=" "

plugins=(
{{ zsh.plugins }}
)

source $ZSH/oh-my-zsh.sh

# User configuration
export PATH=$HOME/bin:/usr/local/bin:$PATH
export PATH="$HOME/.local/bin:$PATH"

# Rust
if [ -d "$HOME/.cargo/bin" ]; then
    export PATH="$HOME/.cargo/bin:$PATH"
fi

# NVM
export NVM_DIR="$HOME/.nvm"
[ -s "$NVM_DIR/nvm.sh" ] && \. "$NVM_DIR/nvm.sh"
[ -s "$NVM_DIR/nvm.completion.bash" ] && \. "$NVM_DIR/nvm.completion.bash"

# Pyenv
if [ -d "$HOME/.pyenv" ]; then
    export PYENV_ROOT="$HOME/.pyenv"
    [[ -d $PYENV_ROOT/bin ]] && export PATH="$PYENV_ROOT/bin:$PATH"
    eval "$(pyenv init -)"
fi

# Zoxide (smart cd)
if command -v zoxide >/dev/null 2>&1; then
    eval "$(zoxide init zsh)"
fi

# Aliases
alias ll='eza -la'
alias lt='eza --tree'
alias la='eza -la'
alias ls='eza'
alias cat='bat'
alias grep='rg'

alias gst='git status'
alias gco='git checkout'
alias gcb='git checkout -b'
alias gaa='git add --all'
alias gcm='git commit -m'
alias gp='git push'
alias gl='git pull'
alias glog='git log --oneline --graph --decorate'

alias dps='docker ps'
alias di='docker images'
alias dc='docker compose'
alias dcu='docker compose up'
alias dcd='docker compose down'
alias dclean='docker system prune -f'

alias h='history'
alias c='clear'
alias ..='cd ..'
alias ...='cd ../..'
alias ....='cd ../../..'
alias reload='source ~/.zshrc'

alias ports='netstat -tulanp'
alias diskusage='df -h'
alias meminfo='free -m -l -t'

alias tl='tmux list-sessions'
alias ta='tmux attach -t'
alias tn='tmux new-session -s'
alias tk='tmux kill-session -t'

alias serve='python3 -m http.server 8000'
alias editrc='nvim ~/.zshrc'
alias showpath='echo $PATH | tr ":" "\n"'

# Docker BuildKit (SSH forwarding in builds)
export DOCKER_BUILDKIT=1

# Spaceship custom sections
[ -f ~/.config/spaceship/spaceship.zsh ] && source ~/.config/spaceship/spaceship.zsh

[ -f ~/.zshrc.local ] && source ~/.zshrc.local
""",
)

SPACESHIP_CONFIG = Template(
    name="spaceship-config",
    body=r"""# Custom Spaceship configuration with last commit message

spaceship_git_last_commit() {
  [[ $SPACESHIP_GIT_LAST_COMMIT_SHOW == false ]] && return

  spaceship::is_git || return

  local full_msg=$(git log -1 --pretty=format:"%s" 2>/dev/null)
  local commit_msg=$(echo "$full_msg" | cut -c1-50)
  [[ -z $commit_msg ]] && return

  [[ ${#full_msg} -gt 50 ]] && commit_msg="${commit_msg}..."

  spaceship::section \
    --color "$SPACESHIP_GIT_LAST_COMMIT_COLOR" \
    "$SPACESHIP_GIT_LAST_COMMIT_PREFIX$commit_msg$SPACESHIP_GIT_LAST_COMMIT_SUFFIX"
}

SPACESHIP_GIT_LAST_COMMIT_SHOW=true
SPACESHIP_GIT_LAST_COMMIT_PREFIX=""
SPACESHIP_GIT_LAST_COMMIT_SUFFIX=" "
SPACESHIP_GIT_LAST_COMMIT_COLOR="yellow"
""",
)

UPDATE_SYSTEM_SCRIPT = Template(
    name="update-system",
    body=r"""#!/bin/bash
set -e
echo "Updating system packages..."
sudo apt-get update && sudo apt-get upgrade -y
if command -v npm >/dev/null 2>&1; then
    echo "Updating global npm packages..."
    npm update -g
fi
if [ -d "$HOME/.oh-my-zsh" ]; then
    echo "Updating Oh My Zsh..."
    git -C "$HOME/.oh-my-zsh" pull --ff-only
fi
echo "System update complete."
""",
)

GO_PROFILE_BLOCK = Template(
    name="go-profile",
    body="""export GOROOT={{ go.root }}
export GOPATH=$HOME/go
export PATH=$PATH:$GOROOT/bin:$GOPATH/bin
""",
)

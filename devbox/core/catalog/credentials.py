"""
Credential steps — SSH key and config, Git identity, remote checks.

Identity comes from the environment model (seeded from config, env vars
or prompts before the run). Steps that need it report ``manual`` when
it is missing rather than failing the run.
"""

from __future__ import annotations

import logging

from devbox.core.models.settings import WorkstationConfig
from devbox.core.models.step import StepContext, StepDescriptor, StepResult
from devbox.core.services.credentials import (
    SSH_CONFIG_MODE,
    SSH_DIR_MODE,
    check_gh_auth,
    check_ssh_auth,
    ensure_git_config,
    ensure_git_identity,
    ensure_keypair,
    ensure_ssh_config,
    ensure_ssh_dir,
    managed_ssh_options,
    public_key_path,
    ssh_config_matches,
)
from devbox.core.services.probes import directory_exists, file_mode_is, git_config_equals

logger = logging.getLogger(__name__)

SSH_DIR = "~/.ssh"
SSH_CONFIG = "~/.ssh/config"


def _identity(ctx: StepContext) -> tuple[str, str]:
    return (
        str(ctx.model.get("identity.name") or "").strip(),
        str(ctx.model.get("identity.email") or "").strip(),
    )


def ssh_dir_step() -> StepDescriptor:
    def probe(ctx: StepContext) -> bool:
        return directory_exists(ctx.path(SSH_DIR), SSH_DIR_MODE)

    def apply(ctx: StepContext) -> StepResult:
        ensure_ssh_dir(ctx.path(SSH_DIR))
        return StepResult("~/.ssh present with mode 0700")

    return StepDescriptor(
        id="ssh-dir",
        description="Create ~/.ssh with mode 0700",
        probe=probe,
        apply=apply,
        tags=("credentials",),
        spec=("dir", SSH_DIR, SSH_DIR_MODE),
    )


def ssh_key_step(settings: WorkstationConfig) -> StepDescriptor:
    ssh = settings.ssh

    def probe(ctx: StepContext) -> bool:
        path = ctx.path(ssh.key_path)
        return path.is_file() and public_key_path(path).is_file()

    def apply(ctx: StepContext) -> StepResult:
        _, email = _identity(ctx)
        path = ctx.path(ssh.key_path)
        if not email and not path.exists():
            return StepResult.manual(
                "No email configured for the SSH key comment; set identity.email "
                "(or DEVBOX_GIT_EMAIL) and re-run"
            )
        ref = ensure_keypair(path, email, ssh.key_type, ssh.passphrase or None)
        verb = "generated" if ref.created else "restored"
        return StepResult(
            f"{verb} {ssh.key_type} key {path} ({ref.fingerprint})",
            delta={"ssh.public_key": ref.public_key, "ssh.fingerprint": ref.fingerprint},
        )

    return StepDescriptor(
        id="ssh-key",
        description=f"Generate an {ssh.key_type} SSH key at {ssh.key_path}",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"ssh-dir"}),
        rollback=f"rm {ssh.key_path} {ssh.key_path}.pub (remove it from the remote account too)",
        tags=("credentials",),
        spec=("ssh-key", ssh.key_path, ssh.key_type),
    )


def ssh_config_step(settings: WorkstationConfig) -> StepDescriptor:
    ssh = settings.ssh

    def _options(ctx: StepContext) -> dict[str, str]:
        return managed_ssh_options(ssh.hostname, ssh.user, ctx.path(ssh.key_path))

    def probe(ctx: StepContext) -> bool:
        path = ctx.path(SSH_CONFIG)
        return (
            ctx.path(ssh.key_path).is_file()
            and ssh_config_matches(path, ssh.host, _options(ctx))
            and file_mode_is(path, SSH_CONFIG_MODE)
        )

    def apply(ctx: StepContext) -> StepResult:
        path = ctx.path(SSH_CONFIG)
        key = ctx.path(ssh.key_path)
        if not key.is_file():
            return StepResult.manual(
                f"No private key at {key}; create it (ssh-key step) before "
                f"pointing Host {ssh.host} at it"
            )
        ensure_ssh_config(ssh.host, key, path, _options(ctx))
        return StepResult(f"Host {ssh.host} stanza up to date in {path}")

    return StepDescriptor(
        id="ssh-config",
        description=f"Point Host {ssh.host} at the generated key in ~/.ssh/config",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"ssh-key"}),
        rollback=f"remove the Host {ssh.host} stanza from ~/.ssh/config",
        tags=("credentials",),
        spec=("ssh-config", ssh.host, ssh.hostname, ssh.user, ssh.key_path),
    )


def git_identity_step() -> StepDescriptor:
    def probe(ctx: StepContext) -> bool:
        name, email = _identity(ctx)
        if not (name and email):
            return False
        return (
            git_config_equals(ctx.runner, "user.name", name)
            and git_config_equals(ctx.runner, "user.email", email)
        )

    def apply(ctx: StepContext) -> StepResult:
        name, email = _identity(ctx)
        if not (name and email):
            return StepResult.manual(
                "Git identity incomplete; set identity.name and identity.email "
                "(or DEVBOX_GIT_NAME / DEVBOX_GIT_EMAIL) and re-run"
            )
        changed = ensure_git_identity(ctx.runner, name, email)
        return StepResult(f"git {', '.join(changed) or 'identity'} set for {name} <{email}>")

    return StepDescriptor(
        id="git-identity",
        description="Set git user.name and user.email",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"core-packages"}),
        rollback="git config --global --unset user.name; git config --global --unset user.email",
        tags=("credentials", "git"),
        spec=("git-identity",),
    )


def git_defaults(settings: WorkstationConfig) -> dict[str, str]:
    git = settings.git
    return {
        "init.defaultBranch": git.default_branch,
        "pull.rebase": "true" if git.pull_rebase else "false",
        "core.editor": git.editor,
    }


def git_defaults_step(settings: WorkstationConfig) -> StepDescriptor:
    wanted = git_defaults(settings)

    def probe(ctx: StepContext) -> bool:
        return all(git_config_equals(ctx.runner, k, v) for k, v in wanted.items())

    def apply(ctx: StepContext) -> StepResult:
        changed = ensure_git_config(ctx.runner, wanted)
        return StepResult(f"set {', '.join(changed)}")

    return StepDescriptor(
        id="git-defaults",
        description="Global git defaults (branch name, pull strategy, editor)",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"core-packages"}),
        rollback="git config --global --unset <key> for " + ", ".join(wanted),
        tags=("git",),
        spec=("git-config", tuple(sorted(wanted.items()))),
    )


def gh_auth_step() -> StepDescriptor:
    def probe(ctx: StepContext) -> bool:
        ok, _ = check_gh_auth(ctx.runner)
        return ok

    def apply(ctx: StepContext) -> StepResult:
        return StepResult.manual("Run `gh auth login --git-protocol ssh` to authenticate the GitHub CLI")

    return StepDescriptor(
        id="gh-auth",
        description="GitHub CLI logged in",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"gh"}),
        tags=("credentials",),
        spec=("gh-auth",),
    )


def ssh_auth_step(settings: WorkstationConfig) -> StepDescriptor:
    ssh = settings.ssh

    def probe(ctx: StepContext) -> bool:
        ok, message = check_ssh_auth(
            ctx.runner, ssh.host, user=ssh.user,
            identity_file=ctx.path(ssh.key_path), timeout=ssh.check_timeout,
        )
        logger.debug("ssh -T %s: %s", ssh.host, message)
        return ok

    def apply(ctx: StepContext) -> StepResult:
        pub = public_key_path(ctx.path(ssh.key_path))
        key = ctx.model.get("ssh.public_key")
        if not key and pub.is_file():
            key = pub.read_text(encoding="utf-8").strip()
        detail = f"Add this public key to your {ssh.hostname} account, then re-run:\n{key or '(no key yet)'}"
        return StepResult.manual(detail)

    return StepDescriptor(
        id="ssh-auth",
        description=f"SSH login to {ssh.host} works",
        probe=probe,
        apply=apply,
        depends_on=frozenset({"ssh-config"}),
        tags=("credentials",),
        spec=("ssh-auth", ssh.host),
    )


def credential_steps(settings: WorkstationConfig) -> list[StepDescriptor]:
    return [
        ssh_dir_step(),
        ssh_key_step(settings),
        ssh_config_step(settings),
        git_identity_step(),
        git_defaults_step(settings),
        gh_auth_step(),
        ssh_auth_step(settings),
    ]

"""
Credential provisioner — SSH keypair, SSH host stanza, Git identity.

Design:
  - Keys are generated in-process with ``cryptography`` (no ssh-keygen
    subprocess) and written in OpenSSH format
  - An existing private key is NEVER overwritten; it is reused
  - ``~/.ssh/config`` is edited stanza-aware: the managed ``Host`` block is
    updated in place, everything else in the file is left byte-for-byte
  - Remote confirmation (``ssh -T``) cannot be automated end to end; a
    failed check becomes a manual step carrying the public key
"""

from __future__ import annotations

import base64
import hashlib
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from devbox.adapters.shell.command import CommandRunner
from devbox.core.errors import ConfigError, PermissionDenied
from devbox.core.services.probes import git_config_equals
from devbox.core.services.templates import write_atomic

logger = logging.getLogger(__name__)

KEY_TYPES = ("ed25519", "ecdsa", "rsa")
SSH_DIR_MODE = 0o700
PRIVATE_KEY_MODE = 0o600
PUBLIC_KEY_MODE = 0o644
SSH_CONFIG_MODE = 0o600


# ═══════════════════════════════════════════════════════════════════
#  Keypair
# ═══════════════════════════════════════════════════════════════════


@dataclass(frozen=True)
class KeyRef:
    """A keypair on disk."""

    private_path: Path
    public_path: Path
    public_key: str          # full ``.pub`` line: "<type> <base64> <comment>"
    fingerprint: str         # "SHA256:<base64, unpadded>"
    created: bool = False


def public_key_path(private_path: Path) -> Path:
    return private_path.with_name(private_path.name + ".pub")


def fingerprint(public_key_line: str) -> str:
    """OpenSSH-style SHA256 fingerprint of a public key line."""
    parts = public_key_line.split()
    if len(parts) < 2:
        raise ValueError(f"Not an OpenSSH public key: {public_key_line[:40]!r}")
    digest = hashlib.sha256(base64.b64decode(parts[1])).digest()
    return "SHA256:" + base64.b64encode(digest).decode("ascii").rstrip("=")


def _generate(key_type: str):
    if key_type == "ed25519":
        return ed25519.Ed25519PrivateKey.generate()
    if key_type == "ecdsa":
        return ec.generate_private_key(ec.SECP256R1())
    if key_type == "rsa":
        return rsa.generate_private_key(public_exponent=65537, key_size=4096)
    raise ConfigError(f"Unsupported key type {key_type!r} (choose from {', '.join(KEY_TYPES)})")


def _public_line(private_key, comment: str) -> str:
    blob = private_key.public_key().public_bytes(
        serialization.Encoding.OpenSSH,
        serialization.PublicFormat.OpenSSH,
    ).decode("ascii")
    return f"{blob} {comment}".strip()


def _write_exclusive(path: Path, data: bytes, mode: int) -> None:
    """Create ``path`` with ``mode``; fail if it already exists."""
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, mode)
    with os.fdopen(fd, "wb") as f:
        f.write(data)
    os.chmod(path, mode)


def ensure_ssh_dir(ssh_dir: Path) -> bool:
    """Create ``~/.ssh`` with mode 0700, or tighten its mode.

    Returns:
        Whether anything changed.
    """
    if ssh_dir.is_dir():
        if (ssh_dir.stat().st_mode & 0o7777) == SSH_DIR_MODE:
            return False
        os.chmod(ssh_dir, SSH_DIR_MODE)
        return True
    ssh_dir.mkdir(parents=True, mode=SSH_DIR_MODE)
    os.chmod(ssh_dir, SSH_DIR_MODE)
    return True


def ensure_keypair(
    path: Path,
    email: str,
    key_type: str = "ed25519",
    passphrase: str | None = None,
) -> KeyRef:
    """Reuse the private key at ``path`` or generate a new one.

    Args:
        path: Private key path (``<path>.pub`` holds the public half).
        email: Comment written into the public key.
        key_type: ``ed25519``, ``ecdsa`` or ``rsa``.
        passphrase: Encrypts the private key when non-empty.

    Returns:
        KeyRef with ``created`` telling whether a key was generated.

    Raises:
        ConfigError: Unknown key type, or an existing key that cannot be
            read to derive its missing public half.
    """
    path = Path(path)
    pub_path = public_key_path(path)
    password = passphrase.encode("utf-8") if passphrase else None

    if path.exists():
        if pub_path.is_file():
            line = pub_path.read_text(encoding="utf-8").strip()
        else:
            try:
                existing = serialization.load_ssh_private_key(path.read_bytes(), password=password)
            except (ValueError, TypeError) as e:
                raise ConfigError(f"Cannot read existing key {path}: {e}") from e
            line = _public_line(existing, email)
            pub_path.write_text(line + "\n", encoding="utf-8")
            os.chmod(pub_path, PUBLIC_KEY_MODE)
            logger.info("Restored missing public key %s", pub_path)
        logger.debug("Reusing existing key %s", path)
        return KeyRef(path, pub_path, line, fingerprint(line), created=False)

    ensure_ssh_dir(path.parent)
    key = _generate(key_type)
    encryption = (
        serialization.BestAvailableEncryption(password)
        if password else serialization.NoEncryption()
    )
    private_bytes = key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.OpenSSH,
        encryption,
    )
    line = _public_line(key, email)

    try:
        _write_exclusive(path, private_bytes, PRIVATE_KEY_MODE)
    except PermissionError as e:
        raise PermissionDenied(f"Cannot write {path}: {e}") from e
    pub_path.write_text(line + "\n", encoding="utf-8")
    os.chmod(pub_path, PUBLIC_KEY_MODE)

    ref = KeyRef(path, pub_path, line, fingerprint(line), created=True)
    logger.info("Generated %s key %s (%s)", key_type, path, ref.fingerprint)
    return ref


# ═══════════════════════════════════════════════════════════════════
#  ~/.ssh/config
# ═══════════════════════════════════════════════════════════════════

_STANZA_RE = re.compile(r"^\s*(host|match)\s+(.*?)\s*$", re.IGNORECASE)
_OPTION_RE = re.compile(r"^(?P<indent>\s*)(?P<key>[A-Za-z][A-Za-z0-9]*)(?P<sep>\s*=\s*|\s+)(?P<value>.*?)\s*$")


@dataclass
class Stanza:
    """One ``Host``/``Match`` section (or the preamble before the first)."""

    header: str | None                       # None for the preamble
    lines: list[str] = field(default_factory=list)

    @property
    def patterns(self) -> list[str]:
        if self.header is None:
            return []
        match = _STANZA_RE.match(self.header)
        if not match or match.group(1).lower() != "host":
            return []
        return match.group(2).split()

    def render(self) -> str:
        head = [self.header] if self.header is not None else []
        return "".join(f"{ln}\n" for ln in head + self.lines)


def parse_ssh_config(text: str) -> list[Stanza]:
    """Split a config into a preamble plus one Stanza per Host/Match line."""
    stanzas = [Stanza(header=None)]
    for line in text.splitlines():
        if _STANZA_RE.match(line):
            stanzas.append(Stanza(header=line))
        else:
            stanzas[-1].lines.append(line)
    return stanzas


def upsert_ssh_host(text: str, host: str, options: dict[str, str]) -> str:
    """Return ``text`` with a ``Host <host>`` stanza carrying ``options``.

    An existing stanza for exactly that host is updated in place: keys
    match case-insensitively, values are replaced, missing keys are
    appended, unrelated keys are kept. Otherwise a new stanza is
    appended. Running it again returns the same text.
    """
    stanzas = parse_ssh_config(text)
    target = next((s for s in stanzas if s.patterns == [host]), None)

    if target is None:
        new = Stanza(header=f"Host {host}")
        new.lines = [f"    {k} {v}" for k, v in options.items()]
        body = "".join(s.render() for s in stanzas)
        if body and not body.endswith("\n\n"):
            body += "\n"
        return body + new.render()

    remaining = dict(options)
    indent = "    "
    for i, line in enumerate(target.lines):
        match = _OPTION_RE.match(line)
        if not match or line.lstrip().startswith("#"):
            continue
        indent = match.group("indent") or indent
        key = match.group("key")
        wanted_key = next((k for k in remaining if k.lower() == key.lower()), None)
        if wanted_key is None:
            continue
        value = remaining.pop(wanted_key)
        target.lines[i] = f"{match.group('indent')}{key}{match.group('sep')}{value}"

    if remaining:
        # insert before trailing blank lines so the gap to the next stanza stays put
        insert_at = len(target.lines)
        while insert_at > 0 and not target.lines[insert_at - 1].strip():
            insert_at -= 1
        target.lines[insert_at:insert_at] = [f"{indent}{k} {v}" for k, v in remaining.items()]

    return "".join(s.render() for s in stanzas)


def managed_ssh_options(hostname: str, user: str, identity_file: Path) -> dict[str, str]:
    return {
        "HostName": hostname,
        "User": user,
        "IdentityFile": str(identity_file),
        "IdentitiesOnly": "yes",
        "AddKeysToAgent": "yes",
    }


def ssh_config_matches(config_path: Path, host: str, options: dict[str, str]) -> bool:
    """Probe: the config already has the stanza with these values."""
    config_path = Path(config_path)
    if not config_path.is_file():
        return False
    text = config_path.read_text(encoding="utf-8", errors="replace")
    return upsert_ssh_host(text, host, options) == text


def ensure_ssh_config(
    host: str,
    identity_file: Path,
    config_path: Path,
    options: dict[str, str] | None = None,
) -> bool:
    """Upsert the ``Host`` stanza and write the file (mode 0600).

    Args:
        host: The ``Host`` alias.
        identity_file: Private key to use for that host.
        config_path: Usually ``~/.ssh/config``.
        options: Extra or overriding options (``HostName``, ``User``...).

    Returns:
        Whether the file changed.
    """
    config_path = Path(config_path)
    wanted = {"IdentityFile": str(identity_file), **(options or {})}
    text = config_path.read_text(encoding="utf-8", errors="replace") if config_path.exists() else ""
    updated = upsert_ssh_host(text, host, wanted)
    if updated == text:
        if config_path.exists() and (config_path.stat().st_mode & 0o7777) != SSH_CONFIG_MODE:
            os.chmod(config_path, SSH_CONFIG_MODE)
            return True
        return False
    ensure_ssh_dir(config_path.parent)
    write_atomic(config_path, updated, mode=SSH_CONFIG_MODE)
    return True


# ═══════════════════════════════════════════════════════════════════
#  Remote checks
# ═══════════════════════════════════════════════════════════════════

_AUTH_OK_RE = re.compile(r"successfully authenticated|welcome to gitlab|logged in as", re.IGNORECASE)


def check_ssh_auth(
    runner: CommandRunner,
    host: str,
    *,
    user: str = "git",
    identity_file: Path | None = None,
    timeout: float = 10,
) -> tuple[bool, str]:
    """Try ``ssh -T`` against the remote.

    GitHub answers a successful key login with exit code 1 and a
    greeting, so success is read from the message, not the exit code.

    Returns:
        ``(authenticated, message)``.
    """
    argv = [
        "ssh", "-T",
        "-o", "BatchMode=yes",
        "-o", "StrictHostKeyChecking=accept-new",
        "-o", f"ConnectTimeout={int(timeout)}",
    ]
    if identity_file is not None:
        argv += ["-i", str(identity_file)]
    argv.append(f"{user}@{host}")

    result = runner.run(argv, timeout=timeout + 5)
    if result.timed_out:
        return False, f"ssh to {host} timed out after {timeout}s"
    message = result.output.strip() or (result.error or "")
    return bool(_AUTH_OK_RE.search(message)), message


def check_gh_auth(runner: CommandRunner, timeout: float = 15) -> tuple[bool, str]:
    """``gh auth status``: exit 0 means logged in."""
    result = runner.run(["gh", "auth", "status"], timeout=timeout)
    return result.ok, (result.output.strip() or (result.error or ""))


# ═══════════════════════════════════════════════════════════════════
#  Git
# ═══════════════════════════════════════════════════════════════════


def set_git_config(runner: CommandRunner, key: str, value: str) -> None:
    """``git config --global <key> <value>``.

    Raises:
        CommandFailed: git rejected the value.
    """
    runner.run(["git", "config", "--global", key, value], timeout=10).require(
        f"git config --global {key}"
    )


def git_identity_settings(name: str, email: str) -> dict[str, str]:
    return {"user.name": name, "user.email": email}


def ensure_git_config(runner: CommandRunner, settings: dict[str, str]) -> list[str]:
    """Set every key whose current global value differs.

    Returns:
        The keys that were changed.
    """
    changed = []
    for key, value in settings.items():
        if not git_config_equals(runner, key, value):
            set_git_config(runner, key, value)
            changed.append(key)
    return changed


def ensure_git_identity(runner: CommandRunner, name: str, email: str) -> list[str]:
    return ensure_git_config(runner, git_identity_settings(name, email))

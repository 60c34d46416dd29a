"""
Command runner — the single place where provisioning runs subprocesses.

Probes and step actions never call ``subprocess`` directly; they go
through a ``CommandRunner`` so that sudo handling, timeouts, logging and
error capture live in one spot, and so tests can swap in a scripted
runner (see ``devbox.adapters.mock``).

The runner NEVER raises for a failing command — failures are captured in
the returned ``CommandResult``. Steps decide what a failure means by
calling ``CommandResult.require()``.
"""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import time
from typing import Any

from pydantic import BaseModel, Field

from devbox.core.errors import CommandFailed, PermissionDenied

logger = logging.getLogger(__name__)

# stderr fragments that mean "not allowed", not "broken"
_PERMISSION_MARKERS = (
    "permission denied",
    "a password is required",
    "are you root",
    "could not open lock file",
    "operation not permitted",
    "incorrect password",
)

_OUTPUT_TAIL = 4000


class CommandResult(BaseModel):
    """Outcome of one command invocation."""

    argv: list[str]
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0
    timed_out: bool = False
    error: str | None = None   # spawn failure (binary missing, etc.)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the command ran and exited 0."""
        return self.returncode == 0 and not self.timed_out and self.error is None

    @property
    def permission_denied(self) -> bool:
        """Whether the failure looks like a privilege problem."""
        if self.ok:
            return False
        text = f"{self.stderr}\n{self.error or ''}".lower()
        return any(marker in text for marker in _PERMISSION_MARKERS)

    @property
    def output(self) -> str:
        """Combined stdout + stderr (some tools print versions to stderr)."""
        return f"{self.stdout}{self.stderr}"

    def require(self, what: str = "") -> CommandResult:
        """Return self if ok, else raise the matching typed error.

        Args:
            what: Short description used in the error message.

        Raises:
            PermissionDenied: The command failed for lack of privileges.
            CommandFailed: Any other failure (non-zero exit, timeout, spawn error).
        """
        if self.ok:
            return self
        if self.permission_denied:
            label = what or " ".join(self.argv)
            raise PermissionDenied(f"{label}: {self.stderr.strip() or self.error}")
        stderr = self.stderr
        if self.timed_out:
            stderr = f"timed out after {self.metadata.get('timeout')}s"
        elif self.error:
            stderr = self.error
        raise CommandFailed(self.argv, self.returncode, stderr)


class CommandRunner:
    """Run commands with sudo, env and timeout support.

    Sudo behaviour:
        - already root → no prefix
        - ``sudo_password`` given → ``sudo -S -k`` with the password on stdin
        - ``non_interactive`` → ``sudo -n`` (fails fast instead of prompting)
        - otherwise → plain ``sudo`` (prompts on the controlling tty)

    The password is never logged and never appears in argv.
    """

    def __init__(
        self,
        *,
        sudo_password: str = "",
        non_interactive: bool = False,
        default_timeout: float = 600,
        base_env: dict[str, str] | None = None,
    ):
        self._sudo_password = sudo_password
        self._non_interactive = non_interactive
        self._default_timeout = default_timeout
        self._base_env = dict(base_env or {})

    def which(self, name: str) -> str | None:
        """Locate an executable on PATH."""
        return shutil.which(name)

    def run(
        self,
        argv: list[str],
        *,
        needs_sudo: bool = False,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
        input: str | None = None,
    ) -> CommandResult:
        """Run a command and capture its result.

        Args:
            argv: Command and arguments (no shell).
            needs_sudo: Whether the command must run as root.
            timeout: Seconds before the command is killed.
            env: Extra environment variables layered over ``os.environ``.
            cwd: Working directory.
            input: Text piped to stdin.

        Returns:
            CommandResult (never raises).
        """
        timeout = self._default_timeout if timeout is None else timeout
        cmd = list(argv)
        stdin_data = input

        if needs_sudo and os.geteuid() != 0:
            if self._sudo_password:
                cmd = ["sudo", "-S", "-k"] + cmd
                stdin_data = self._sudo_password + "\n" + (input or "")
            elif self._non_interactive:
                cmd = ["sudo", "-n"] + cmd
            else:
                cmd = ["sudo"] + cmd

        full_env = os.environ.copy()
        full_env.update(self._base_env)
        if env:
            full_env.update(env)

        logger.debug("Executing: %s (cwd=%s)", " ".join(argv), cwd or ".")
        start = time.monotonic()

        try:
            proc = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout,
                input=stdin_data,
                env=full_env,
                cwd=cwd,
            )
        except subprocess.TimeoutExpired:
            logger.warning("Command timed out after %ss: %s", timeout, " ".join(argv))
            return CommandResult(
                argv=list(argv),
                timed_out=True,
                duration_ms=int((time.monotonic() - start) * 1000),
                metadata={"timeout": timeout},
            )
        except OSError as e:
            return CommandResult(
                argv=list(argv),
                error=f"Cannot execute {argv[0]}: {e}",
                duration_ms=int((time.monotonic() - start) * 1000),
            )

        elapsed_ms = int((time.monotonic() - start) * 1000)
        result = CommandResult(
            argv=list(argv),
            returncode=proc.returncode,
            stdout=(proc.stdout or "")[-_OUTPUT_TAIL:],
            stderr=(proc.stderr or "")[-_OUTPUT_TAIL:],
            duration_ms=elapsed_ms,
        )
        if not result.ok:
            logger.debug(
                "Command exited %s (%dms): %s",
                proc.returncode, elapsed_ms, result.stderr.strip()[:200],
            )
        return result

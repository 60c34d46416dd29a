"""
Fake runner — scripted test double for ``CommandRunner``.

The test suite builds its ``Host`` on these doubles so steps, probes and
the CLI run without touching the system. Responses are registered per
argv prefix; the most recently registered matching prefix wins.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable

from devbox.adapters.shell.command import CommandResult

Handler = Callable[[list[str], "FakeCall"], CommandResult]


@dataclass
class FakeCall:
    """One recorded invocation."""

    argv: list[str]
    needs_sudo: bool = False
    env: dict[str, str] = field(default_factory=dict)
    cwd: str | None = None
    input: str | None = None
    timeout: float | None = None


class FakeRunner:
    """Universal fake runner for testing.

    By default every command succeeds with empty output. Configure
    specific behaviour with ``on()`` / ``set_failure()``.
    """

    def __init__(self, *, executables: set[str] | None = None):
        self._handlers: list[tuple[tuple[str, ...], Handler]] = []
        self._call_log: list[FakeCall] = []
        self.executables: set[str] = set(executables or ())

    @property
    def call_log(self) -> list[FakeCall]:
        """All invocations this fake has received."""
        return self._call_log

    @property
    def call_count(self) -> int:
        return len(self._call_log)

    @property
    def commands(self) -> list[list[str]]:
        """Just the argv of every call, in order."""
        return [c.argv for c in self._call_log]

    def ran(self, *prefix: str) -> bool:
        """Whether any call started with ``prefix``."""
        return any(tuple(c.argv[: len(prefix)]) == prefix for c in self._call_log)

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.executables else None

    def on(
        self,
        *prefix: str,
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
        handler: Handler | None = None,
    ) -> None:
        """Register a response for commands starting with ``prefix``."""
        if handler is None:
            def handler(argv: list[str], call: FakeCall) -> CommandResult:
                return CommandResult(
                    argv=argv, returncode=returncode, stdout=stdout, stderr=stderr,
                )
        self._handlers.append((tuple(prefix), handler))

    def set_failure(self, *prefix: str, stderr: str = "Mock failure", returncode: int = 1) -> None:
        """Configure commands starting with ``prefix`` to fail."""
        self.on(*prefix, stderr=stderr, returncode=returncode)

    def set_timeout(self, *prefix: str) -> None:
        """Configure commands starting with ``prefix`` to time out."""
        def handler(argv: list[str], call: FakeCall) -> CommandResult:
            return CommandResult(argv=argv, timed_out=True, metadata={"timeout": call.timeout})
        self._handlers.append((tuple(prefix), handler))

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
        call = FakeCall(
            argv=list(argv), needs_sudo=needs_sudo, env=dict(env or {}),
            cwd=cwd, input=input, timeout=timeout,
        )
        self._call_log.append(call)
        for prefix, handler in reversed(self._handlers):
            if tuple(argv[: len(prefix)]) == prefix:
                return handler(list(argv), call)
        return CommandResult(argv=list(argv), returncode=0)

    def reset(self) -> None:
        """Clear call log and registered responses."""
        self._call_log.clear()
        self._handlers.clear()


class FakeDpkg:
    """In-memory package database wired into a ``FakeRunner``.

    Answers ``dpkg-query`` from its table and records ``apt-get install``
    as installing every requested package at ``default_version``.
    """

    def __init__(
        self,
        installed: dict[str, str] | None = None,
        *,
        default_version: str = "1.0-1",
        unavailable: set[str] | None = None,
    ):
        self.installed: dict[str, str] = dict(installed or {})
        self.default_version = default_version
        self.unavailable: set[str] = set(unavailable or ())
        self.install_calls: list[list[str]] = []
        self.update_calls = 0

    def attach(self, runner: FakeRunner) -> FakeDpkg:
        runner.on("dpkg-query", handler=self._query)
        runner.on("apt-get", "install", handler=self._install)
        runner.on("apt-get", "update", handler=self._update)
        runner.on("apt-get", "-s", stdout="0 upgraded, 0 newly installed, 0 to remove")
        return self

    def _query(self, argv: list[str], call: FakeCall) -> CommandResult:
        pkg = argv[-1]
        if pkg not in self.installed:
            return CommandResult(
                argv=argv, returncode=1,
                stderr=f"dpkg-query: no packages found matching {pkg}",
            )
        return CommandResult(
            argv=argv, returncode=0,
            stdout=f"install ok installed\t{self.installed[pkg]}",
        )

    def _install(self, argv: list[str], call: FakeCall) -> CommandResult:
        pkgs = [a for a in argv[2:] if not a.startswith("-")]
        self.install_calls.append(pkgs)
        missing = [p for p in pkgs if p in self.unavailable]
        if missing:
            return CommandResult(
                argv=argv, returncode=100,
                stderr=f"E: Unable to locate package {missing[0]}",
            )
        for pkg in pkgs:
            self.installed[pkg] = self.default_version
        return CommandResult(argv=argv, returncode=0)

    def _update(self, argv: list[str], call: FakeCall) -> CommandResult:
        self.update_calls += 1
        return CommandResult(argv=argv, returncode=0)

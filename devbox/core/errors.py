"""
Error kinds — the typed failures a provisioning run can produce.

Step code raises these; the executor converts every step exception into
an Outcome, so only ``ConfigError`` and ``CycleDetected`` ever escape a
run (and both are raised before any step executes).
"""

from __future__ import annotations

import urllib.error


class DevboxError(Exception):
    """Base class for all devbox errors."""

    @property
    def kind(self) -> str:
        """Error kind name as shown in outcomes and reports."""
        return self.__class__.__name__


class ConfigError(DevboxError):
    """Raised when configuration or the step set is invalid."""


class CycleDetected(ConfigError):
    """The step dependency graph contains a cycle."""

    def __init__(self, stuck: list[str]):
        self.stuck = sorted(stuck)
        super().__init__(
            f"Dependency cycle detected among steps: {', '.join(self.stuck)}"
        )


class NetworkUnavailable(DevboxError):
    """A network fetch timed out, failed, or returned nothing usable."""


class PermissionDenied(DevboxError):
    """The step lacks the privileges it needs (sudo, file mode, ownership)."""


class MissingKey(DevboxError):
    """A template placeholder has no value in the environment model."""

    def __init__(self, template: str, keys: list[str]):
        self.template = template
        self.keys = sorted(keys)
        super().__init__(
            f"Template '{template}' is missing required keys: {', '.join(self.keys)}"
        )


class VerificationFailed(DevboxError):
    """A post-install check did not confirm the expected binary or version."""


class CommandFailed(DevboxError):
    """A required command exited non-zero."""

    def __init__(self, argv: list[str], returncode: int | None, stderr: str = ""):
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        tail = stderr.strip().splitlines()[-1] if stderr.strip() else ""
        msg = f"Command failed (exit {returncode}): {' '.join(self.argv)}"
        if tail:
            msg += f": {tail}"
        super().__init__(msg)


def error_kind(exc: BaseException) -> str:
    """Classify an exception into a reportable error kind.

    devbox errors report their own class name. Builtin permission and
    network failures map onto the matching devbox kinds so reports stay
    uniform no matter which layer raised.
    """
    if isinstance(exc, DevboxError):
        return exc.kind
    if isinstance(exc, PermissionError):
        return "PermissionDenied"
    if isinstance(exc, (TimeoutError, ConnectionError)):
        return "NetworkUnavailable"
    if isinstance(exc, urllib.error.URLError):
        return "NetworkUnavailable"
    return exc.__class__.__name__

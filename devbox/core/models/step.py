"""
Step and Outcome models — the provisioning contract.

A ``StepDescriptor`` is a static declaration: what to check (probe) and
what to do when the check fails (apply). An ``Outcome`` is what the
executor recorded for it. Steps never raise past the executor and never
mutate the environment model; they return a ``StepResult`` whose delta
the executor merges.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable

from pydantic import BaseModel, ConfigDict, Field

from devbox.core.errors import error_kind

if TYPE_CHECKING:
    from devbox.adapters.packages.apt import AptPackageManager
    from devbox.adapters.shell.command import CommandRunner
    from devbox.core.models.settings import WorkstationConfig
    from devbox.core.services.versions import VersionResolver


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class OutcomeStatus(StrEnum):
    APPLIED = "applied"
    SKIPPED = "skipped"
    FAILED = "failed"
    MANUAL = "manual"
    NOT_RUN = "not_run"


# Statuses that satisfy a dependent step's ``depends_on``.
COMPLETED = frozenset({OutcomeStatus.APPLIED, OutcomeStatus.SKIPPED, OutcomeStatus.MANUAL})


# ── Execution context ───────────────────────────────────────────────


@dataclass
class Host:
    """Capabilities handed to every probe and apply.

    ``fetch`` is ``(url, timeout) -> bytes``; install scripts, apt keys
    and toolchain tarballs all come through it.
    """

    runner: CommandRunner
    apt: AptPackageManager
    settings: WorkstationConfig
    resolver: VersionResolver
    fetch: Callable[[str, float], bytes]


@dataclass(frozen=True)
class StepContext:
    """What a step sees: host capabilities plus a read-only model view."""

    host: Host
    model: Mapping[str, Any]
    dry_run: bool = False

    @property
    def runner(self) -> CommandRunner:
        return self.host.runner

    @property
    def apt(self) -> AptPackageManager:
        return self.host.apt

    @property
    def settings(self) -> WorkstationConfig:
        return self.host.settings

    @property
    def resolver(self) -> VersionResolver:
        return self.host.resolver

    def path(self, value: str | Path) -> Path:
        """Resolve a ``~/`` path against the configured root."""
        return self.host.settings.path(value)


# ── Step declaration ────────────────────────────────────────────────


@dataclass
class StepResult:
    """What ``apply`` returns."""

    detail: str = ""
    delta: dict[str, Any] = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    status: OutcomeStatus = OutcomeStatus.APPLIED

    @classmethod
    def manual(cls, detail: str, **kwargs: Any) -> StepResult:
        """The step needs a human to finish it (add a key, log in, re-login)."""
        return cls(detail=detail, status=OutcomeStatus.MANUAL, **kwargs)


Probe = Callable[[StepContext], bool]
Apply = Callable[[StepContext], StepResult]


@dataclass(frozen=True)
class StepDescriptor:
    """One declarative unit of provisioning work.

    Attributes:
        id:          Unique step identifier.
        description: One-line human summary.
        depends_on:  Ids that must complete before this step runs.
        probe:       Side-effect-free check; True means already satisfied.
        apply:       Brings the system to the desired state.
        rollback:    Human-readable hint for undoing the step.
        tags:        Free-form grouping labels (``packages``, ``shell``...).
        spec:        Hashable description of the desired state. Two
                     descriptors with the same id and spec are the same step.
    """

    id: str
    description: str
    probe: Probe = field(compare=False, repr=False)
    apply: Apply = field(compare=False, repr=False)
    depends_on: frozenset[str] = frozenset()
    rollback: str | None = None
    tags: tuple[str, ...] = ()
    spec: tuple[Any, ...] = ()

    def __post_init__(self) -> None:
        if not isinstance(self.depends_on, frozenset):
            object.__setattr__(self, "depends_on", frozenset(self.depends_on))
        if not isinstance(self.tags, tuple):
            object.__setattr__(self, "tags", tuple(self.tags))

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "depends_on": sorted(self.depends_on),
            "rollback": self.rollback,
            "tags": list(self.tags),
        }


# ── Outcome ─────────────────────────────────────────────────────────


class Outcome(BaseModel):
    """Recorded result of one step in one run. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    step_id: str
    status: OutcomeStatus
    detail: str = ""
    duration_ms: int = 0
    warnings: tuple[str, ...] = ()
    error_kind: str | None = None
    started_at: str = Field(default_factory=_now_iso)
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def completed(self) -> bool:
        """Whether dependents of this step may run."""
        return self.status in COMPLETED

    @property
    def needs_attention(self) -> bool:
        return self.status in (OutcomeStatus.FAILED, OutcomeStatus.MANUAL)

    @classmethod
    def skipped(cls, step_id: str, detail: str = "already satisfied", **kwargs: Any) -> Outcome:
        return cls(step_id=step_id, status=OutcomeStatus.SKIPPED, detail=detail, **kwargs)

    @classmethod
    def failure(cls, step_id: str, error: BaseException, **kwargs: Any) -> Outcome:
        """Create a failed outcome from the exception that caused it."""
        return cls(
            step_id=step_id,
            status=OutcomeStatus.FAILED,
            detail=str(error) or error.__class__.__name__,
            error_kind=error_kind(error),
            **kwargs,
        )

    @classmethod
    def not_run(cls, step_id: str, reason: str) -> Outcome:
        return cls(step_id=step_id, status=OutcomeStatus.NOT_RUN, detail=reason)

    def to_dict(self) -> dict[str, Any]:
        data = self.model_dump(mode="json")
        data["warnings"] = list(self.warnings)
        return data

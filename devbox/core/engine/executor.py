"""
Engine executor — the central provisioning loop.

Takes the step set, orders it by dependencies, and for each step runs
the probe, applies when the probe says the desired state is missing,
and records an Outcome. Every step exception becomes a failed Outcome;
only configuration and cycle errors escape, and both are raised before
any step executes.

Flow:
    steps → order → (probe → apply?) per step → outcomes
"""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager

from devbox.core.engine.dag import order_steps
from devbox.core.models.environment import EnvironmentModel
from devbox.core.models.step import (
    Host,
    Outcome,
    OutcomeStatus,
    StepContext,
    StepDescriptor,
)

logger = logging.getLogger(__name__)

DRY_RUN_DETAIL = "[dry-run] would apply"
INTERRUPTED_DETAIL = "interrupted"

_MARKERS = {
    OutcomeStatus.APPLIED: "✓",
    OutcomeStatus.SKIPPED: "⊘",
    OutcomeStatus.FAILED: "✗",
    OutcomeStatus.MANUAL: "!",
    OutcomeStatus.NOT_RUN: "·",
}


class Executor:
    """Run steps in dependency order and record one Outcome per step.

    Args:
        host: Capabilities passed to every step.
        continue_on_error: Keep going after a failure. Dependents of a
            failed step are still recorded ``not_run``.
        dry_run: Probe only; never call ``apply``.
        clock: Monotonic time source (seconds), swappable for tests.
        on_outcome: Called with each Outcome as soon as it is recorded.
    """

    def __init__(
        self,
        host: Host,
        *,
        continue_on_error: bool = False,
        dry_run: bool = False,
        clock: Callable[[], float] = time.monotonic,
        on_outcome: Callable[[Outcome], None] | None = None,
    ):
        self.host = host
        self.continue_on_error = continue_on_error
        self.dry_run = dry_run
        self._clock = clock
        self._on_outcome = on_outcome
        self._interrupt_requested = False
        self.interrupted = False
        self.model: EnvironmentModel | None = None

    def request_interrupt(self) -> None:
        """Ask the run to stop at the next step boundary."""
        self._interrupt_requested = True

    def run(
        self,
        steps: Iterable[StepDescriptor],
        model: EnvironmentModel | None = None,
    ) -> list[Outcome]:
        """Execute all steps.

        Args:
            steps: Step descriptors in declaration order.
            model: Initial environment (facts, identity). A fresh empty
                model is used when omitted.

        Returns:
            One Outcome per (deduplicated) step, in execution order.

        Raises:
            ConfigError: Duplicate ids or unknown dependencies.
            CycleDetected: The dependency graph has a cycle.
        """
        ordered = order_steps(steps)
        self.model = model if model is not None else EnvironmentModel()
        self.interrupted = False
        self._interrupt_requested = False

        recorded: dict[str, Outcome] = {}
        outcomes: list[Outcome] = []
        halt_reason: str | None = None

        logger.info("Running %d steps%s", len(ordered), " (dry run)" if self.dry_run else "")

        with self._deferred_interrupt():
            for step in ordered:
                if halt_reason is not None:
                    outcome = Outcome.not_run(step.id, halt_reason)
                else:
                    blocker = self._blocking_dependency(step, recorded)
                    if blocker is not None:
                        outcome = Outcome.not_run(
                            step.id, f"dependency '{blocker}' did not complete"
                        )
                    else:
                        outcome = self._execute(step, self.model)

                recorded[step.id] = outcome
                outcomes.append(outcome)
                self._report(outcome)

                if halt_reason is None:
                    if self._interrupt_requested:
                        self.interrupted = True
                        halt_reason = INTERRUPTED_DETAIL
                        logger.warning("Interrupted after step '%s'", step.id)
                    elif outcome.status == OutcomeStatus.FAILED and not self.continue_on_error:
                        halt_reason = f"aborted: step '{step.id}' failed"

        return outcomes

    # ── Per-step ────────────────────────────────────────────────

    def _execute(self, step: StepDescriptor, model: EnvironmentModel) -> Outcome:
        ctx = StepContext(host=self.host, model=model.view(), dry_run=self.dry_run)
        start = self._clock()

        try:
            satisfied = step.probe(ctx)
        except Exception as e:
            logger.debug("Probe for '%s' raised", step.id, exc_info=True)
            return Outcome.failure(
                step.id, e, duration_ms=self._elapsed(start), metadata={"phase": "probe"},
            )

        if satisfied:
            return Outcome.skipped(step.id, duration_ms=self._elapsed(start))

        if self.dry_run:
            return Outcome.skipped(
                step.id, DRY_RUN_DETAIL,
                duration_ms=self._elapsed(start), metadata={"dry_run": True},
            )

        try:
            result = step.apply(ctx)
        except Exception as e:
            logger.debug("Apply for '%s' raised", step.id, exc_info=True)
            return Outcome.failure(
                step.id, e, duration_ms=self._elapsed(start), metadata={"phase": "apply"},
            )

        model.merge(result.delta)
        metadata = {}
        if result.status == OutcomeStatus.APPLIED and step.rollback:
            metadata["rollback"] = step.rollback
        return Outcome(
            step_id=step.id,
            status=result.status,
            detail=result.detail or step.description,
            duration_ms=self._elapsed(start),
            warnings=tuple(result.warnings),
            metadata=metadata,
        )

    @staticmethod
    def _blocking_dependency(step: StepDescriptor, recorded: dict[str, Outcome]) -> str | None:
        for dep in sorted(step.depends_on):
            outcome = recorded.get(dep)
            if outcome is None or not outcome.completed:
                return dep
        return None

    def _elapsed(self, start: float) -> int:
        return max(0, int((self._clock() - start) * 1000))

    def _report(self, outcome: Outcome) -> None:
        logger.info(
            "%s %s → %s (%dms)",
            _MARKERS[outcome.status], outcome.step_id, outcome.status, outcome.duration_ms,
        )
        if self._on_outcome is not None:
            self._on_outcome(outcome)

    # ── Interrupt handling ──────────────────────────────────────

    @contextmanager
    def _deferred_interrupt(self) -> Iterator[None]:
        """Turn SIGINT into a stop request honoured between steps.

        Signal handlers can only be installed from the main thread; in
        other threads the default behaviour is left alone.
        """
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        def _handler(signum, frame):
            logger.warning("Interrupt received, stopping after the current step")
            self._interrupt_requested = True

        previous = signal.signal(signal.SIGINT, _handler)
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)

"""
Tests for the executor — probe/apply loop, continue policy, dry run,
interrupts, and failure classification.
"""

import pytest

from devbox.core.engine.executor import DRY_RUN_DETAIL, INTERRUPTED_DETAIL, Executor
from devbox.core.errors import CommandFailed, CycleDetected, NetworkUnavailable, VerificationFailed
from devbox.core.models.environment import EnvironmentModel
from devbox.core.models.step import OutcomeStatus, StepDescriptor, StepResult


def _statuses(outcomes):
    return {o.step_id: o.status for o in outcomes}


class TestProbeApply:
    def test_satisfied_step_is_skipped_without_apply(self, host, make_step):
        calls = []
        step = make_step("a", satisfied=True, calls=calls)
        [outcome] = Executor(host).run([step])
        assert outcome.status == OutcomeStatus.SKIPPED
        assert calls == [("probe", "a")]

    def test_unsatisfied_step_is_applied(self, host, make_step):
        calls = []
        [outcome] = Executor(host).run([make_step("a", calls=calls)])
        assert outcome.status == OutcomeStatus.APPLIED
        assert calls == [("probe", "a"), ("apply", "a")]

    def test_second_run_skips_everything(self, host, make_step):
        steps = [make_step("a"), make_step("b", ("a",)), make_step("c", ("b",))]
        first = Executor(host).run(steps)
        second = Executor(host).run(steps)
        assert all(o.status == OutcomeStatus.APPLIED for o in first)
        assert all(o.status == OutcomeStatus.SKIPPED for o in second)

    def test_runs_in_dependency_order(self, host, make_step):
        calls = []
        steps = [make_step("b", ("a",), calls=calls), make_step("a", calls=calls)]
        outcomes = Executor(host).run(steps)
        assert [o.step_id for o in outcomes] == ["a", "b"]
        assert [c for c in calls if c[0] == "apply"] == [("apply", "a"), ("apply", "b")]

    def test_delta_is_merged_into_model(self, host, make_step):
        seen = {}

        def probe(ctx):
            seen.update(ctx.model)
            return False

        reader = StepDescriptor(
            id="reader", description="", probe=probe,
            apply=lambda ctx: StepResult("ok"), depends_on={"writer"},
        )
        writer = make_step("writer", result=StepResult("wrote", delta={"go.version": "1.22.1"}))
        executor = Executor(host)
        executor.run([writer, reader], EnvironmentModel({"home": "/h"}))
        assert seen == {"home": "/h", "go.version": "1.22.1"}
        assert executor.model.get("go.version") == "1.22.1"

    def test_steps_cannot_mutate_the_model(self, host):
        def apply(ctx):
            ctx.model["x"] = 1
            return StepResult("never")

        step = StepDescriptor(id="rogue", description="", probe=lambda ctx: False, apply=apply)
        [outcome] = Executor(host).run([step])
        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error_kind == "TypeError"

    def test_manual_result_is_recorded(self, host, make_step):
        step = make_step("auth", result=StepResult.manual("add the key"))
        [outcome] = Executor(host).run([step])
        assert outcome.status == OutcomeStatus.MANUAL
        assert outcome.detail == "add the key"

    def test_manual_satisfies_dependents(self, host, make_step):
        steps = [
            make_step("auth", result=StepResult.manual("add the key")),
            make_step("after", ("auth",)),
        ]
        assert _statuses(Executor(host).run(steps))["after"] == OutcomeStatus.APPLIED

    def test_rollback_hint_recorded_for_applied(self, host, make_step):
        [outcome] = Executor(host).run([make_step("a", rollback="rm -rf a")])
        assert outcome.metadata["rollback"] == "rm -rf a"

    def test_warnings_carried_to_outcome(self, host, make_step):
        step = make_step("go", result=StepResult("ok", warnings=["NetworkUnavailable: offline"]))
        [outcome] = Executor(host).run([step])
        assert outcome.warnings == ("NetworkUnavailable: offline",)

    def test_duration_uses_clock(self, host, make_step):
        ticks = iter([0.0, 0.25])
        executor = Executor(host, clock=lambda: next(ticks))
        [outcome] = executor.run([make_step("a", satisfied=True)])
        assert outcome.duration_ms == 250

    def test_cycle_raises_before_any_step(self, host, make_step):
        calls = []
        steps = [
            make_step("free", calls=calls),
            make_step("a", ("b",), calls=calls),
            make_step("b", ("a",), calls=calls),
        ]
        with pytest.raises(CycleDetected):
            Executor(host).run(steps)
        assert calls == []


class TestFailures:
    def test_apply_error_becomes_failed_outcome(self, host, make_step):
        step = make_step("go", error=VerificationFailed("go not usable"))
        [outcome] = Executor(host).run([step])
        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error_kind == "VerificationFailed"
        assert outcome.detail == "go not usable"
        assert outcome.metadata["phase"] == "apply"

    def test_probe_error_becomes_failed_outcome(self, host, make_step):
        step = make_step("x", probe_error=NetworkUnavailable("offline"))
        [outcome] = Executor(host).run([step])
        assert outcome.error_kind == "NetworkUnavailable"
        assert outcome.metadata["phase"] == "probe"

    def test_builtin_errors_are_classified(self, host, make_step):
        outcomes = Executor(host, continue_on_error=True).run([
            make_step("perm", error=PermissionError("denied")),
            make_step("net", error=TimeoutError("slow")),
            make_step("cmd", error=CommandFailed(["false"], 1, "boom")),
        ])
        kinds = {o.step_id: o.error_kind for o in outcomes}
        assert kinds == {
            "perm": "PermissionDenied",
            "net": "NetworkUnavailable",
            "cmd": "CommandFailed",
        }

    def test_failure_aborts_remaining_steps_by_default(self, host, make_step):
        calls = []
        steps = [
            make_step("a", error=RuntimeError("boom"), calls=calls),
            make_step("b", calls=calls),
        ]
        outcomes = Executor(host).run(steps)
        assert _statuses(outcomes) == {"a": OutcomeStatus.FAILED, "b": OutcomeStatus.NOT_RUN}
        assert outcomes[1].detail == "aborted: step 'a' failed"
        assert ("probe", "b") not in calls

    def test_continue_on_error_runs_independent_steps(self, host, make_step):
        steps = [
            make_step("a", error=RuntimeError("boom")),
            make_step("b"),
            make_step("c", ("a",)),
            make_step("d", ("c",)),
        ]
        outcomes = Executor(host, continue_on_error=True).run(steps)
        statuses = _statuses(outcomes)
        assert statuses == {
            "a": OutcomeStatus.FAILED,
            "b": OutcomeStatus.APPLIED,
            "c": OutcomeStatus.NOT_RUN,
            "d": OutcomeStatus.NOT_RUN,
        }
        by_id = {o.step_id: o for o in outcomes}
        assert by_id["c"].detail == "dependency 'a' did not complete"
        assert by_id["d"].detail == "dependency 'c' did not complete"

    def test_every_step_gets_exactly_one_outcome(self, host, make_step):
        steps = [make_step(str(i), error=RuntimeError("x") if i == 2 else None) for i in range(5)]
        outcomes = Executor(host).run(steps)
        assert sorted(o.step_id for o in outcomes) == [str(i) for i in range(5)]


class TestDryRun:
    def test_dry_run_never_applies(self, host, make_step):
        calls = []
        steps = [make_step("a", calls=calls), make_step("b", satisfied=True, calls=calls)]
        outcomes = Executor(host, dry_run=True).run(steps)
        assert [c for c in calls if c[0] == "apply"] == []
        by_id = {o.step_id: o for o in outcomes}
        assert by_id["a"].status == OutcomeStatus.SKIPPED
        assert by_id["a"].detail == DRY_RUN_DETAIL
        assert by_id["a"].metadata == {"dry_run": True}
        assert by_id["b"].detail == "already satisfied"

    def test_dry_run_still_probes_dependents(self, host, make_step):
        calls = []
        steps = [make_step("a", calls=calls), make_step("b", ("a",), calls=calls)]
        Executor(host, dry_run=True).run(steps)
        assert ("probe", "b") in calls


class TestInterrupt:
    def test_interrupt_stops_at_step_boundary(self, host, make_step):
        executor = Executor(host)

        def apply(ctx):
            executor.request_interrupt()
            return StepResult("done anyway")

        first = StepDescriptor(id="first", description="", probe=lambda ctx: False, apply=apply)
        outcomes = executor.run([first, make_step("second"), make_step("third")])

        assert executor.interrupted
        assert _statuses(outcomes) == {
            "first": OutcomeStatus.APPLIED,
            "second": OutcomeStatus.NOT_RUN,
            "third": OutcomeStatus.NOT_RUN,
        }
        assert outcomes[1].detail == INTERRUPTED_DETAIL

    def test_on_outcome_callback_sees_each_outcome(self, host, make_step):
        seen = []
        Executor(host, on_outcome=seen.append).run([make_step("a"), make_step("b")])
        assert [o.step_id for o in seen] == ["a", "b"]

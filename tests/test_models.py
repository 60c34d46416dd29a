"""
Tests for domain models — serialization, validation, lookups.
"""

import json

import pytest
from pydantic import ValidationError

from devbox.core.errors import NetworkUnavailable
from devbox.core.models import (
    EnvironmentModel,
    Identity,
    Outcome,
    OutcomeStatus,
    StepDescriptor,
    StepResult,
    Template,
    WorkstationConfig,
)


def _noop_probe(ctx):
    return True


def _noop_apply(ctx):
    return StepResult()


class TestStepDescriptor:
    def test_identity_ignores_callables(self):
        a = StepDescriptor("git", "Install git", _noop_probe, _noop_apply, spec=("apt", "git"))
        b = StepDescriptor("git", "Install git", lambda c: False, lambda c: StepResult(), spec=("apt", "git"))
        assert a == b

    def test_different_spec_differs(self):
        a = StepDescriptor("git", "Install git", _noop_probe, _noop_apply, spec=("apt", "git"))
        b = StepDescriptor("git", "Install git", _noop_probe, _noop_apply, spec=("apt", "git-all"))
        assert a != b

    def test_depends_on_normalized(self):
        step = StepDescriptor("b", "B", _noop_probe, _noop_apply, depends_on=["a", "a"], tags=["x"])
        assert step.depends_on == frozenset({"a"})
        assert step.tags == ("x",)

    def test_to_dict(self):
        step = StepDescriptor(
            "b", "B", _noop_probe, _noop_apply,
            depends_on=frozenset({"z", "a"}), rollback="rm b",
        )
        assert step.to_dict() == {
            "id": "b",
            "description": "B",
            "depends_on": ["a", "z"],
            "rollback": "rm b",
            "tags": [],
        }


class TestOutcome:
    def test_completed_statuses(self):
        assert Outcome(step_id="a", status=OutcomeStatus.APPLIED).completed
        assert Outcome(step_id="a", status=OutcomeStatus.SKIPPED).completed
        assert Outcome(step_id="a", status=OutcomeStatus.MANUAL).completed
        assert not Outcome(step_id="a", status=OutcomeStatus.FAILED).completed
        assert not Outcome.not_run("a", "blocked").completed

    def test_failure_classifies_error(self):
        outcome = Outcome.failure("go", NetworkUnavailable("offline"))
        assert outcome.status == OutcomeStatus.FAILED
        assert outcome.error_kind == "NetworkUnavailable"
        assert outcome.detail == "offline"
        assert outcome.needs_attention

    def test_failure_with_empty_message(self):
        assert Outcome.failure("a", KeyError()).detail != ""

    def test_immutable(self):
        outcome = Outcome.skipped("a")
        with pytest.raises(ValidationError):
            outcome.detail = "changed"

    def test_json_round_trip_shape(self):
        outcome = Outcome(step_id="a", status=OutcomeStatus.APPLIED, warnings=("w",))
        data = json.loads(json.dumps(outcome.to_dict()))
        assert data["status"] == "applied"
        assert data["warnings"] == ["w"]
        assert "started_at" in data


class TestStepResult:
    def test_defaults_to_applied(self):
        assert StepResult("done").status == OutcomeStatus.APPLIED

    def test_manual(self):
        result = StepResult.manual("add the key", delta={"k": "v"})
        assert result.status == OutcomeStatus.MANUAL
        assert result.delta == {"k": "v"}


class TestEnvironmentModel:
    def test_view_is_live_and_read_only(self):
        model = EnvironmentModel({"a": 1})
        view = model.view()
        model.merge({"b": 2})
        assert view["b"] == 2
        with pytest.raises(TypeError):
            view["c"] = 3

    def test_snapshot_is_independent(self):
        model = EnvironmentModel({"a": 1})
        snap = model.snapshot()
        model.merge({"a": 2})
        assert snap == {"a": 1}
        assert "a" in model
        assert len(model) == 1


class TestWorkstationConfig:
    def test_defaults_complete(self):
        config = WorkstationConfig()
        assert config.version == 1
        assert config.ssh.key_path == "~/.ssh/github_key"
        assert "zsh-autosuggestions" in config.zsh.custom_plugins
        assert not config.identity.complete

    def test_identity_complete_ignores_whitespace(self):
        assert not Identity(name="  ", email="a@b").complete
        assert Identity(name="Ada", email="a@b").complete

    def test_key_type_restricted(self):
        with pytest.raises(ValidationError):
            WorkstationConfig(ssh={"key_type": "dsa"})

    def test_path_resolution(self, tmp_path):
        config = WorkstationConfig(root=tmp_path)
        assert config.path("~") == tmp_path
        assert config.path("~/.ssh/config") == tmp_path / ".ssh" / "config"
        assert str(config.path("/etc/apt")) == "/etc/apt"


class TestTemplate:
    def test_keys_include_required(self):
        template = Template(name="t", body="{{ a }} and {{b.c}}", required_keys=frozenset({"d"}))
        assert template.placeholders == {"a", "b.c"}
        assert template.keys == {"a", "b.c", "d"}

"""
Shared test fixtures and configuration.
"""

from pathlib import Path

import pytest

from devbox.adapters.mock import FakeDpkg, FakeRunner
from devbox.adapters.packages.apt import AptPackageManager
from devbox.core.errors import NetworkUnavailable
from devbox.core.models.settings import Identity, WorkstationConfig
from devbox.core.models.step import Host, StepDescriptor, StepResult
from devbox.core.services.versions import VersionResolver


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A scratch directory standing in for $HOME."""
    root = tmp_path / "home"
    root.mkdir()
    return root


@pytest.fixture
def settings(home: Path) -> WorkstationConfig:
    return WorkstationConfig(
        root=home,
        user="dev",
        non_interactive=True,
        identity=Identity(name="Ada Lovelace", email="ada@example.com", github_user="ada"),
    )


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner(executables={"git", "apt-get", "dpkg-query"})


@pytest.fixture
def dpkg(runner: FakeRunner) -> FakeDpkg:
    return FakeDpkg().attach(runner)


@pytest.fixture
def downloads() -> dict[str, bytes]:
    """URL → body served by the fake fetch. Unknown URLs are offline."""
    return {}


@pytest.fixture
def fetch(downloads: dict[str, bytes]):
    def _fetch(url: str, timeout: float) -> bytes:
        if url not in downloads:
            raise NetworkUnavailable(f"Cannot fetch {url}: offline")
        return downloads[url]

    return _fetch


@pytest.fixture
def host(runner: FakeRunner, dpkg: FakeDpkg, settings: WorkstationConfig, fetch) -> Host:
    resolver = VersionResolver(
        settings.go.fallback,
        timeout=0.1,
        fetch=lambda url, t: fetch(url, t).decode(),
    )
    return Host(
        runner=runner,
        apt=AptPackageManager(runner),
        settings=settings,
        resolver=resolver,
        fetch=fetch,
    )


@pytest.fixture
def make_step():
    """Factory for in-memory steps that flip to satisfied once applied."""

    def _make(
        step_id: str,
        depends_on: tuple[str, ...] = (),
        *,
        satisfied: bool = False,
        error: Exception | None = None,
        probe_error: Exception | None = None,
        result: StepResult | None = None,
        calls: list[tuple[str, str]] | None = None,
        rollback: str | None = None,
        spec: tuple = (),
    ) -> StepDescriptor:
        state = {"done": satisfied}

        def probe(ctx) -> bool:
            if calls is not None:
                calls.append(("probe", step_id))
            if probe_error is not None:
                raise probe_error
            return state["done"]

        def apply(ctx) -> StepResult:
            if calls is not None:
                calls.append(("apply", step_id))
            if error is not None:
                raise error
            state["done"] = True
            return result or StepResult(f"did {step_id}")

        return StepDescriptor(
            id=step_id,
            description=f"step {step_id}",
            probe=probe,
            apply=apply,
            depends_on=frozenset(depends_on),
            rollback=rollback,
            spec=spec or (step_id,),
        )

    return _make

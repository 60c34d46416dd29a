"""
Steps use case — list the step registry in execution order.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from devbox.core.catalog import build_catalog
from devbox.core.engine.dag import order_steps
from devbox.core.errors import ConfigError
from devbox.core.models.step import StepDescriptor
from devbox.core.use_cases.run import load_settings


@dataclass
class StepsResult:
    """The ordered step registry."""

    steps: list[StepDescriptor] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        if self.error:
            return {"error": self.error}
        return {
            "count": len(self.steps),
            "steps": [
                {"position": i, **step.to_dict()}
                for i, step in enumerate(self.steps, start=1)
            ],
        }


def list_steps(config_path: Path | None = None) -> StepsResult:
    """Build the catalog from config and order it without running anything."""
    result = StepsResult()
    try:
        settings = load_settings(config_path)
        result.steps = order_steps(build_catalog(settings))
    except ConfigError as e:
        result.error = str(e)
    return result

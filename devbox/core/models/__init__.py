"""
Domain models — steps, outcomes, configuration, templates.

All models are re-exported here for convenient access:

    from devbox.core.models import StepDescriptor, Outcome, WorkstationConfig
"""

from devbox.core.models.environment import EnvironmentModel
from devbox.core.models.settings import (
    GitSettings,
    GoSettings,
    Identity,
    SshSettings,
    WorkstationConfig,
    ZshSettings,
)
from devbox.core.models.step import (
    COMPLETED,
    Host,
    Outcome,
    OutcomeStatus,
    StepContext,
    StepDescriptor,
    StepResult,
)
from devbox.core.models.template import Template

__all__ = [
    "COMPLETED",
    # environment.py
    "EnvironmentModel",
    # settings.py
    "GitSettings",
    "GoSettings",
    # step.py
    "Host",
    "Identity",
    "Outcome",
    "OutcomeStatus",
    "SshSettings",
    "StepContext",
    "StepDescriptor",
    "StepResult",
    # template.py
    "Template",
    "WorkstationConfig",
    "ZshSettings",
]

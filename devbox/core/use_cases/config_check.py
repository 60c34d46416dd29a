"""
Config check use case — validate devbox.yml and report issues.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from devbox.core.catalog import build_catalog
from devbox.core.config.loader import find_config_file, load_config, read_config_data, unknown_keys
from devbox.core.engine.dag import order_steps
from devbox.core.errors import ConfigError
from devbox.core.models.settings import WorkstationConfig


@dataclass
class ConfigCheckResult:
    """Result of configuration validation."""

    valid: bool = False
    settings: WorkstationConfig | None = None
    config_path: Path | None = None
    step_count: int = 0
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "config_path": str(self.config_path) if self.config_path else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "root": str(self.settings.root) if self.settings else None,
            "go_version": self.settings.go.version if self.settings else None,
            "step_count": self.step_count,
        }


def check_config(
    config_path: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> ConfigCheckResult:
    """Validate configuration and report issues.

    Args:
        config_path: Optional explicit path to devbox.yml.
        env: Environment mapping (default: ``os.environ``).

    Returns:
        ConfigCheckResult with validation status and any issues.
    """
    result = ConfigCheckResult()

    # Find config
    try:
        result.config_path = find_config_file(config_path, env)
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    if result.config_path is None:
        result.warnings.append("No devbox.yml found; using built-in defaults.")

    # Load and validate
    try:
        if result.config_path is not None:
            for key in unknown_keys(read_config_data(result.config_path)):
                result.warnings.append(f"Unknown config key: {key}")
        settings = load_config(result.config_path, env=env)
        result.settings = settings
    except ConfigError as e:
        result.errors.append(str(e))
        return result

    # The step graph must be buildable and acyclic
    try:
        result.step_count = len(order_steps(build_catalog(settings)))
    except ConfigError as e:
        result.errors.append(str(e))

    # Semantic checks
    if not settings.identity.complete:
        result.warnings.append(
            "Identity incomplete (identity.name / identity.email); "
            "git-identity will need input or report manual."
        )
    if settings.ssh.key_type == "rsa":
        result.warnings.append("ssh.key_type rsa: ed25519 is preferred.")

    result.valid = len(result.errors) == 0
    return result

"""
Configuration loader — reads devbox.yml into a WorkstationConfig.

Lookup order: ``--config`` → ``$DEVBOX_CONFIG`` →
``~/.config/devbox/devbox.yml`` → built-in defaults.

Precedence for individual values: CLI flag > environment variable >
config file > default. The loader handles the last three; the CLI
passes flags in as ``overrides``.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from devbox.core.errors import ConfigError
from devbox.core.models.settings import WorkstationConfig
from devbox.core.services.versions import LATEST, normalize_version

logger = logging.getLogger(__name__)

CONFIG_FILE = "devbox.yml"
CONFIG_ENV = "DEVBOX_CONFIG"

# env var → dotted config key
ENV_KEYS: dict[str, str] = {
    "DEVBOX_ROOT": "root",
    "DEVBOX_GO_VERSION": "go.version",
    "DEVBOX_GO_FALLBACK_VERSION": "go.fallback",
    "DEVBOX_NONINTERACTIVE": "non_interactive",
    "DEVBOX_GIT_NAME": "identity.name",
    "DEVBOX_GIT_EMAIL": "identity.email",
    "DEVBOX_GITHUB_USER": "identity.github_user",
}

_TRUE = {"1", "true", "yes", "on"}


def default_config_path() -> Path:
    return Path.home() / ".config" / "devbox" / CONFIG_FILE


def find_config_file(
    explicit: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> Path | None:
    """Locate the config file.

    An explicitly named file (flag or ``$DEVBOX_CONFIG``) must exist;
    the default location is optional.

    Returns:
        Path to the config file, or None to use defaults.

    Raises:
        ConfigError: An explicitly named file does not exist.
    """
    env = os.environ if env is None else env

    if explicit is not None:
        if not explicit.is_file():
            raise ConfigError(f"Config file not found: {explicit}")
        return explicit

    from_env = env.get(CONFIG_ENV)
    if from_env:
        path = Path(from_env).expanduser()
        if not path.is_file():
            raise ConfigError(f"Config file not found: {path} (from ${CONFIG_ENV})")
        return path

    candidate = default_config_path()
    return candidate if candidate.is_file() else None


def read_config_data(path: Path) -> dict[str, Any]:
    """Parse the YAML file into a plain mapping.

    Raises:
        ConfigError: Unreadable file, invalid YAML, or not a mapping.
    """
    logger.debug("Loading config from %s", path)
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")
    return data


def _set_dotted(data: dict[str, Any], dotted: str, value: Any) -> None:
    *parents, leaf = dotted.split(".")
    node = data
    for key in parents:
        child = node.get(key)
        if not isinstance(child, dict):
            child = {}
            node[key] = child
        node = child
    node[leaf] = value


def env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    """Dotted-key overrides from ``DEVBOX_*`` variables that are set."""
    result: dict[str, Any] = {}
    for var, key in ENV_KEYS.items():
        value = env.get(var)
        if value is None or value == "":
            continue
        if key == "non_interactive":
            result[key] = value.strip().lower() in _TRUE
        elif key == "root":
            result[key] = str(Path(value).expanduser())
        else:
            result[key] = value
    return result


def unknown_keys(data: Mapping[str, Any]) -> list[str]:
    """Top-level and section keys the configuration model does not know."""
    unknown: list[str] = []
    fields = WorkstationConfig.model_fields
    for key, value in data.items():
        if key not in fields:
            unknown.append(key)
            continue
        annotation = fields[key].annotation
        section_fields = getattr(annotation, "model_fields", None)
        if section_fields is not None and isinstance(value, dict):
            unknown.extend(f"{key}.{k}" for k in value if k not in section_fields)
    return unknown


def validate_config(config: WorkstationConfig) -> None:
    """Checks that need more than field types.

    Raises:
        ConfigError: Invalid pinned or fallback Go version.
    """
    go = config.go
    if go.version.strip().lower() != LATEST and normalize_version(go.version) is None:
        raise ConfigError(f"go.version must be 'latest' or N.N[.N], got {go.version!r}")
    if normalize_version(go.fallback) is None:
        raise ConfigError(f"go.fallback must be N.N[.N], got {go.fallback!r}")
    if "{version}" not in go.download_url:
        raise ConfigError("go.download_url must contain a {version} placeholder")


def load_config(
    path: Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
    overrides: Mapping[str, Any] | None = None,
) -> WorkstationConfig:
    """Load, overlay and validate the workstation configuration.

    Args:
        path: Config file (already located), or None for defaults only.
        env: Environment mapping (default: ``os.environ``).
        overrides: Dotted-key values from CLI flags (highest precedence).

    Returns:
        Validated WorkstationConfig.

    Raises:
        ConfigError: If the file or any value is invalid.
    """
    env = os.environ if env is None else env
    data = read_config_data(path) if path is not None else {}

    for key in unknown_keys(data):
        logger.warning("Ignoring unknown config key '%s'", key)

    for key, value in env_overrides(env).items():
        _set_dotted(data, key, value)
    for key, value in (overrides or {}).items():
        if value is not None:
            _set_dotted(data, key, value)

    try:
        config = WorkstationConfig.model_validate(data)
    except ValidationError as e:
        where = f" in {path}" if path else ""
        raise ConfigError(f"Invalid configuration{where}: {e}") from e

    validate_config(config)
    logger.info("Configuration loaded (%s)", path or "defaults")
    return config

"""
Environment model — state accumulated across the steps of one run.

Keys are flat dotted names (``go.version``, ``identity.email``,
``platform.arch``). Only the executor writes to it; steps get a
read-only view and hand back deltas.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from typing import Any


class EnvironmentModel:
    """Mutable key/value store owned by the executor."""

    def __init__(self, initial: Mapping[str, Any] | None = None):
        self._data: dict[str, Any] = dict(initial or {})

    def view(self) -> Mapping[str, Any]:
        """Read-only live view handed to probes and applies."""
        return MappingProxyType(self._data)

    def merge(self, delta: Mapping[str, Any]) -> None:
        self._data.update(delta)

    def snapshot(self) -> dict[str, Any]:
        """Independent copy of the current state."""
        return dict(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __len__(self) -> int:
        return len(self._data)

"""
Template model — a named text body with ``{{ key }}`` placeholders.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_.\-]*)\s*\}\}")


class Template(BaseModel):
    """A fixed file template rendered against the environment model.

    Attributes:
        name:          Identifier used in errors (``zshrc``, ``ssh-config``).
        body:          Text with ``{{ key }}`` placeholders.
        required_keys: Keys that must be present even if the body
                       does not reference them directly.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    body: str
    required_keys: frozenset[str] = Field(default_factory=frozenset)

    @property
    def placeholders(self) -> set[str]:
        """Every key referenced in the body."""
        return set(PLACEHOLDER.findall(self.body))

    @property
    def keys(self) -> set[str]:
        return self.placeholders | set(self.required_keys)

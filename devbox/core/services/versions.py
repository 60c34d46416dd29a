"""
Version resolver — latest-or-pinned version strings for external tools.

``latest`` is looked up over the network with a short timeout; any
failure falls back to the configured default with a warning instead of
raising. Lookups are memoised for the life of the resolver (one run).
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from devbox.core.errors import ConfigError, NetworkUnavailable
from devbox.core.services.downloads import fetch_text

logger = logging.getLogger(__name__)

LATEST = "latest"
VERSION_RE = re.compile(r"^\d+\.\d+(?:\.\d+)?$")
_PREFIX_RE = re.compile(r"^(?:go|v)", re.IGNORECASE)


@dataclass(frozen=True)
class ResolvedVersion:
    """A version plus how it was obtained."""

    version: str
    fallback: bool = False
    warning: str | None = None


def normalize_version(raw: str) -> str | None:
    """Strip a ``go``/``v`` prefix and validate ``N.N[.N]``.

    Returns:
        The bare version, or None if the text is not a version.
    """
    text = _PREFIX_RE.sub("", raw.strip())
    return text if VERSION_RE.match(text) else None


class VersionResolver:
    """Resolve version specs for one run.

    Args:
        default_version: Returned (with ``fallback=True``) when the
            latest version cannot be determined.
        timeout: Seconds to wait on the network.
        fetch: ``(url, timeout) -> str`` used for lookups.
    """

    def __init__(
        self,
        default_version: str,
        timeout: float = 5,
        fetch: Callable[[str, float], str] | None = None,
    ):
        self.default_version = default_version
        self.timeout = timeout
        self._fetch = fetch or (lambda url, t: fetch_text(url, timeout=t))
        self._cache: dict[str, ResolvedVersion] = {}

    def resolve_latest(self, source_url: str) -> ResolvedVersion:
        """Look up the latest version published at ``source_url``.

        Never raises: timeouts, network errors and unparseable replies
        yield the default version with ``fallback=True``.
        """
        cached = self._cache.get(source_url)
        if cached is not None:
            return cached

        try:
            body = self._fetch(source_url, self.timeout)
            first = next((ln for ln in body.splitlines() if ln.strip()), "")
            version = normalize_version(first)
            if version is None:
                raise NetworkUnavailable(f"Unrecognised version reply from {source_url}: {first[:40]!r}")
            resolved = ResolvedVersion(version)
        except (NetworkUnavailable, TimeoutError, OSError) as e:
            warning = f"NetworkUnavailable: {e}; using default {self.default_version}"
            logger.warning("Latest version lookup failed: %s", warning)
            resolved = ResolvedVersion(self.default_version, fallback=True, warning=warning)

        self._cache[source_url] = resolved
        return resolved

    def resolve_pinned(self, version: str) -> str:
        """Normalise a pinned version (``go1.24.0`` → ``1.24.0``).

        Raises:
            ConfigError: The value is not ``N.N[.N]`` after normalisation.
        """
        normalized = normalize_version(version)
        if normalized is None:
            raise ConfigError(f"Invalid pinned version: {version!r}")
        return normalized

    def resolve(self, spec: str, source_url: str) -> ResolvedVersion:
        """Dispatch on ``spec``: ``latest`` looks up, anything else is pinned."""
        if spec.strip().lower() == LATEST:
            return self.resolve_latest(source_url)
        return ResolvedVersion(self.resolve_pinned(spec))

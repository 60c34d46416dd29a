"""
Downloads — bounded-timeout HTTP fetches.

Network failures surface as ``NetworkUnavailable`` so the executor can
classify them; callers that have a fallback (version lookup) catch it.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request

from devbox import __version__
from devbox.core.errors import NetworkUnavailable

logger = logging.getLogger(__name__)

USER_AGENT = f"devbox/{__version__}"
DOWNLOAD_TIMEOUT = 120


def fetch_bytes(url: str, timeout: float = DOWNLOAD_TIMEOUT) -> bytes:
    """GET ``url`` and return the body.

    Raises:
        NetworkUnavailable: Timeout, DNS/connection failure or HTTP error.
    """
    logger.debug("GET %s (timeout=%ss)", url, timeout)
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return resp.read()
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        raise NetworkUnavailable(f"Cannot fetch {url}: {e}") from e


def fetch_text(url: str, timeout: float = DOWNLOAD_TIMEOUT) -> str:
    return fetch_bytes(url, timeout=timeout).decode("utf-8", errors="replace")


"""
Logging configuration — stderr output for a provisioning run.

``devbox`` keeps stdout for the step report; everything logged goes to
stderr, and optionally to a file that keeps full detail for a run that
went wrong. Set up once by main.py before any step runs.

Console level, first match wins:
    --debug  >  --verbose  >  --quiet  >  DEVBOX_LOG_LEVEL  >  WARNING

The file is enabled by DEVBOX_LOG_FILE; DEVBOX_LOG_FILE_LEVEL sets its
level independently of the console.
"""

from __future__ import annotations

import logging
import os
import sys
from collections.abc import Mapping
from pathlib import Path

_DETAILED = "%(asctime)s %(levelname)-5s %(name)s:%(lineno)d: %(message)s"

# Console layouts, tightest threshold first; anything above INFO is bare.
_CONSOLE_LAYOUTS: tuple[tuple[int, str, str | None], ...] = (
    (logging.DEBUG, _DETAILED, "%H:%M:%S"),
    (logging.INFO, "%(asctime)s [%(name)s] %(message)s", "%H:%M:%S"),
)


def resolve_level(
    *,
    debug: bool = False,
    verbose: bool = False,
    quiet: bool = False,
    env: Mapping[str, str] | None = None,
) -> str:
    """Pick the console level from CLI flags, then ``DEVBOX_LOG_LEVEL``."""
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    if quiet:
        return "ERROR"
    env = os.environ if env is None else env
    return env.get("DEVBOX_LOG_LEVEL", "WARNING")


def console_formatter(level: int) -> logging.Formatter:
    """Bare messages at WARNING and above, timestamps with -v, file:line with --debug."""
    for threshold, fmt, datefmt in _CONSOLE_LAYOUTS:
        if level <= threshold:
            return logging.Formatter(fmt, datefmt=datefmt)
    return logging.Formatter("%(message)s")


def setup_logging(
    level: str = "WARNING",
    log_file: str | None = None,
    log_file_level: str | None = None,
) -> None:
    """Replace the root handlers with a stderr handler and an optional file.

    Args:
        level: Console level name. Unknown names mean WARNING.
        log_file: Path of a run log; ``~`` is expanded and missing
            parent directories are created.
        log_file_level: Level for the file. Defaults to ``level``.
    """
    console_level = _parse_level(level)
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(console_formatter(console_level))
    handlers: list[logging.Handler] = [console]

    if log_file:
        path = Path(log_file).expanduser()
        path.parent.mkdir(parents=True, exist_ok=True)
        run_log = logging.FileHandler(path, encoding="utf-8")
        run_log.setLevel(_parse_level(log_file_level) if log_file_level else console_level)
        run_log.setFormatter(logging.Formatter(_DETAILED, datefmt="%Y-%m-%d %H:%M:%S"))
        handlers.append(run_log)

    root = logging.getLogger()
    root.handlers[:] = handlers
    root.setLevel(min(h.level for h in handlers))

    # A broken stderr must not take the run down with it.
    logging.raiseExceptions = False


def _parse_level(level: str | None) -> int:
    numeric = logging.getLevelName(level.upper()) if level else None
    return numeric if isinstance(numeric, int) else logging.WARNING

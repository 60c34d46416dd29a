"""
Template renderer — file contents from templates, written atomically.

Three jobs:
    render        ``{{ key }}`` substitution against the environment model
    write_atomic  temp file + fsync + rename, one timestamped backup kept
    marker blocks idempotent upsert of ``# >>> devbox:<name> >>>`` regions
                  inside files the user also edits (shell profiles)
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
import time
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

from devbox.core.errors import MissingKey
from devbox.core.models.template import PLACEHOLDER, Template

logger = logging.getLogger(__name__)

BLOCK_NAMESPACE = "devbox"
_BLOCK_RE = re.compile(
    r"^# >>> devbox:(?P<name>[\w.\-]+) >>>\n(?P<body>.*?)^# <<< devbox:(?P=name) <<<\n?",
    re.MULTILINE | re.DOTALL,
)


# ── Rendering ───────────────────────────────────────────────────────


def _blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def render(template: Template, model: Mapping[str, Any]) -> str:
    """Substitute every ``{{ key }}`` with ``str(model[key])``.

    No expressions, no filters. A key whose value is None or a blank
    string counts as missing.

    Raises:
        MissingKey: Listing every absent key (body placeholders plus
            ``required_keys``).
    """
    missing = [k for k in template.keys if _blank(model.get(k))]
    if missing:
        raise MissingKey(template.name, missing)
    return PLACEHOLDER.sub(lambda m: str(model[m.group(1)]), template.body)


# ── Atomic writes ───────────────────────────────────────────────────


def backup_name(path: Path, now: float | None = None) -> Path:
    ts = time.strftime("%Y%m%d_%H%M%S", time.localtime(now))
    return path.with_name(f"{path.name}.bak.{ts}")


def _prune_backups(path: Path, keep: Path) -> None:
    for old in path.parent.glob(f"{path.name}.bak.*"):
        if old != keep:
            old.unlink(missing_ok=True)


def write_atomic(
    path: Path,
    content: str,
    mode: int | None = None,
    backup: bool = True,
) -> Path | None:
    """Write ``content`` to ``path`` so readers see old or new, never half.

    The temp file lives in the destination directory so the final
    ``os.replace`` is a same-filesystem rename. If the destination exists
    with different content it is first copied to a timestamped backup;
    only the newest backup of each file is kept.

    Args:
        path: Destination file.
        content: Full new text.
        mode: Permission bits. Defaults to the existing file's mode, or
            0644 for a new file.
        backup: Keep a copy of the previous content.

    Returns:
        Path of the backup that was made, or None.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    existing: str | None = None
    if path.exists():
        existing = path.read_text(encoding="utf-8", errors="replace")
        if mode is None:
            mode = path.stat().st_mode & 0o7777
    if mode is None:
        mode = 0o644

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    tmp = Path(tmp_path)
    made_backup: Path | None = None
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp, mode)

        if backup and existing is not None and existing != content:
            made_backup = backup_name(path)
            shutil.copy2(path, made_backup)

        os.replace(tmp, path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise

    if made_backup is not None:
        _prune_backups(path, made_backup)
        logger.info("Wrote %s (previous version kept at %s)", path, made_backup.name)
    else:
        logger.info("Wrote %s", path)
    return made_backup


def ensure_file(path: Path, content: str, mode: int | None = None) -> bool:
    """Write ``content`` unless the file already holds exactly that.

    Returns:
        Whether the file changed.
    """
    path = Path(path)
    if path.is_file() and path.read_text(encoding="utf-8", errors="replace") == content:
        if mode is not None and (path.stat().st_mode & 0o7777) != mode:
            os.chmod(path, mode)
            return True
        return False
    write_atomic(path, content, mode=mode)
    return True


# ── Marker blocks ───────────────────────────────────────────────────


def block_start(marker: str) -> str:
    return f"# >>> {BLOCK_NAMESPACE}:{marker} >>>"


def block_end(marker: str) -> str:
    return f"# <<< {BLOCK_NAMESPACE}:{marker} <<<"


def format_block(marker: str, content: str) -> str:
    body = content.strip("\n")
    return f"{block_start(marker)}\n{body}\n{block_end(marker)}\n"


def _find_block(text: str, marker: str) -> re.Match[str] | None:
    for match in _BLOCK_RE.finditer(text):
        if match.group("name") == marker:
            return match
    return None


def read_block(text: str, marker: str) -> str | None:
    """Body of the named block (without delimiters), or None."""
    match = _find_block(text, marker)
    if match is None:
        return None
    return match.group("body").rstrip("\n")


def block_names(text: str) -> list[str]:
    return [m.group("name") for m in _BLOCK_RE.finditer(text)]


def upsert_block(text: str, marker: str, content: str) -> str:
    """Replace the named block in place, or append it.

    Running this twice with the same arguments returns the same text.
    """
    block = format_block(marker, content)
    match = _find_block(text, marker)
    if match is not None:
        return text[: match.start()] + block + text[match.end():]
    if not text:
        return block
    sep = "\n" if text.endswith("\n") else "\n\n"
    if text.endswith("\n\n"):
        sep = ""
    return f"{text}{sep}{block}"


def remove_lines_matching(text: str, patterns: Iterable[str]) -> str:
    """Drop unmanaged lines matching any regex in ``patterns``.

    Lines inside devbox marker blocks are left alone.
    """
    compiled = [re.compile(p) for p in patterns]
    if not compiled:
        return text
    kept: list[str] = []
    inside: str | None = None
    for line in text.splitlines(keepends=True):
        stripped = line.rstrip("\n")
        if inside is None:
            start = re.match(r"^# >>> devbox:([\w.\-]+) >>>$", stripped)
            if start:
                inside = start.group(1)
            elif any(p.search(stripped) for p in compiled):
                continue
        elif stripped == block_end(inside):
            inside = None
        kept.append(line)
    return "".join(kept)


def carry_blocks(old_text: str, new_text: str) -> str:
    """Copy marker blocks from ``old_text`` that ``new_text`` lacks.

    Used when a whole file is re-rendered from a template but other
    steps own blocks inside it.
    """
    result = new_text
    for match in _BLOCK_RE.finditer(old_text):
        name = match.group("name")
        if _find_block(result, name) is None:
            result = upsert_block(result, name, match.group("body"))
    return result


def ensure_block(
    path: Path,
    marker: str,
    content: str,
    *,
    remove_patterns: Iterable[str] = (),
    mode: int | None = None,
) -> bool:
    """Upsert a marker block into a file (created if absent).

    Args:
        path: File to edit.
        marker: Block name.
        content: Block body.
        remove_patterns: Regexes for legacy unmanaged lines to drop first.
        mode: Permission bits for a newly created file.

    Returns:
        Whether the file changed.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8", errors="replace") if path.exists() else ""
    updated = upsert_block(remove_lines_matching(text, remove_patterns), marker, content)
    if updated == text:
        return False
    write_atomic(path, updated, mode=mode)
    return True

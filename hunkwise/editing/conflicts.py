"""
Conflict extraction — finds merge-conflict marker blocks left behind by
a three-way merge and splits them into "ours" and "theirs" spans.
"""

from __future__ import annotations

import logging
import os

from .. import git_utils
from .models import ConflictInfo, ConflictKind

logger = logging.getLogger(__name__)

_OURS = "<<<<<<<"
_BASE = "|||||||"
_SEPARATOR = "======="
_THEIRS = ">>>>>>>"

STRATEGIES = ("ours", "theirs", "both")


def extract_conflicts(file_path: str, content: str) -> list[ConflictInfo]:
    """Return one :class:`ConflictInfo` per marker block in *content*.

    diff3-style base sections (``|||||||``) are excluded from both spans.
    A block missing its closing marker is reported with whatever was
    captured before the end of the file.
    """
    conflicts: list[ConflictInfo] = []
    lines = content.splitlines()
    i = 0

    while i < len(lines):
        if not lines[i].startswith(_OURS):
            i += 1
            continue

        start_line = i + 1
        original: list[str] = []
        incoming: list[str] = []
        section = "ours"
        i += 1

        while i < len(lines):
            line = lines[i]
            if section != "theirs" and line.startswith(_BASE):
                section = "base"
            elif section != "theirs" and line.startswith(_SEPARATOR):
                section = "theirs"
            elif section == "theirs" and line.startswith(_THEIRS):
                break
            elif section == "ours":
                original.append(line)
            elif section == "theirs":
                incoming.append(line)
            i += 1

        conflicts.append(ConflictInfo(
            file=file_path,
            line=start_line,
            kind=ConflictKind.MERGE,
            message=f"Merge conflict in {file_path} at line {start_line}",
            original="\n".join(original),
            incoming="\n".join(incoming),
        ))
        i += 1

    return conflicts


def find_conflicts(repo_root: str, git: str = "git") -> list[ConflictInfo]:
    """Scan every unmerged file under *repo_root* for conflict markers.

    Unreadable files are logged and skipped.
    """
    conflicts: list[ConflictInfo] = []

    for rel_path in git_utils.list_unmerged_files(repo_root, git):
        full_path = os.path.join(repo_root, rel_path)
        try:
            with open(full_path, "r", encoding="utf-8", errors="replace") as f:
                content = f.read()
        except OSError as exc:
            logger.warning("[Patch] Cannot read unmerged file %s: %s",
                           rel_path, exc)
            continue
        conflicts.extend(extract_conflicts(rel_path, content))

    return conflicts


def resolve_conflicts(file_path: str, strategy: str = "theirs") -> int:
    """Rewrite *file_path* keeping one side of every conflict block.

    Parameters
    ----------
    file_path:
        File containing conflict markers.
    strategy:
        ``"ours"`` keeps the original side, ``"theirs"`` the incoming
        side, ``"both"`` keeps ours followed by theirs.

    Returns
    -------
    int
        Number of conflict blocks resolved.
    """
    if strategy not in STRATEGIES:
        raise ValueError(
            f"Unknown strategy {strategy!r}; expected one of {STRATEGIES}"
        )

    with open(file_path, "r", encoding="utf-8") as f:
        lines = f.read().splitlines(keepends=True)

    out: list[str] = []
    resolved = 0
    section: str | None = None
    ours: list[str] = []
    theirs: list[str] = []

    for line in lines:
        if section is None:
            if line.startswith(_OURS):
                section, ours, theirs = "ours", [], []
            else:
                out.append(line)
        elif section != "theirs" and line.startswith(_BASE):
            section = "base"
        elif section != "theirs" and line.startswith(_SEPARATOR):
            section = "theirs"
        elif section == "theirs" and line.startswith(_THEIRS):
            if strategy in ("ours", "both"):
                out.extend(ours)
            if strategy in ("theirs", "both"):
                out.extend(theirs)
            resolved += 1
            section = None
        elif section == "ours":
            ours.append(line)
        elif section == "theirs":
            theirs.append(line)

    if section is not None:
        raise ValueError(f"Unterminated conflict block in {file_path}")

    with open(file_path, "w", encoding="utf-8") as f:
        f.write("".join(out))

    logger.info("[Patch] Resolved %d conflict(s) in %s using %s",
                resolved, file_path, strategy)
    return resolved

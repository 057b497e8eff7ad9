"""
Diff parser — parses unified-diff text (as returned by the LLM) into
files, hunks and lines.

Parsing is permissive: prose before or after the diff, markdown fences
and malformed file blocks are skipped rather than reported as errors.
"""

from __future__ import annotations

import logging
import re

from .models import (
    DiffLine, FileDiff, FileOperation, Hunk, LineKind,
)

logger = logging.getLogger(__name__)

# Patterns
_FILE_SPLIT = re.compile(r"^(?=diff --git )", re.MULTILINE)
_FILE_HEADER = re.compile(r"^diff --git a/(.+?) b/(.+?)\s*$")
_HUNK_HEADER = re.compile(
    r"^@@ -(\d+)(?:,(\d+))? \+(\d+)(?:,(\d+))? @@ ?(.*)$"
)

# Extended header lines git emits between ``diff --git`` and the first hunk
_METADATA_PREFIXES = (
    "index ", "--- ", "+++ ", "new file mode", "deleted file mode",
    "old mode", "new mode", "similarity index", "dissimilarity index",
    "rename from", "rename to", "copy from", "copy to",
)


def parse_patch(patch_text: str) -> list[FileDiff]:
    """Parse *patch_text* into an ordered list of :class:`FileDiff`.

    Never raises: text without any ``diff --git`` header yields ``[]``.
    """
    if not patch_text:
        return []

    text = patch_text.replace("\r\n", "\n")
    file_diffs: list[FileDiff] = []

    for block in _FILE_SPLIT.split(text):
        if not block.strip():
            continue
        lines = block.split("\n")
        match = _FILE_HEADER.match(lines[0])
        if not match:
            logger.debug(
                "[Patch] Skipping block without a diff --git header: %r",
                lines[0][:80],
            )
            continue
        file_diffs.append(_parse_file_block(lines, match))

    return file_diffs


def _parse_file_block(lines: list[str], match: re.Match) -> FileDiff:
    old_path, new_path = match.group(1), match.group(2)

    # A trailing newline on the block must not turn into blank context.
    while lines and lines[-1] == "":
        lines.pop()

    header_lines = [lines[0]]
    hunks: list[Hunk] = []
    current: Hunk | None = None
    old_line = new_line = 0
    is_new = is_deleted = False

    for line in lines[1:]:
        header = _HUNK_HEADER.match(line)
        if header:
            current = _start_hunk(header, line)
            hunks.append(current)
            old_line, new_line = current.old_start, current.new_start
            continue

        if current is not None:
            if line.startswith("\\"):
                _mark_missing_newline(current)
                continue
            if line.startswith("+"):
                current.lines.append(DiffLine(
                    LineKind.ADD, line[1:], new_line_number=new_line,
                ))
                new_line += 1
                continue
            if line.startswith("-"):
                current.lines.append(DiffLine(
                    LineKind.REMOVE, line[1:], old_line_number=old_line,
                ))
                old_line += 1
                continue
            if line.startswith(" ") or (line == "" and not _is_complete(current)):
                current.lines.append(DiffLine(
                    LineKind.CONTEXT, line[1:],
                    old_line_number=old_line, new_line_number=new_line,
                ))
                old_line += 1
                new_line += 1
                continue
            # Anything else closes the hunk
            current = None
            continue

        if hunks:
            # Trailing prose after the last hunk of this file
            continue

        if line.startswith(_METADATA_PREFIXES):
            header_lines.append(line)
            if line.startswith("new file mode") or line == "--- /dev/null":
                is_new = True
            elif line.startswith("deleted file mode") or line == "+++ /dev/null":
                is_deleted = True

    if is_new:
        operation = FileOperation.CREATE
    elif is_deleted:
        operation = FileOperation.DELETE
    elif old_path != new_path:
        operation = FileOperation.RENAME
    else:
        operation = FileOperation.MODIFY

    return FileDiff(
        file=old_path if operation == FileOperation.DELETE else new_path,
        old_path=old_path,
        new_path=new_path,
        operation=operation,
        hunks=hunks,
        header_lines=header_lines,
    )


def _start_hunk(match: re.Match, line: str) -> Hunk:
    old_start, old_count, new_start, new_count, context = match.groups()
    return Hunk(
        old_start=int(old_start),
        old_count=int(old_count) if old_count is not None else 1,
        new_start=int(new_start),
        new_count=int(new_count) if new_count is not None else 1,
        context=context.strip(),
        header=line,
    )


def _is_complete(hunk: Hunk) -> bool:
    """True once the body holds as many lines as the header declares."""
    return (hunk.removed_count >= hunk.old_count
            and hunk.added_count >= hunk.new_count)


def _mark_missing_newline(hunk: Hunk) -> None:
    """Attribute a ``\\ No newline at end of file`` marker to its side."""
    if not hunk.lines:
        return
    kind = hunk.lines[-1].kind
    if kind in (LineKind.REMOVE, LineKind.CONTEXT):
        hunk.old_missing_newline = True
    if kind in (LineKind.ADD, LineKind.CONTEXT):
        hunk.new_missing_newline = True


class DiffParser:
    """Parse unified diffs from LLM responses."""

    def parse(self, llm_response: str) -> list[FileDiff]:
        """Parse a unified diff from the LLM response.

        Returns an empty list when the response holds no diff at all.
        """
        file_diffs = parse_patch(llm_response)
        if not file_diffs:
            logger.warning("[Patch] No diff --git headers found in response")
        return file_diffs

    def validate(self, file_diffs: list[FileDiff]) -> dict[str, list[str]]:
        """Check header line counts against hunk bodies.

        Returns a mapping of file path to count problems; files whose
        hunks are consistent are omitted.
        """
        problems: dict[str, list[str]] = {}
        for file_diff in file_diffs:
            issues: list[str] = []
            for hunk in file_diff.hunks:
                issues.extend(hunk.count_mismatches())
            if issues:
                problems[file_diff.file] = issues
                logger.debug(
                    "[Patch] %d hunk count problem(s) in %s",
                    len(issues), file_diff.file,
                )
        return problems

"""
Hunk applier — splices parsed hunks into an in-memory line buffer.

Hunk headers number lines against the *original* file, so every applied
hunk shifts the coordinates of the hunks after it.  Callers thread the
running offset from one hunk to the next; hunks of a file must be
applied in source order.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .models import ApplyOutcome, ConflictInfo, ConflictKind, Hunk
from .similarity import similarity

logger = logging.getLogger(__name__)

DEFAULT_FUZZY_THRESHOLD = 0.8

# Absorbs float noise so a score of exactly the threshold is accepted
_EPSILON = 1e-9


class PatchApplyError(Exception):
    """Raised when a patch cannot be applied cleanly."""


class ContextMismatchError(PatchApplyError):
    """A context or removed line does not match the target file."""

    def __init__(
        self,
        message: str,
        *,
        line: int,
        expected: str,
        actual: str | None,
        kind: ConflictKind = ConflictKind.CONTEXT,
    ) -> None:
        super().__init__(message)
        self.line = line
        self.expected = expected
        self.actual = actual
        self.kind = kind


@dataclass
class HunkResult:
    """Result of applying one hunk."""
    success: bool
    new_offset: int
    conflicts: list[ConflictInfo] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


def apply_hunk(
    lines: list[str],
    hunk: Hunk,
    running_offset: int,
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    file_path: str = "",
) -> HunkResult:
    """Apply *hunk* to *lines* in place.

    Parameters
    ----------
    lines:
        The file's line buffer (no line terminators).
    hunk:
        The parsed hunk.
    running_offset:
        Net line-count change from hunks already applied to this buffer.
    fuzzy_threshold:
        Minimum similarity for a mismatched line to be accepted.

    Returns
    -------
    HunkResult
        On failure the buffer is untouched and ``new_offset`` equals
        ``running_offset``.
    """
    try:
        start = _start_index(lines, hunk, running_offset)
        warnings = _verify(lines, hunk, start, fuzzy_threshold)
    except ContextMismatchError as exc:
        logger.debug("[Patch] Hunk %s failed in %s: %s",
                     hunk.header, file_path or "<buffer>", exc)
        conflict = ConflictInfo(
            file=file_path,
            line=exc.line,
            kind=exc.kind,
            message=str(exc),
            original=exc.actual,
            incoming=exc.expected,
        )
        return HunkResult(
            success=False,
            new_offset=running_offset,
            conflicts=[conflict],
            error=str(exc),
        )

    replacement = [l.content for l in hunk.lines if l.is_new_side]
    removed = hunk.removed_count
    lines[start:start + removed] = replacement

    return HunkResult(
        success=True,
        new_offset=running_offset + len(replacement) - removed,
        warnings=warnings,
    )


def apply_hunks(
    lines: list[str],
    hunks: list[Hunk],
    fuzzy_threshold: float = DEFAULT_FUZZY_THRESHOLD,
    file_path: str = "",
) -> ApplyOutcome:
    """Apply *hunks* to *lines* in order, stopping at the first failure.

    The buffer may be partially rewritten when a later hunk fails, so
    callers must discard it unless the outcome is successful.
    """
    outcome = ApplyOutcome(success=True)
    offset = 0

    for hunk in hunks:
        result = apply_hunk(lines, hunk, offset, fuzzy_threshold, file_path)
        outcome.warnings.extend(result.warnings)
        outcome.conflicts.extend(result.conflicts)
        if not result.success:
            outcome.success = False
            outcome.error = result.error
            return outcome
        offset = result.new_offset

    return outcome


def _start_index(lines: list[str], hunk: Hunk, offset: int) -> int:
    if hunk.is_insertion:
        # ``@@ -N,0`` inserts after line N; new files use N = 0.
        start = hunk.old_start + offset
        if start < 0 or start > len(lines):
            raise ContextMismatchError(
                f"insertion point line {hunk.old_start} is outside the file "
                f"({len(lines)} lines)",
                line=hunk.old_start,
                expected="",
                actual=None,
            )
        return start

    start = hunk.old_start - 1 + offset
    if start < 0:
        raise ContextMismatchError(
            f"hunk starts before line 1 (old start {hunk.old_start})",
            line=hunk.old_start,
            expected=hunk.lines[0].content if hunk.lines else "",
            actual=None,
        )
    return start


def _verify(
    lines: list[str],
    hunk: Hunk,
    start: int,
    threshold: float,
) -> list[str]:
    """Compare the hunk's old-side lines against the buffer.

    Returns fuzzy-match warnings; raises :class:`ContextMismatchError`
    on the first line below *threshold*.
    """
    warnings: list[str] = []
    idx = start

    for diff_line in hunk.lines:
        if not diff_line.is_old_side:
            continue

        line_no = idx + 1
        expected = diff_line.content.strip()

        if idx >= len(lines):
            raise ContextMismatchError(
                f"context mismatch at line {line_no}: expected "
                f"{diff_line.content!r} but the file has only {len(lines)} lines",
                line=line_no,
                expected=diff_line.content,
                actual=None,
            )

        actual = lines[idx].strip()
        if expected != actual:
            score = similarity(expected, actual)
            if score + _EPSILON >= threshold:
                warnings.append(f"fuzzy matched line {line_no}")
                logger.debug("[Patch] Fuzzy match at line %d (%.2f)",
                             line_no, score)
            else:
                kind = (ConflictKind.WHITESPACE
                        if "".join(expected.split()) == "".join(actual.split())
                        else ConflictKind.CONTEXT)
                raise ContextMismatchError(
                    f"context mismatch at line {line_no}: expected "
                    f"{diff_line.content!r}, found {lines[idx]!r} "
                    f"(similarity {score:.2f})",
                    line=line_no,
                    expected=diff_line.content,
                    actual=lines[idx],
                    kind=kind,
                )
        idx += 1

    return warnings

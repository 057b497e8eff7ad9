"""
Interactive hunk selection — review a patch hunk by hunk, then
regenerate a patch containing only the accepted hunks.

The regenerated text goes back through the normal parse/apply pipeline,
so nothing here knows how hunks are applied.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

from ..diff_display import format_hunk_view
from .diff_parser import parse_patch
from .models import FileDiff, HunkSelection

logger = logging.getLogger(__name__)


def parse_for_review(patch_text: str) -> list[HunkSelection]:
    """Wrap every hunk of *patch_text* in a selected :class:`HunkSelection`."""
    return _selections_for(parse_patch(patch_text))


def _selections_for(file_diffs: list[FileDiff]) -> list[HunkSelection]:
    selections: list[HunkSelection] = []
    for file_diff in file_diffs:
        for hunk in file_diff.hunks:
            selections.append(HunkSelection(
                id=f"hunk-{len(selections) + 1}",
                file_path=file_diff.file,
                hunk=hunk,
                file_diff=file_diff,
            ))
    return selections


def render_filtered(selections: list[HunkSelection],
                    file_diffs: list[FileDiff] | None = None) -> str:
    """Regenerate patch text from the selected hunks.

    Hunk headers and lines are emitted verbatim under their file's
    original header block. Files with no selected hunk are dropped.
    When *file_diffs* is given, its files without any hunks (empty
    creations, deletions, pure renames) are kept as-is.
    """
    by_file: dict[int, tuple[FileDiff, list]] = {}
    for sel in selections:
        entry = by_file.setdefault(id(sel.file_diff), (sel.file_diff, []))
        if sel.selected:
            entry[1].append(sel.hunk)

    order = list(file_diffs) if file_diffs is not None else [
        fd for fd, _ in by_file.values()
    ]

    out: list[str] = []
    for file_diff in order:
        if not file_diff.hunks:
            out.extend(file_diff.header_lines)
            continue
        entry = by_file.get(id(file_diff))
        if entry is None or not entry[1]:
            continue
        out.extend(file_diff.header_lines)
        for hunk in entry[1]:
            out.extend(hunk.render())

    return "\n".join(out) + "\n" if out else ""


class HunkSelector:
    """Cursor-based, single-threaded selection over a patch's hunks."""

    def __init__(self, selections: list[HunkSelection],
                 file_diffs: list[FileDiff] | None = None) -> None:
        self.selections = selections
        self._file_diffs = file_diffs
        self.index = 0

    @classmethod
    def from_patch(cls, patch_text: str) -> "HunkSelector":
        file_diffs = parse_patch(patch_text)
        return cls(_selections_for(file_diffs), file_diffs)

    @property
    def current(self) -> HunkSelection | None:
        if not self.selections:
            return None
        return self.selections[self.index]

    def _find(self, hunk_id: str) -> HunkSelection:
        for sel in self.selections:
            if sel.id == hunk_id:
                return sel
        raise KeyError(hunk_id)

    def toggle(self, hunk_id: str | None = None) -> bool:
        """Flip one hunk (the current one by default); returns its new state."""
        sel = self._find(hunk_id) if hunk_id else self.current
        if sel is None:
            return False
        sel.selected = not sel.selected
        return sel.selected

    def select_all(self) -> None:
        for sel in self.selections:
            sel.selected = True

    def deselect_all(self) -> None:
        for sel in self.selections:
            sel.selected = False

    def toggle_all(self) -> None:
        """Select everything, or deselect everything if all are selected."""
        if all(sel.selected for sel in self.selections):
            self.deselect_all()
        else:
            self.select_all()

    def next(self) -> None:
        if self.index < len(self.selections) - 1:
            self.index += 1

    def prev(self) -> None:
        if self.index > 0:
            self.index -= 1

    def summary(self) -> dict:
        """Counts of total/selected hunks and the files still affected."""
        affected: list[str] = []
        for sel in self.selections:
            if sel.selected and sel.file_path not in affected:
                affected.append(sel.file_path)
        return {
            "total_hunks": len(self.selections),
            "selected_hunks": sum(1 for s in self.selections if s.selected),
            "affected_files": affected,
        }

    def render_filtered(self) -> str:
        return render_filtered(self.selections, self._file_diffs)

    # ------------------------------------------------------------------
    # Console loop
    # ------------------------------------------------------------------

    def handle(self, command: str) -> bool:
        """Apply one textual command; returns ``False`` once finished."""
        cmd = command.strip().lower()
        if cmd in ("s", "space"):
            self.toggle()
        elif cmd == "n":
            self.next()
        elif cmd == "p":
            self.prev()
        elif cmd == "a":
            self.toggle_all()
        elif cmd == "q":
            return False
        else:
            raise ValueError(cmd)
        return True

    def run(self, input_stream: TextIO | None = None,
            output_stream: TextIO | None = None,
            color: bool = True) -> list[HunkSelection]:
        """Block on *input_stream* one command per line until ``q`` or EOF."""
        inp = input_stream or sys.stdin
        out = output_stream or sys.stdout

        if not self.selections:
            return self.selections

        out.write(format_hunk_view(self, color=color) + "\n")
        out.flush()

        for raw in inp:
            try:
                if not self.handle(raw):
                    break
            except ValueError:
                out.write("Unknown command. Use s, n, p, a, or q\n")
                continue
            out.write(format_hunk_view(self, color=color) + "\n")
            out.flush()

        summary = self.summary()
        out.write(f"Selected {summary['selected_hunks']} of "
                  f"{summary['total_hunks']} hunks for application\n")
        logger.info("[Patch] Hunk review finished: %d/%d selected",
                    summary["selected_hunks"], summary["total_hunks"])
        return self.selections

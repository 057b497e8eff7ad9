"""
Diff display — colored unified diffs, hunk review views and apply
summaries for the terminal.

Includes a Textual-based hunk reviewer that pauses execution so the user
can accept or skip each hunk before the patch is applied.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .editing.hunk_selector import HunkSelector
    from .editing.models import DiffResult

HELP_TEXT = "Commands: [s]elect/deselect • [n]ext • [p]rev • [a]ll • [q]uit"

_BOLD = "\033[1m"
_RED = "\033[31m"
_GREEN = "\033[32m"
_YELLOW = "\033[33m"
_CYAN = "\033[36m"
_DIM = "\033[2m"
_RESET = "\033[0m"


def _paint(text: str, code: str, color: bool) -> str:
    return f"{code}{text}{_RESET}" if color else text


def format_colored_diff(diff_text: str) -> str:
    """Add ANSI colors to a unified diff string.

    Green for additions (+), red for deletions (-), cyan for @@ hunks.
    """
    lines = diff_text.splitlines()
    colored: list[str] = []
    for line in lines:
        if line.startswith("+++") or line.startswith("---"):
            colored.append(f"{_BOLD}{line}{_RESET}")
        elif line.startswith("@@"):
            colored.append(f"{_CYAN}{line}{_RESET}")
        elif line.startswith("+"):
            colored.append(f"{_GREEN}{line}{_RESET}")
        elif line.startswith("-"):
            colored.append(f"{_RED}{line}{_RESET}")
        else:
            colored.append(line)
    return "\n".join(colored)


def format_hunk_view(selector: "HunkSelector", color: bool = True) -> str:
    """Render the selector's current hunk with its position and status."""
    sel = selector.current
    if sel is None:
        return "No hunks to review."

    total = len(selector.selections)
    status = (_paint("✓ SELECTED", _GREEN, color) if sel.selected
              else _paint("✗ SKIPPED", _RED, color))
    hunk_text = "\n".join(sel.hunk.render())

    parts = [
        _paint(f"Hunk {selector.index + 1} of {total}", _BOLD, color),
        f"File: {_paint(sel.file_path, _CYAN, color)}",
        f"Status: {status}",
        "",
        format_colored_diff(hunk_text) if color else hunk_text,
        "",
        _paint(HELP_TEXT, _DIM, color),
    ]
    return "\n".join(parts)


def format_result(result: "DiffResult", color: bool = True) -> str:
    """Summarize an apply result: counts, then conflicts and warnings."""
    lines: list[str] = []
    mode = " (dry run)" if result.dry_run else ""
    lines.append(_paint(
        f"Applied {len(result.applied)} file(s), "
        f"rejected {len(result.rejected)}{mode} via {result.strategy}",
        _BOLD, color,
    ))
    if result.fallback_reason:
        lines.append(_paint(f"  fallback: {result.fallback_reason}", _DIM, color))

    for path in result.applied:
        lines.append(f"  {_paint('+', _GREEN, color)} {path}")
    for path in result.rejected:
        lines.append(f"  {_paint('✘', _RED, color)} {path}")

    if result.conflicts:
        lines.append(_paint(f"Conflicts ({len(result.conflicts)}):", _YELLOW, color))
        for c in result.conflicts:
            lines.append(f"  [{c.kind.value}] {c.file}:{c.line} {c.message}")

    if result.warnings:
        lines.append(_paint(f"Warnings ({len(result.warnings)}):", _YELLOW, color))
        for w in result.warnings:
            lines.append(f"  - {w}")

    return "\n".join(lines)


# ══════════════════════════════════════════════════════════════════
#  Interactive Hunk Review — Textual TUI
# ══════════════════════════════════════════════════════════════════

def _format_rich_diff(diff_text: str) -> str:
    """Convert unified diff text to Rich markup for Textual display."""
    lines = diff_text.splitlines()
    markup_lines: list[str] = []
    for line in lines:
        # Escape Rich markup characters in the line content
        escaped = line.replace("[", "\\[")
        if line.startswith("+++") or line.startswith("---"):
            markup_lines.append(f"[bold white]{escaped}[/bold white]")
        elif line.startswith("@@"):
            markup_lines.append(f"[cyan]{escaped}[/cyan]")
        elif line.startswith("+"):
            markup_lines.append(f"[green]{escaped}[/green]")
        elif line.startswith("-"):
            markup_lines.append(f"[red]{escaped}[/red]")
        else:
            markup_lines.append(escaped)
    return "\n".join(markup_lines)


def review_hunks_tui(selector: "HunkSelector") -> list:
    """Launch a Textual app to toggle hunks; returns the selections."""
    from textual.app import App, ComposeResult
    from textual.binding import Binding
    from textual.containers import VerticalScroll
    from textual.widgets import Footer, Static

    class HunkReviewApp(App):
        """Step through hunks and accept or skip each one."""

        CSS = """
        Screen {
            background: $surface;
        }
        #title-bar {
            dock: top;
            height: 3;
            background: #1a1a2e;
            color: #e94560;
            text-align: center;
            padding: 1;
            text-style: bold;
        }
        #hunk-scroll {
            height: 1fr;
            margin: 1 2;
            border: round #444;
            padding: 1;
        }
        .file-header {
            color: #e9c46a;
            text-style: bold;
            margin: 0 0 1 0;
        }
        #summary {
            dock: bottom;
            height: 1;
            text-align: center;
            color: #888;
        }
        """

        BINDINGS = [
            Binding("s", "toggle", "Select/Skip"),
            Binding("space", "toggle", "Select/Skip", show=False),
            Binding("n", "next", "Next"),
            Binding("right", "next", "Next", show=False),
            Binding("p", "prev", "Prev"),
            Binding("left", "prev", "Prev", show=False),
            Binding("a", "toggle_all", "All"),
            Binding("q", "finish", "Done"),
            Binding("escape", "finish", "Done", show=False),
        ]

        def __init__(self, selector: "HunkSelector") -> None:
            super().__init__()
            self._selector = selector

        def compose(self) -> ComposeResult:
            yield Static("", id="title-bar")
            with VerticalScroll(id="hunk-scroll"):
                yield Static("", id="file-header", classes="file-header")
                yield Static("", id="hunk-body")
            yield Static("", id="summary")
            yield Footer()

        def on_mount(self) -> None:
            self._refresh_view()

        def _refresh_view(self) -> None:
            sel = self._selector.current
            total = len(self._selector.selections)
            self.query_one("#title-bar", Static).update(
                f" ━━  Hunk Review — {self._selector.index + 1} of {total}  ━━ "
            )
            status = ("[green]✓ SELECTED[/green]" if sel.selected
                      else "[red]✗ SKIPPED[/red]")
            self.query_one("#file-header", Static).update(
                f"[bold yellow]{sel.file_path}[/bold yellow]  {status}"
            )
            self.query_one("#hunk-body", Static).update(
                _format_rich_diff("\n".join(sel.hunk.render()))
            )
            summary = self._selector.summary()
            self.query_one("#summary", Static).update(
                f"  {summary['selected_hunks']}/{summary['total_hunks']} hunks "
                f"selected in {len(summary['affected_files'])} file(s)"
            )

        def action_toggle(self) -> None:
            self._selector.toggle()
            self._refresh_view()

        def action_next(self) -> None:
            self._selector.next()
            self._refresh_view()

        def action_prev(self) -> None:
            self._selector.prev()
            self._refresh_view()

        def action_toggle_all(self) -> None:
            self._selector.toggle_all()
            self._refresh_view()

        def action_finish(self) -> None:
            self.exit()

    if not selector.selections:
        return selector.selections

    app = HunkReviewApp(selector)
    app.run()
    return selector.selections

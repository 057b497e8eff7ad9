"""
Patch data model — files, hunks, lines and the outcome types produced
when a patch is applied.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class FileOperation(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    RENAME = "rename"


class LineKind(str, Enum):
    ADD = "add"
    REMOVE = "remove"
    CONTEXT = "context"


class ConflictKind(str, Enum):
    MERGE = "merge"
    CONTEXT = "context"
    WHITESPACE = "whitespace"


_PREFIXES = {LineKind.ADD: "+", LineKind.REMOVE: "-", LineKind.CONTEXT: " "}

NO_NEWLINE_MARKER = "\\ No newline at end of file"


@dataclass
class DiffLine:
    """One body line of a hunk."""
    kind: LineKind
    content: str
    old_line_number: int | None = None
    new_line_number: int | None = None

    @property
    def is_old_side(self) -> bool:
        return self.kind in (LineKind.REMOVE, LineKind.CONTEXT)

    @property
    def is_new_side(self) -> bool:
        return self.kind in (LineKind.ADD, LineKind.CONTEXT)

    def render(self) -> str:
        return _PREFIXES[self.kind] + self.content


@dataclass
class Hunk:
    """A contiguous change region anchored by its ``@@`` header."""
    old_start: int
    old_count: int
    new_start: int
    new_count: int
    context: str = ""
    lines: list[DiffLine] = field(default_factory=list)
    header: str = ""
    old_missing_newline: bool = False
    new_missing_newline: bool = False

    @property
    def removed_count(self) -> int:
        """Lines this hunk consumes from the target (context + remove)."""
        return sum(1 for l in self.lines if l.is_old_side)

    @property
    def added_count(self) -> int:
        """Lines this hunk produces (context + add)."""
        return sum(1 for l in self.lines if l.is_new_side)

    @property
    def is_insertion(self) -> bool:
        return self.removed_count == 0

    def count_mismatches(self) -> list[str]:
        """Describe disagreements between the header counts and the body."""
        problems: list[str] = []
        if self.removed_count != self.old_count:
            problems.append(
                f"hunk {self.header or self.old_start} declares {self.old_count} "
                f"old lines but has {self.removed_count}"
            )
        if self.added_count != self.new_count:
            problems.append(
                f"hunk {self.header or self.old_start} declares {self.new_count} "
                f"new lines but has {self.added_count}"
            )
        return problems

    def render(self) -> list[str]:
        """Return the hunk as patch text lines, header first."""
        out = [self.header or self._build_header()]
        last_old = max(
            (i for i, l in enumerate(self.lines) if l.is_old_side), default=-1
        )
        last_new = max(
            (i for i, l in enumerate(self.lines) if l.is_new_side), default=-1
        )
        for i, line in enumerate(self.lines):
            out.append(line.render())
            if ((i == last_old and self.old_missing_newline)
                    or (i == last_new and self.new_missing_newline)):
                out.append(NO_NEWLINE_MARKER)
        return out

    def _build_header(self) -> str:
        ctx = f" {self.context}" if self.context else ""
        return (f"@@ -{self.old_start},{self.old_count} "
                f"+{self.new_start},{self.new_count} @@{ctx}")


@dataclass
class FileDiff:
    """All hunks targeting a single file, plus the verbatim header block."""
    file: str
    old_path: str
    new_path: str
    operation: FileOperation = FileOperation.MODIFY
    hunks: list[Hunk] = field(default_factory=list)
    header_lines: list[str] = field(default_factory=list)


@dataclass
class ConflictInfo:
    file: str
    line: int
    kind: ConflictKind
    message: str
    original: str | None = None
    incoming: str | None = None


@dataclass
class ApplyOutcome:
    """Result of applying every hunk of one file."""
    success: bool = False
    conflicts: list[ConflictInfo] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    error: str | None = None


@dataclass
class DelegatedAttempt:
    """Outcome of handing the patch to ``git apply --3way``."""
    success: bool
    files: list[str] = field(default_factory=list)
    stderr: str = ""
    reason: str = ""


@dataclass
class ManualAttempt:
    """Outcome of the line-splicing fallback, keyed by file path."""
    outcomes: dict[str, ApplyOutcome] = field(default_factory=dict)


@dataclass
class DiffResult:
    """Whole-patch outcome."""
    applied: list[str] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)
    conflicts: list[ConflictInfo] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    delegated: DelegatedAttempt | None = None
    manual: ManualAttempt | None = None
    dry_run: bool = False
    # Absolute path -> content before the apply; None if it did not exist
    backups: dict[str, str | None] = field(default_factory=dict)

    @property
    def strategy(self) -> str:
        if self.delegated is not None and self.delegated.success:
            return "delegated"
        if self.manual is not None:
            return "manual"
        return "none"

    @property
    def fallback_reason(self) -> str:
        if self.delegated is None or self.delegated.success:
            return ""
        return self.delegated.reason

    @property
    def success(self) -> bool:
        return bool(self.applied) and not self.rejected


@dataclass
class HunkSelection:
    """A hunk wrapped for interactive review."""
    id: str
    file_path: str
    hunk: Hunk
    file_diff: FileDiff
    selected: bool = True

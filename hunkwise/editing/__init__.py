"""Unified-diff parsing and patch application."""

from .models import (
    FileOperation, LineKind, ConflictKind, DiffLine, Hunk, FileDiff,
    ConflictInfo, ApplyOutcome, DelegatedAttempt, ManualAttempt, DiffResult,
    HunkSelection,
)
from .diff_parser import DiffParser, parse_patch
from .similarity import edit_distance, similarity
from .hunk_applier import (
    PatchApplyError, ContextMismatchError, HunkResult, apply_hunk, apply_hunks,
)
from .patch_applier import PatchApplier, apply_patch
from .conflicts import extract_conflicts, find_conflicts, resolve_conflicts
from .hunk_selector import HunkSelector, parse_for_review, render_filtered
from .metrics import ensure_state_dir, log_apply_metric, read_apply_stats
from .rollback import (
    clear_backups, load_backups, restore_files, rollback, save_backups,
)

__all__ = [
    "FileOperation", "LineKind", "ConflictKind", "DiffLine", "Hunk", "FileDiff",
    "ConflictInfo", "ApplyOutcome", "DelegatedAttempt", "ManualAttempt",
    "DiffResult", "HunkSelection",
    "DiffParser", "parse_patch",
    "edit_distance", "similarity",
    "PatchApplyError", "ContextMismatchError", "HunkResult",
    "apply_hunk", "apply_hunks",
    "PatchApplier", "apply_patch",
    "extract_conflicts", "find_conflicts", "resolve_conflicts",
    "HunkSelector", "parse_for_review", "render_filtered",
    "ensure_state_dir", "log_apply_metric", "read_apply_stats",
    "rollback", "restore_files", "save_backups", "load_backups",
    "clear_backups",
]

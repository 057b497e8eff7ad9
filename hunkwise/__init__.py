"""
hunkwise — unified-diff patch engine for AI coding agents.

Public API for library usage::

    from hunkwise import apply_patch

    result = apply_patch(".", llm_patch_text)
    print(result.applied, result.rejected)
"""

from .editing import (
    apply_patch, parse_patch, parse_for_review, render_filtered,
    find_conflicts, rollback, DiffResult,
)

__all__ = [
    "apply_patch", "parse_patch", "parse_for_review", "render_filtered",
    "find_conflicts", "rollback", "DiffResult",
]

"""
Rollback — undo the file changes of an applied patch.

:meth:`PatchApplier.apply_patch` records each applied file's prior
content in :attr:`DiffResult.backups` (``None`` for a file the patch
created). Restoring writes that content back, or removes created files.
The index is left alone, so a three-way apply stays staged.
"""

from __future__ import annotations

import json
import logging
import os
import time

from .metrics import ensure_state_dir
from .models import DiffResult
from .patch_applier import PatchApplier

logger = logging.getLogger(__name__)

_ROLLBACK_FILE = "last_apply.json"


def _rollback_path(project_root: str | None, state_dir: str) -> str:
    return os.path.join(project_root or os.getcwd(), state_dir, _ROLLBACK_FILE)


def restore_files(backups: dict[str, str | None]) -> list[str]:
    """Put every path in *backups* back to its recorded state.

    Returns the paths restored; a path that cannot be written is logged
    and left out.
    """
    restored: list[str] = []
    for path, content in backups.items():
        try:
            if content is None:
                if os.path.exists(path):
                    os.unlink(path)
            else:
                PatchApplier._safe_write(path, content)
        except OSError as exc:
            logger.warning("[Patch] Could not roll back %s: %s", path, exc)
            continue
        restored.append(path)

    logger.info("[Patch] Rolled back %d of %d file(s)",
                len(restored), len(backups))
    return restored


def rollback(result: DiffResult) -> list[str]:
    """Undo *result*'s file changes; returns the paths restored."""
    return restore_files(result.backups)


def save_backups(backups: dict[str, str | None],
                 project_root: str | None = None,
                 state_dir: str = ".hunkwise") -> str:
    """Persist *backups* so a later process can roll them back."""
    path = _rollback_path(project_root, state_dir)
    ensure_state_dir(os.path.dirname(path))
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"timestamp": time.time(), "files": backups}, f)
    return path


def load_backups(project_root: str | None = None,
                 state_dir: str = ".hunkwise") -> dict[str, str | None]:
    """Read the saved backups; an absent file means nothing to undo.

    Raises ``ValueError`` if the file is not valid rollback data.
    """
    path = _rollback_path(project_root, state_dir)
    if not os.path.isfile(path):
        return {}
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    files = data.get("files") if isinstance(data, dict) else None
    if not isinstance(files, dict):
        raise ValueError(f"{path} does not hold rollback data")
    return files


def clear_backups(project_root: str | None = None,
                  state_dir: str = ".hunkwise") -> None:
    path = _rollback_path(project_root, state_dir)
    if os.path.isfile(path):
        os.unlink(path)

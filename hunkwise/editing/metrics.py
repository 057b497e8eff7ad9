"""
Apply metrics — one JSONL record per patch application, plus rolling
statistics over the most recent records.
"""

from __future__ import annotations

import json
import logging
import os
from collections import Counter
from datetime import datetime, timezone

logger = logging.getLogger(__name__)

_METRICS_DIR = ".hunkwise"
_METRICS_FILE = "apply_metrics.jsonl"

_EMPTY_STATS = {
    "total_applies": 0,
    "success_rate": 0.0,
    "delegated_rate": 0.0,
    "fallback_rate": 0.0,
    "avg_rejected": 0.0,
    "strategies": {},
}


def _metrics_path(project_root: str | None, metrics_dir: str) -> str:
    return os.path.join(project_root or os.getcwd(), metrics_dir, _METRICS_FILE)


def ensure_state_dir(directory: str) -> str:
    """Create *directory* with a catch-all ``.gitignore`` inside it.

    The state directory lives in the user's repository; the ignore file
    keeps it out of ``git status`` without touching the repo's own
    ignore rules.
    """
    os.makedirs(directory, exist_ok=True)
    ignore = os.path.join(directory, ".gitignore")
    if not os.path.exists(ignore):
        with open(ignore, "w", encoding="utf-8") as f:
            f.write("# Created by hunkwise\n*\n")
    return directory


def log_apply_metric(data: dict, project_root: str | None = None,
                     metrics_dir: str = _METRICS_DIR) -> None:
    """Append *data*, stamped with the current UTC time, to the log.

    Parameters
    ----------
    data:
        Outcome fields (strategy, fallback_reason, applied, rejected,
        conflicts).
    project_root:
        Directory holding *metrics_dir*. Defaults to CWD.
    """
    path = _metrics_path(project_root, metrics_dir)
    record = {"timestamp": datetime.now(timezone.utc).isoformat(), **data}

    try:
        ensure_state_dir(os.path.dirname(path))
        with open(path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record) + "\n")
    except OSError as exc:
        logger.warning("[Patch] Failed to write metrics: %s", exc)


def _load_records(path: str) -> list[dict]:
    """Read every parsable record; corrupt lines are skipped."""
    if not os.path.isfile(path):
        return []
    records: list[dict] = []
    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_lines = f.read().splitlines()
    except OSError as exc:
        logger.warning("[Patch] Failed to read metrics: %s", exc)
        return []
    for raw in raw_lines:
        if not raw.strip():
            continue
        try:
            records.append(json.loads(raw))
        except json.JSONDecodeError:
            logger.debug("[Patch] Skipping corrupt metrics line: %r", raw[:80])
    return records


def read_apply_stats(
    last_n: int = 50,
    project_root: str | None = None,
    metrics_dir: str = _METRICS_DIR,
) -> dict:
    """Summarize the last *last_n* applies.

    Rates are percentages; ``strategies`` maps each strategy name to its
    share of the window.
    """
    window = _load_records(_metrics_path(project_root, metrics_dir))[-last_n:]
    if not window:
        return dict(_EMPTY_STATS, strategies={})

    n = len(window)
    clean = [r for r in window
             if r.get("applied", 0) > 0 and r.get("rejected", 0) == 0]
    by_strategy = Counter(r.get("strategy", "unknown") for r in window)
    fell_back = [r for r in window if r.get("fallback_reason")]

    return {
        "total_applies": n,
        "success_rate": len(clean) / n * 100,
        "delegated_rate": by_strategy["delegated"] / n * 100,
        "fallback_rate": len(fell_back) / n * 100,
        "avg_rejected": sum(r.get("rejected", 0) for r in window) / n,
        "strategies": {
            name: count / n * 100 for name, count in by_strategy.most_common()
        },
    }

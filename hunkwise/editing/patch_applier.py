"""
Patch applier — applies a unified diff to a repository.

Application is two-tiered: the patch is first handed to
``git apply --3way``; if that is unavailable or fails, the patch is
parsed and every file is rewritten by splicing hunks into its lines.
Failures are scoped to a single file and collected into the
:class:`DiffResult`; one bad file never blocks the others.
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile

from .. import git_utils
from ..config import Config
from .conflicts import find_conflicts
from .diff_parser import DiffParser, parse_patch
from .hunk_applier import PatchApplyError, apply_hunks
from .metrics import log_apply_metric
from .models import (
    ApplyOutcome, ConflictInfo, ConflictKind, DelegatedAttempt, DiffResult,
    FileDiff, FileOperation, ManualAttempt,
)

logger = logging.getLogger(__name__)


class PatchApplier:
    """Apply unified diffs to the files under *repo_root*."""

    def __init__(
        self,
        repo_root: str = ".",
        config: Config | None = None,
        *,
        three_way: bool | None = None,
        strict_hunk_counts: bool | None = None,
        record_metrics: bool | None = None,
    ) -> None:
        cfg = config or Config()
        self._root = os.path.realpath(repo_root)
        self._threshold = cfg.FUZZY_THRESHOLD
        self._three_way = cfg.THREE_WAY if three_way is None else three_way
        self._whitespace_fix = cfg.WHITESPACE_FIX
        self._strict = (cfg.STRICT_HUNK_COUNTS if strict_hunk_counts is None
                        else strict_hunk_counts)
        self._git = cfg.GIT_BINARY
        self._metrics = cfg.METRICS if record_metrics is None else record_metrics
        self._metrics_dir = cfg.METRICS_DIR
        self._parser = DiffParser()

    def apply_patch(self, patch_text: str, dry_run: bool = False) -> DiffResult:
        """Apply *patch_text* and report which files were applied or rejected.

        Parameters
        ----------
        patch_text:
            Unified diff text, possibly wrapped in LLM prose.
        dry_run:
            Compute every file's outcome in memory without touching disk.
            The three-way merge is skipped in this mode.

        Returns
        -------
        DiffResult
            Never raises for per-file problems.
        """
        result = DiffResult(dry_run=dry_run)

        if not patch_text or not patch_text.strip():
            result.warnings.append("Empty patch: nothing to apply")
            return result

        file_diffs = parse_patch(patch_text)
        snapshot = {} if dry_run else self._snapshot(file_diffs)

        result.delegated = self._try_three_way(patch_text, dry_run)

        if result.delegated.success:
            result.applied = list(result.delegated.files)
            if result.delegated.stderr:
                result.warnings.append(f"git apply: {result.delegated.stderr}")
            result.conflicts.extend(find_conflicts(self._root, self._git))
            logger.info("[Patch] Three-way apply succeeded for %d file(s)",
                        len(result.applied))
        else:
            logger.warning(
                "[Patch] Three-way apply not used (%s), applying hunks manually",
                result.delegated.reason,
            )
            result.manual = self._apply_manually(file_diffs, result, dry_run)

        if not dry_run:
            result.backups = self._backups_for(file_diffs, snapshot,
                                               result.applied)

        if self._metrics and not dry_run:
            log_apply_metric(
                {
                    "strategy": result.strategy,
                    "fallback_reason": result.fallback_reason,
                    "applied": len(result.applied),
                    "rejected": len(result.rejected),
                    "conflicts": len(result.conflicts),
                },
                project_root=self._root,
                metrics_dir=self._metrics_dir,
            )

        return result

    # ------------------------------------------------------------------
    # Tier 1: git apply --3way
    # ------------------------------------------------------------------

    def _try_three_way(self, patch_text: str, dry_run: bool) -> DelegatedAttempt:
        if dry_run:
            return DelegatedAttempt(success=False, reason="dry run")
        if not self._three_way:
            return DelegatedAttempt(success=False,
                                    reason="three-way merge disabled")
        if not git_utils.is_git_repo(self._root, self._git):
            return DelegatedAttempt(success=False,
                                    reason="not a git repository")

        unmerged_before = set(git_utils.list_unmerged_files(self._root, self._git))

        fd, tmp_path = tempfile.mkstemp(prefix=".hunkwise_", suffix=".patch")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(patch_text if patch_text.endswith("\n")
                        else patch_text + "\n")
            ok, stderr = git_utils.apply_three_way(
                tmp_path, self._root, self._whitespace_fix, self._git,
            )
        finally:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass

        if ok:
            return DelegatedAttempt(
                success=True,
                files=git_utils.list_staged_files(self._root, self._git),
                stderr=stderr,
            )

        # --3way exits non-zero when it merged but left conflict markers;
        # the tree is already rewritten, so this is not a fallback case.
        unmerged = set(git_utils.list_unmerged_files(self._root, self._git))
        if unmerged - unmerged_before:
            staged = set(git_utils.list_staged_files(self._root, self._git))
            return DelegatedAttempt(
                success=True,
                files=sorted(staged | unmerged),
                stderr=stderr,
                reason="three-way merge left conflicts",
            )

        return DelegatedAttempt(success=False, stderr=stderr,
                                reason=stderr or "git apply failed")

    # ------------------------------------------------------------------
    # Tier 2: manual hunk application
    # ------------------------------------------------------------------

    def _apply_manually(self, file_diffs: list[FileDiff], result: DiffResult,
                        dry_run: bool) -> ManualAttempt:
        manual = ManualAttempt()

        if not file_diffs:
            result.warnings.append("No file diffs found in patch")
            logger.warning("[Patch] Patch contained no parsable file diffs")
            return manual

        count_problems = self._parser.validate(file_diffs)

        for file_diff in file_diffs:
            outcome = self._apply_file(
                file_diff, count_problems.get(file_diff.file, []), dry_run,
            )
            manual.outcomes[file_diff.file] = outcome
            result.conflicts.extend(outcome.conflicts)
            result.warnings.extend(
                f"{file_diff.file}: {w}" for w in outcome.warnings
            )
            if outcome.success:
                result.applied.append(file_diff.file)
            else:
                result.rejected.append(file_diff.file)
                result.warnings.append(
                    f"rejected {file_diff.file}: {outcome.error}"
                )

        logger.info("[Patch] Manual apply: %d applied, %d rejected",
                    len(result.applied), len(result.rejected))
        return manual

    def _apply_file(self, file_diff: FileDiff, count_problems: list[str],
                    dry_run: bool) -> ApplyOutcome:
        """Apply one file's hunks; writes only if every hunk succeeded."""
        outcome = ApplyOutcome()

        if count_problems:
            if self._strict:
                outcome.error = "hunk counts do not match headers: " + "; ".join(
                    count_problems)
                outcome.conflicts.append(ConflictInfo(
                    file=file_diff.file,
                    line=file_diff.hunks[0].old_start if file_diff.hunks else 0,
                    kind=ConflictKind.CONTEXT,
                    message=outcome.error,
                ))
                return outcome
            outcome.warnings.extend(count_problems)

        try:
            target = self._resolve(file_diff.file)

            if file_diff.operation == FileOperation.DELETE:
                if dry_run:
                    if not os.path.isfile(target):
                        raise PatchApplyError(f"{file_diff.file} does not exist")
                else:
                    os.unlink(target)
                outcome.success = True
                return outcome

            source = target
            if file_diff.operation == FileOperation.RENAME:
                source = self._resolve(file_diff.old_path)

            existed = os.path.isfile(source)
            if file_diff.operation == FileOperation.CREATE and existed:
                raise PatchApplyError(f"{file_diff.file} already exists")
            if existed:
                with open(source, "r", encoding="utf-8", newline="") as f:
                    original = f.read()
            else:
                original = ""
                if file_diff.operation != FileOperation.CREATE:
                    outcome.warnings.append(
                        f"{file_diff.old_path} does not exist; "
                        f"applying to an empty file"
                    )

            lines, newline, trailing = _split_lines(original)
            hunk_outcome = apply_hunks(
                lines, file_diff.hunks, self._threshold, file_diff.file,
            )
            outcome.warnings.extend(hunk_outcome.warnings)
            outcome.conflicts.extend(hunk_outcome.conflicts)
            if not hunk_outcome.success:
                outcome.error = hunk_outcome.error
                logger.warning("[Patch] Rejected %s: %s",
                               file_diff.file, hunk_outcome.error)
                return outcome

            if any(h.new_missing_newline for h in file_diff.hunks):
                trailing = False
            elif any(h.old_missing_newline for h in file_diff.hunks):
                trailing = True

            if not dry_run:
                self._safe_write(target, _join_lines(lines, newline, trailing))
                if source != target and existed:
                    os.unlink(source)
            outcome.success = True

        except (OSError, PatchApplyError, UnicodeDecodeError) as exc:
            outcome.success = False
            outcome.error = str(exc)
            logger.warning("[Patch] Failed to apply %s: %s", file_diff.file, exc)

        return outcome

    # ------------------------------------------------------------------
    # Rollback snapshots
    # ------------------------------------------------------------------

    def _snapshot(self, file_diffs: list[FileDiff]) -> dict[str, str | None]:
        """Capture the current content of every path the patch touches."""
        snapshot: dict[str, str | None] = {}
        for file_diff in file_diffs:
            for rel_path in (file_diff.file, file_diff.old_path):
                try:
                    path = self._resolve(rel_path)
                except PatchApplyError:
                    continue
                if path in snapshot:
                    continue
                if not os.path.isfile(path):
                    snapshot[path] = None
                    continue
                try:
                    with open(path, "r", encoding="utf-8", newline="") as f:
                        snapshot[path] = f.read()
                except (OSError, UnicodeDecodeError) as exc:
                    logger.warning("[Patch] No rollback copy of %s: %s",
                                   rel_path, exc)
        return snapshot

    def _backups_for(self, file_diffs: list[FileDiff],
                     snapshot: dict[str, str | None],
                     applied: list[str]) -> dict[str, str | None]:
        """Keep the snapshot entries of files that were actually applied."""
        done = set(applied)
        backups: dict[str, str | None] = {}
        for file_diff in file_diffs:
            if file_diff.file not in done:
                continue
            for rel_path in (file_diff.file, file_diff.old_path):
                try:
                    path = self._resolve(rel_path)
                except PatchApplyError:
                    continue
                if path in snapshot:
                    backups[path] = snapshot[path]
        return backups

    def _resolve(self, rel_path: str) -> str:
        """Resolve *rel_path* under the repository root."""
        full = os.path.realpath(os.path.join(self._root, rel_path))
        if full != self._root and not full.startswith(self._root + os.sep):
            raise PatchApplyError(
                f"{rel_path} resolves outside the repository root"
            )
        return full

    # ------------------------------------------------------------------
    # Atomic file write
    # ------------------------------------------------------------------

    @staticmethod
    def _safe_write(file_path: str, content: str) -> None:
        """Write content to file atomically via temp file + rename."""
        abs_path = os.path.abspath(file_path)
        os.makedirs(os.path.dirname(abs_path), exist_ok=True)
        tmp_path = abs_path + ".hunkwise_tmp"

        try:
            with open(tmp_path, "w", encoding="utf-8", newline="") as f:
                f.write(content)

            # On Windows, os.rename fails if destination exists
            if os.path.exists(abs_path):
                shutil.move(tmp_path, abs_path)
            else:
                os.rename(tmp_path, abs_path)
        except Exception:
            # Clean up temp file on failure
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise


def _split_lines(content: str) -> tuple[list[str], str, bool]:
    """Split *content* into ``(lines, newline, has_trailing_newline)``.

    Both ``\\n`` and ``\\r\\n`` end a line; *newline* is whichever is
    more common and is used for every line when the file is rejoined.
    """
    if not content:
        return [], "\n", True
    crlf = content.count("\r\n")
    newline = "\r\n" if crlf > content.count("\n") - crlf else "\n"
    trailing = content.endswith("\n")
    body = content[:-1] if trailing else content
    lines = [line[:-1] if line.endswith("\r") else line
             for line in body.split("\n")]
    return lines, newline, trailing


def _join_lines(lines: list[str], newline: str, trailing: bool) -> str:
    if not lines:
        return ""
    return newline.join(lines) + (newline if trailing else "")


def apply_patch(
    repo_root: str,
    patch_text: str,
    config: Config | None = None,
    dry_run: bool = False,
) -> DiffResult:
    """Apply *patch_text* to the repository at *repo_root*."""
    return PatchApplier(repo_root, config).apply_patch(patch_text, dry_run=dry_run)

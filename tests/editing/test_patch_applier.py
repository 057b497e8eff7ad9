"""Tests for the PatchApplier orchestrator."""

import json

import pytest

from hunkwise.config import Config
from hunkwise.editing.models import ConflictKind
from hunkwise.editing.patch_applier import PatchApplier, apply_patch


def _patch(*lines: str) -> str:
    return "\n".join(lines) + "\n"


SAMPLE_FILE = """\
import os
import sys

def authenticate_user(username, password):
    user = db.find(username)
    return user.check_password(password)

def helper():
    return 42
"""


@pytest.fixture
def applier(tmp_path):
    """Manual-tier applier rooted at tmp_path with metrics disabled."""
    return PatchApplier(str(tmp_path), Config(), three_way=False,
                        record_metrics=False)


class TestModify:
    def test_applies_generated_patch(self, tmp_path, applier, make_patch):
        (tmp_path / "src").mkdir()
        target = tmp_path / "src" / "auth.py"
        target.write_text(SAMPLE_FILE)
        new = SAMPLE_FILE.replace(
            "    user = db.find(username)\n",
            "    if not username or not password:\n"
            "        return False\n"
            "    user = db.find(username)\n",
        ).replace("    return 42\n", "    return 43\n")

        result = applier.apply_patch(make_patch("src/auth.py", SAMPLE_FILE, new))

        assert result.applied == ["src/auth.py"]
        assert result.rejected == []
        assert result.strategy == "manual"
        assert result.fallback_reason == "three-way merge disabled"
        assert target.read_text() == new

    def test_fuzzy_match_is_reported_as_warning(self, tmp_path, applier):
        (tmp_path / "a.py").write_text("value = compute(alpha)\nprint(value)\n")
        patch = _patch(
            "diff --git a/a.py b/a.py",
            "@@ -1,2 +1,2 @@",
            "-value = compute(alpah)",
            "+value = compute(beta)",
            " print(value)",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["a.py"]
        assert "a.py: fuzzy matched line 1" in result.warnings
        assert (tmp_path / "a.py").read_text() == "value = compute(beta)\nprint(value)\n"

    def test_missing_file_on_modify_warns(self, tmp_path, applier):
        patch = _patch(
            "diff --git a/notes.txt b/notes.txt",
            "@@ -0,0 +1 @@",
            "+hello",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["notes.txt"]
        assert any("does not exist" in w for w in result.warnings)
        assert (tmp_path / "notes.txt").read_text() == "hello\n"

    def test_missing_trailing_newline_preserved(self, tmp_path, applier):
        (tmp_path / "a.txt").write_text("a\nb")
        patch = _patch(
            "diff --git a/a.txt b/a.txt",
            "@@ -1,2 +1,2 @@",
            " a",
            "-b",
            "\\ No newline at end of file",
            "+B",
            "\\ No newline at end of file",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["a.txt"]
        assert (tmp_path / "a.txt").read_bytes() == b"a\nB"

    def test_crlf_line_endings_preserved(self, tmp_path, applier):
        (tmp_path / "win.txt").write_bytes(b"a\r\nb\r\nc\r\n")
        patch = _patch(
            "diff --git a/win.txt b/win.txt",
            "@@ -2 +2 @@",
            "-b",
            "+B",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["win.txt"]
        assert (tmp_path / "win.txt").read_bytes() == b"a\r\nB\r\nc\r\n"

    def test_mixed_line_endings_use_dominant(self, tmp_path, applier):
        (tmp_path / "mix.txt").write_bytes(b"a\r\nb\nc\r\n")
        patch = _patch(
            "diff --git a/mix.txt b/mix.txt",
            "@@ -1,3 +1,3 @@",
            " a",
            "-b",
            "+B",
            " c",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["mix.txt"]
        assert result.warnings == []
        assert (tmp_path / "mix.txt").read_bytes() == b"a\r\nB\r\nc\r\n"


class TestFileOperations:
    def test_create_with_parent_dirs(self, tmp_path, applier):
        patch = _patch(
            "diff --git a/pkg/sub/new.py b/pkg/sub/new.py",
            "new file mode 100644",
            "index 0000000..e69de29",
            "--- /dev/null",
            "+++ b/pkg/sub/new.py",
            "@@ -0,0 +1,2 @@",
            "+x = 1",
            "+y = 2",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["pkg/sub/new.py"]
        assert (tmp_path / "pkg" / "sub" / "new.py").read_text() == "x = 1\ny = 2\n"

    def test_create_over_existing_file_is_rejected(self, tmp_path, applier):
        (tmp_path / "new.py").write_text("keep me\n")
        patch = _patch(
            "diff --git a/new.py b/new.py",
            "new file mode 100644",
            "@@ -0,0 +1 @@",
            "+x = 1",
        )

        result = applier.apply_patch(patch)

        assert result.rejected == ["new.py"]
        assert (tmp_path / "new.py").read_text() == "keep me\n"

    def test_delete(self, tmp_path, applier):
        (tmp_path / "old.txt").write_text("a\nb\n")
        patch = _patch(
            "diff --git a/old.txt b/old.txt",
            "deleted file mode 100644",
            "--- a/old.txt",
            "+++ /dev/null",
            "@@ -1,2 +0,0 @@",
            "-a",
            "-b",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["old.txt"]
        assert not (tmp_path / "old.txt").exists()

    def test_delete_missing_file_is_rejected(self, applier):
        patch = _patch(
            "diff --git a/ghost.txt b/ghost.txt",
            "deleted file mode 100644",
        )

        result = applier.apply_patch(patch)

        assert result.rejected == ["ghost.txt"]
        assert result.applied == []

    def test_rename_with_edit(self, tmp_path, applier):
        (tmp_path / "util.py").write_text("def f():\n    return 1\n")
        patch = _patch(
            "diff --git a/util.py b/helpers.py",
            "similarity index 80%",
            "rename from util.py",
            "rename to helpers.py",
            "--- a/util.py",
            "+++ b/helpers.py",
            "@@ -1,2 +1,2 @@",
            " def f():",
            "-    return 1",
            "+    return 2",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["helpers.py"]
        assert not (tmp_path / "util.py").exists()
        assert (tmp_path / "helpers.py").read_text() == "def f():\n    return 2\n"


class TestBatchIndependence:
    def test_bad_file_does_not_block_good_file(self, tmp_path, applier):
        (tmp_path / "x.txt").write_text("one\ntwo\n")
        (tmp_path / "y.txt").write_text("alpha\nbeta\n")
        patch = _patch(
            "diff --git a/x.txt b/x.txt",
            "@@ -1,2 +1,2 @@",
            " one",
            "-two",
            "+TWO",
            "diff --git a/y.txt b/y.txt",
            "@@ -1,2 +1,2 @@",
            " something else entirely",
            "-beta",
            "+BETA",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["x.txt"]
        assert result.rejected == ["y.txt"]
        assert (tmp_path / "x.txt").read_text() == "one\nTWO\n"
        assert (tmp_path / "y.txt").read_text() == "alpha\nbeta\n"
        assert result.conflicts[0].file == "y.txt"
        assert result.conflicts[0].kind == ConflictKind.CONTEXT
        assert any(w.startswith("rejected y.txt") for w in result.warnings)

    def test_failed_later_hunk_discards_earlier_hunks(self, tmp_path, applier):
        original = "".join(f"row {i}\n" for i in range(1, 21))
        (tmp_path / "rows.txt").write_text(original)
        patch = _patch(
            "diff --git a/rows.txt b/rows.txt",
            "@@ -2 +2 @@",
            "-row 2",
            "+ROW 2",
            "@@ -15 +15 @@",
            "-not what is there",
            "+ROW 15",
        )

        result = applier.apply_patch(patch)

        assert result.rejected == ["rows.txt"]
        assert (tmp_path / "rows.txt").read_text() == original
        outcome = result.manual.outcomes["rows.txt"]
        assert outcome.success is False
        assert "context mismatch at line 15" in outcome.error

    def test_path_outside_root_is_rejected(self, tmp_path):
        root = tmp_path / "root"
        root.mkdir()
        applier = PatchApplier(str(root), Config(), three_way=False,
                               record_metrics=False)
        patch = _patch(
            "diff --git a/../evil.txt b/../evil.txt",
            "@@ -0,0 +1 @@",
            "+pwned",
        )

        result = applier.apply_patch(patch)

        assert result.rejected == ["../evil.txt"]
        assert not (tmp_path / "evil.txt").exists()


class TestEmptyInput:
    def test_empty_patch(self, applier):
        result = applier.apply_patch("")

        assert result.applied == []
        assert result.rejected == []
        assert result.strategy == "none"
        assert result.warnings

    def test_prose_only(self, applier):
        result = applier.apply_patch("Sorry, I can't help with that.")

        assert result.applied == []
        assert result.rejected == []
        assert "No file diffs found in patch" in result.warnings


class TestOptions:
    def test_dry_run_writes_nothing(self, tmp_path, make_patch):
        (tmp_path / "a.txt").write_text("a\nb\n")
        applier = PatchApplier(str(tmp_path), Config(), record_metrics=True)

        result = applier.apply_patch(
            make_patch("a.txt", "a\nb\n", "a\nB\n"), dry_run=True,
        )

        assert result.dry_run is True
        assert result.applied == ["a.txt"]
        assert result.fallback_reason == "dry run"
        assert (tmp_path / "a.txt").read_text() == "a\nb\n"
        assert not (tmp_path / ".hunkwise").exists()

    def test_lenient_counts_warn(self, tmp_path, applier):
        (tmp_path / "a.txt").write_text("a\nb\nc\n")
        patch = _patch(
            "diff --git a/a.txt b/a.txt",
            "@@ -1,3 +1,3 @@",
            "-a",
            "+A",
            " b",
        )

        result = applier.apply_patch(patch)

        assert result.applied == ["a.txt"]
        assert any("declares 3 old lines but has 2" in w for w in result.warnings)
        assert (tmp_path / "a.txt").read_text() == "A\nb\nc\n"

    def test_strict_counts_reject(self, tmp_path):
        (tmp_path / "a.txt").write_text("a\nb\nc\n")
        applier = PatchApplier(str(tmp_path), Config(), three_way=False,
                               strict_hunk_counts=True, record_metrics=False)
        patch = _patch(
            "diff --git a/a.txt b/a.txt",
            "@@ -1,3 +1,3 @@",
            "-a",
            "+A",
            " b",
        )

        result = applier.apply_patch(patch)

        assert result.rejected == ["a.txt"]
        assert (tmp_path / "a.txt").read_text() == "a\nb\nc\n"

    def test_metrics_recorded(self, tmp_path, make_patch):
        (tmp_path / "a.txt").write_text("a\n")

        result = apply_patch(
            str(tmp_path), make_patch("a.txt", "a\n", "b\n"),
            Config({"three_way": False}),
        )

        assert result.applied == ["a.txt"]
        path = tmp_path / ".hunkwise" / "apply_metrics.jsonl"
        entry = json.loads(path.read_text().splitlines()[-1])
        assert entry["strategy"] == "manual"
        assert entry["applied"] == 1
        assert entry["rejected"] == 0


class TestThreeWay:
    def test_delegated_apply(self, git_repo, git):
        (git_repo / "a.txt").write_text("one\ntwo\nthree\n")
        git(git_repo, "add", "a.txt")
        git(git_repo, "commit", "-q", "-m", "add a")
        (git_repo / "a.txt").write_text("one\n2\nthree\n")
        patch = git(git_repo, "diff").stdout
        git(git_repo, "checkout", "--", "a.txt")
        applier = PatchApplier(str(git_repo), Config(), record_metrics=False)

        result = applier.apply_patch(patch)

        assert result.strategy == "delegated"
        assert result.manual is None
        assert result.applied == ["a.txt"]
        assert result.conflicts == []
        assert (git_repo / "a.txt").read_text() == "one\n2\nthree\n"
        assert not list(git_repo.glob(".hunkwise_*.patch"))

    def test_falls_back_when_git_rejects(self, git_repo, git):
        (git_repo / "a.py").write_text("value = compute(alpha)\nprint(value)\n")
        git(git_repo, "add", "a.py")
        git(git_repo, "commit", "-q", "-m", "add a")
        patch = _patch(
            "diff --git a/a.py b/a.py",
            "--- a/a.py",
            "+++ b/a.py",
            "@@ -1,2 +1,2 @@",
            "-value = compute(alpah)",
            "+value = compute(beta)",
            " print(value)",
        )
        applier = PatchApplier(str(git_repo), Config(), record_metrics=False)

        result = applier.apply_patch(patch)

        assert result.strategy == "manual"
        assert result.delegated.success is False
        assert result.fallback_reason
        assert result.applied == ["a.py"]
        assert "a.py: fuzzy matched line 1" in result.warnings

    def test_conflicting_merge_is_reported_not_redone(self, git_repo, git):
        target = git_repo / "f.txt"
        target.write_text("one\ntwo\nthree\n")
        git(git_repo, "add", "f.txt")
        git(git_repo, "commit", "-q", "-m", "base")
        target.write_text("one\nTWO\nthree\n")
        patch = git(git_repo, "diff").stdout
        git(git_repo, "checkout", "--", "f.txt")
        target.write_text("one\n2\nthree\n")
        git(git_repo, "commit", "-q", "-am", "competing edit")
        applier = PatchApplier(str(git_repo), Config(), record_metrics=False)

        result = applier.apply_patch(patch)

        assert result.strategy == "delegated"
        assert result.manual is None
        assert result.delegated.reason == "three-way merge left conflicts"
        assert result.applied == ["f.txt"]
        assert len(result.conflicts) == 1
        conflict = result.conflicts[0]
        assert conflict.kind == ConflictKind.MERGE
        assert conflict.file == "f.txt"
        assert conflict.original == "2"
        assert conflict.incoming == "TWO"
        assert "<<<<<<<" in target.read_text()

    def test_not_a_repository(self, tmp_path, make_patch):
        (tmp_path / "a.txt").write_text("a\n")
        applier = PatchApplier(str(tmp_path), Config(), record_metrics=False)

        result = applier.apply_patch(make_patch("a.txt", "a\n", "b\n"))

        assert result.strategy == "manual"
        assert result.applied == ["a.txt"]

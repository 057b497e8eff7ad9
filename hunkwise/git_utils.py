"""
Git integration — three-way patch application and index queries used
by the patch applier and conflict extractor.
"""

from __future__ import annotations

import subprocess


def _run_git(args: list[str], cwd: str, git: str = "git") -> tuple[bool, str, str]:
    """Run a git command in *cwd* and return ``(success, stdout, stderr)``."""
    try:
        result = subprocess.run(
            [git, *args],
            cwd=cwd,
            capture_output=True,
            text=True,
            check=False,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except OSError as e:
        return False, "", str(e)


def _split_names(output: str) -> list[str]:
    return [line.strip() for line in output.splitlines() if line.strip()]


def is_git_repo(cwd: str, git: str = "git") -> bool:
    """Return ``True`` if *cwd* is inside a git work tree."""
    ok, out, _ = _run_git(["rev-parse", "--is-inside-work-tree"], cwd, git)
    return ok and out.strip() == "true"


def apply_three_way(patch_file: str, cwd: str, whitespace_fix: bool = True,
                    git: str = "git") -> tuple[bool, str]:
    """Run ``git apply --3way`` on *patch_file*.

    Returns ``(success, stderr)``.
    """
    args = ["apply", "--3way"]
    if whitespace_fix:
        args.append("--whitespace=fix")
    args.append(patch_file)
    ok, _, err = _run_git(args, cwd, git)
    return ok, err.strip()


def list_staged_files(cwd: str, git: str = "git") -> list[str]:
    """Return paths staged in the index relative to HEAD."""
    ok, out, _ = _run_git(["diff", "--name-only", "--cached"], cwd, git)
    return _split_names(out) if ok else []


def list_unmerged_files(cwd: str, git: str = "git") -> list[str]:
    """Return paths left in an unmerged (conflicted) state."""
    ok, out, _ = _run_git(
        ["diff", "--name-only", "--diff-filter=U"], cwd, git
    )
    return sorted(set(_split_names(out))) if ok else []

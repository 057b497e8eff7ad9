"""Shared fixtures: unified-diff builders and throwaway git repositories."""

import difflib
import shutil
import subprocess

import pytest


def _make_patch(path: str, old: str, new: str, context: int = 3) -> str:
    body = "".join(difflib.unified_diff(
        old.splitlines(keepends=True),
        new.splitlines(keepends=True),
        fromfile=f"a/{path}",
        tofile=f"b/{path}",
        n=context,
    ))
    return f"diff --git a/{path} b/{path}\n{body}"


@pytest.fixture
def make_patch():
    """Return a builder for ``diff --git`` patches of *old* → *new*."""
    return _make_patch


def _git(repo, *args):
    return subprocess.run(
        ["git", *args], cwd=repo, capture_output=True, text=True, check=False,
    )


@pytest.fixture
def git():
    """Run git in a given directory, returning the CompletedProcess."""
    return _git


@pytest.fixture
def git_repo(tmp_path):
    """An initialized repository with one empty commit."""
    if shutil.which("git") is None:
        pytest.skip("git is not installed")
    repo = tmp_path / "repo"
    repo.mkdir()
    _git(repo, "init", "-q")
    _git(repo, "config", "user.email", "dev@example.com")
    _git(repo, "config", "user.name", "Dev")
    _git(repo, "config", "commit.gpgsign", "false")
    _git(repo, "commit", "-q", "--allow-empty", "-m", "init")
    return repo

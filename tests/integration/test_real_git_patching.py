"""Patch and branch operations against real git repositories in tmp_path."""

import shutil
import subprocess
from pathlib import Path

import pytest

from cowpatch.core.context import CowpatchContext
from cowpatch.core.dev_branches import update_branch
from cowpatch.core.errors import MergeConflictError
from cowpatch.core.git.real import RealGit
from cowpatch.core.patch_engine import (
    apply_patch,
    get_applied_patches,
    remove_patch,
    reset_patches,
)

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(shutil.which("git") is None, reason="git binary not available"),
]


def _git(cwd: Path, *args: str) -> str:
    result = subprocess.run(
        ["git", *args], cwd=cwd, check=True, capture_output=True, text=True
    )
    return result.stdout.strip()


def _commit_file(repo: Path, path: str, content: str, message: str) -> None:
    (repo / path).write_text(content, encoding="utf-8")
    _git(repo, "add", path)
    _git(repo, "commit", "-q", "-m", message)


@pytest.fixture
def git_identity(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ("GIT_AUTHOR", "GIT_COMMITTER"):
        monkeypatch.setenv(f"{var}_NAME", "Test User")
        monkeypatch.setenv(f"{var}_EMAIL", "test@example.com")
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")


@pytest.fixture
def work_repo(tmp_path: Path, git_identity: None) -> Path:
    """A `work` branch on top of `dev`, with a `patches` remote carrying cow_greeting."""
    work = tmp_path / "work"
    work.mkdir()
    _git(work, "init", "-q")
    _git(work, "symbolic-ref", "HEAD", "refs/heads/dev")
    _commit_file(work, "README.md", "base\n", "Initial commit")

    patches = tmp_path / "patches"
    _git(tmp_path, "clone", "-q", str(work), str(patches))
    _git(patches, "checkout", "-q", "-b", "cow_greeting")
    _commit_file(patches, "greeting.txt", "hi\n", "Add greeting")
    _git(patches, "checkout", "-q", "-b", "cow_readme", "dev")
    _commit_file(patches, "README.md", "patched\n", "Patch readme")

    _git(work, "remote", "add", "patches", str(patches))
    _git(work, "fetch", "-q", "patches")
    _git(work, "checkout", "-q", "-b", "work")
    return work


def _context(work: Path) -> CowpatchContext:
    return CowpatchContext.for_test(git=RealGit(), cwd=work, repo_root=work)


def test_apply_then_remove_restores_base(work_repo: Path) -> None:
    ctx = _context(work_repo)
    base_sha = _git(work_repo, "rev-parse", "dev")

    result = apply_patch(ctx, "greeting")

    assert result.name == "patches/greeting"
    assert (work_repo / "greeting.txt").read_text(encoding="utf-8") == "hi\n"
    assert [patch.name for patch in get_applied_patches(ctx)] == ["patches/greeting"]
    assert "mod-base: " + base_sha in _git(work_repo, "log", "-1", "--format=%B")

    remove_patch(ctx, "patches/greeting")

    assert _git(work_repo, "rev-parse", "HEAD") == base_sha
    assert not (work_repo / "greeting.txt").exists()
    assert _git(work_repo, "branch", "--list", "temp-*") == ""
    assert get_applied_patches(ctx) == []


def test_conflicting_apply_leaves_branch_untouched(work_repo: Path) -> None:
    _commit_file(work_repo, "README.md", "local\n", "Local readme")
    head = _git(work_repo, "rev-parse", "HEAD")
    ctx = _context(work_repo)

    with pytest.raises(MergeConflictError):
        apply_patch(ctx, "readme")

    assert _git(work_repo, "rev-parse", "HEAD") == head
    assert _git(work_repo, "status", "--porcelain") == ""
    assert (work_repo / "README.md").read_text(encoding="utf-8") == "local\n"


def test_uncommitted_changes_survive_apply(work_repo: Path) -> None:
    (work_repo / "README.md").write_text("edited\n", encoding="utf-8")
    ctx = _context(work_repo)

    apply_patch(ctx, "greeting")

    assert (work_repo / "README.md").read_text(encoding="utf-8") == "edited\n"
    assert (work_repo / "greeting.txt").exists()
    assert _git(work_repo, "stash", "list") == ""


@pytest.fixture
def cloned_repo(tmp_path: Path, git_identity: None) -> tuple[Path, Path]:
    """An `upstream` repository and a `work` clone with a `feature` branch off dev."""
    upstream = tmp_path / "upstream"
    upstream.mkdir()
    _git(upstream, "init", "-q")
    _git(upstream, "symbolic-ref", "HEAD", "refs/heads/dev")
    _commit_file(upstream, "README.md", "base\n", "Initial commit")

    work = tmp_path / "work"
    _git(tmp_path, "clone", "-q", str(upstream), str(work))
    _git(work, "checkout", "-q", "-b", "feature")
    _commit_file(work, "feature.txt", "on\n", "Add feature")
    return upstream, work


def test_update_branch_replays_onto_fetched_base(cloned_repo: tuple[Path, Path]) -> None:
    upstream, work = cloned_repo
    _commit_file(upstream, "CHANGELOG.md", "1\n", "Upstream change")
    upstream_tip = _git(upstream, "rev-parse", "HEAD")

    result = update_branch(_context(work))

    assert result.replayed_commits == 1
    assert result.changed
    assert _git(work, "rev-parse", "HEAD~1") == upstream_tip
    assert _git(work, "log", "-1", "--format=%s") == "Add feature"
    assert (work / "CHANGELOG.md").exists()
    assert _git(work, "branch", "--list", "temp-*") == ""


def test_reset_fast_forwards_base_and_drops_commits(cloned_repo: tuple[Path, Path]) -> None:
    upstream, work = cloned_repo
    _commit_file(upstream, "CHANGELOG.md", "1\n", "Upstream change")
    upstream_tip = _git(upstream, "rev-parse", "HEAD")

    result = reset_patches(_context(work))

    assert result.base_tip == upstream_tip
    assert _git(work, "rev-parse", "dev") == upstream_tip
    assert _git(work, "rev-parse", "HEAD") == upstream_tip
    assert not (work / "feature.txt").exists()

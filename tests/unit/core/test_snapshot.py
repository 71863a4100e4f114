"""Tests for snapshot and rollback."""

import logging
from pathlib import Path

import pytest

from cowpatch.core.git.fake import FakeCommit, FakeGit
from cowpatch.core.snapshot import SnapshotManager, find_stash_index
from cowpatch.core.time.fake import FakeTime

ROOT = Path("/repo")
C0 = FakeCommit(sha="c0", parents=(), message="init", tree={"a.txt": "1\n"})
C1 = FakeCommit(sha="c1", parents=("c0",), message="two", tree={"a.txt": "2\n"})


def _git(**kwargs: object) -> FakeGit:
    return FakeGit(
        commits=[C0, C1],
        branches={"dev": "c0", "work": "c0", "other": "c1"},
        current_branch="work",
        **kwargs,  # type: ignore[arg-type]
    )


def test_clean_snapshot_does_not_stash() -> None:
    git = _git()
    manager = SnapshotManager(git, ROOT, FakeTime())

    snapshot = manager.snapshot()

    assert snapshot.branch == "work"
    assert snapshot.commit_hash == "c0"
    assert snapshot.stash_label is None
    assert git.stash_pushes == []


def test_dirty_snapshot_stashes_with_unique_label() -> None:
    git = _git(working_tree={"a.txt": "1\n", "notes.txt": "wip\n"})
    manager = SnapshotManager(git, ROOT, FakeTime())

    snapshot = manager.snapshot()

    # FakeTime starts at 2024-01-01T00:00:00Z
    assert snapshot.stash_label == "cowpatch-backup-1704067200000"
    assert git.stash_pushes == ["cowpatch-backup-1704067200000"]
    assert git.working_tree == {"a.txt": "1\n"}


def test_restore_returns_to_branch_commit_and_working_tree() -> None:
    """Restore undoes branch switches, resets and stashing."""
    git = _git(working_tree={"a.txt": "1\n", "notes.txt": "wip\n"})
    manager = SnapshotManager(git, ROOT, FakeTime())
    snapshot = manager.snapshot()

    git.reset_hard(ROOT, "c1")
    git.checkout_branch(ROOT, "other")

    manager.restore(snapshot)

    assert git.get_current_branch(ROOT) == "work"
    assert git.local_branches["work"] == "c0"
    assert git.working_tree == {"a.txt": "1\n", "notes.txt": "wip\n"}
    assert git.stashes == []


def test_restore_aborts_in_progress_cherry_pick() -> None:
    conflicting = FakeCommit(sha="x1", parents=("c0",), message="x", tree={"a.txt": "x\n"})
    git = FakeGit(
        commits=[C0, C1, conflicting],
        branches={"dev": "c0", "work": "c1"},
        current_branch="work",
    )
    manager = SnapshotManager(git, ROOT, FakeTime())
    snapshot = manager.snapshot()

    assert not git.cherry_pick(ROOT, "x1")
    assert git.is_cherry_pick_in_progress(ROOT)

    manager.restore(snapshot)

    assert not git.is_cherry_pick_in_progress(ROOT)
    assert git.list_conflicted_files(ROOT) == []
    assert git.working_tree == {"a.txt": "2\n"}


def test_restore_warns_when_stash_is_missing(caplog: pytest.LogCaptureFixture) -> None:
    git = _git(working_tree={"a.txt": "1\n", "notes.txt": "wip\n"})
    manager = SnapshotManager(git, ROOT, FakeTime())
    snapshot = manager.snapshot()
    git.stash_pop(ROOT, 0)
    git.reset_hard(ROOT, "HEAD")

    with caplog.at_level(logging.WARNING):
        manager.restore(snapshot)

    assert "not found" in caplog.text
    assert git.local_branches["work"] == "c0"


def test_discard_returns_stashed_work_on_new_head() -> None:
    """After success the stash is replayed onto the moved branch."""
    git = _git(working_tree={"a.txt": "1\n", "notes.txt": "wip\n"})
    manager = SnapshotManager(git, ROOT, FakeTime())
    snapshot = manager.snapshot()

    git.reset_hard(ROOT, "c1")
    manager.discard(snapshot)

    assert git.working_tree == {"a.txt": "2\n", "notes.txt": "wip\n"}
    assert git.stashes == []


def test_snapshot_is_consumed_once() -> None:
    git = _git()
    manager = SnapshotManager(git, ROOT, FakeTime())
    snapshot = manager.snapshot()
    manager.discard(snapshot)

    with pytest.raises(RuntimeError):
        manager.restore(snapshot)


def test_find_stash_index_matches_label_substring() -> None:
    lines = [
        "stash@{0}: On work: unrelated",
        "stash@{1}: On work: cowpatch-backup-42",
    ]

    assert find_stash_index(lines, "cowpatch-backup-42") == 1
    assert find_stash_index(lines, "cowpatch-backup-7") is None

"""Tests for the local cache mirror."""

import json
from pathlib import Path

import pytest

from cowpatch.core.errors import ConfigError
from cowpatch.core.git.fake import FakeGit
from cowpatch.core.local_state import (
    FileLocalStateStore,
    InMemoryLocalStateStore,
    LocalState,
    local_state_path,
    reconcile_local_state,
)


def test_state_path_lives_in_git_common_dir(tmp_path: Path) -> None:
    git = FakeGit(git_common_dir=tmp_path / "shared.git")

    assert local_state_path(git, tmp_path) == tmp_path / "shared.git" / "cowpatch" / "state.json"


def test_file_store_round_trip_uses_camel_case(tmp_path: Path) -> None:
    path = tmp_path / "cowpatch" / "state.json"
    store = FileLocalStateStore()

    store.save(path, LocalState(branch="work", applied_patches=["patches/a"]))

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "branch": "work",
        "appliedPatches": ["patches/a"],
    }
    assert store.load(path) == LocalState(branch="work", applied_patches=["patches/a"])


def test_file_store_missing_file_is_none(tmp_path: Path) -> None:
    assert FileLocalStateStore().load(tmp_path / "state.json") is None


def test_file_store_rejects_wrong_shape(tmp_path: Path) -> None:
    path = tmp_path / "state.json"
    path.write_text('{"appliedPatches": "patches/a"}', encoding="utf-8")

    with pytest.raises(ConfigError):
        FileLocalStateStore().load(path)


def test_reconcile_skips_write_when_cache_matches() -> None:
    path = Path("/repo/.git/cowpatch/state.json")
    current = LocalState(branch="work", applied_patches=["patches/a"])
    store = InMemoryLocalStateStore({path: current})

    result = reconcile_local_state(store, path, "work", ["patches/a"], current)

    assert result == current
    assert store.save_count == 0


def test_reconcile_overwrites_divergent_cache() -> None:
    """The commit graph wins over whatever the mirror says."""
    path = Path("/repo/.git/cowpatch/state.json")
    stale = LocalState(branch="old", applied_patches=["patches/gone"])
    store = InMemoryLocalStateStore({path: stale})

    result = reconcile_local_state(store, path, "work", ["patches/a", "patches/b"], stale)

    assert result == LocalState(branch="work", applied_patches=["patches/a", "patches/b"])
    assert store.states[path] == result
    assert store.save_count == 1

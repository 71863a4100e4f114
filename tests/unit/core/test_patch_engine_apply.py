"""Tests for applying patches with the fake commit graph."""

import pytest

from cowpatch.core.commit_metadata import decode, encode
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import (
    MergeConflictError,
    PatchNotFoundError,
    ProtectedBranchError,
    RepositoryError,
)
from cowpatch.core.git.fake import FakeCommit
from cowpatch.core.local_state import InMemoryLocalStateStore, LocalState
from cowpatch.core.lockfile.fake import FakeLockfileHandler
from cowpatch.core.patch_engine import (
    ModBaseSource,
    apply_patch,
    apply_patch_version,
    get_applied_patches,
    resolve_mod_base,
)
from cowpatch.core.port_state import PortState
from tests.fakes.graph import BASE_SHA, BASE_TREE, REPO_ROOT, build_patch_repo, published_message


def _context(repo, **kwargs) -> CowpatchContext:  # type: ignore[no-untyped-def]
    return CowpatchContext.for_test(git=repo.git, cwd=REPO_ROOT, **kwargs)


def test_apply_adds_one_patch_commit_with_metadata() -> None:
    """A clean apply ports the released commit and rewrites its message."""
    # Arrange
    repo = build_patch_repo(patches={"greeting": {"greeting.txt": "hi\n"}})
    ctx = _context(repo)

    # Act
    result = apply_patch(ctx, "greeting")

    # Assert
    assert result.name == "patches/greeting"
    assert not result.already_applied
    assert not result.used_conflict_fallback
    assert repo.git.working_tree == {**BASE_TREE, "greeting.txt": "hi\n"}

    head_message = repo.git.get_commit_message(REPO_ROOT, "HEAD")
    record = decode(head_message)
    assert record.name == "patches/greeting"
    assert record.version == "1.0.0"
    assert record.original_commit_hash == repo.patch_shas["greeting"]
    assert record.mod_base_hash == BASE_SHA
    assert record.current_base_hash == BASE_SHA
    assert result.commit_sha == repo.git.head_sha
    assert result.transitions == (
        PortState.IDLE,
        PortState.SNAPSHOTTED,
        PortState.CHERRY_PICKING,
        PortState.COMMITTING,
        PortState.COMMITTED,
    )


def test_apply_accepts_prefixed_and_namespaced_names() -> None:
    repo = build_patch_repo(patches={"a": {"a.txt": "A\n"}, "b": {"b.txt": "B\n"}})
    ctx = _context(repo)

    assert apply_patch(ctx, "cow_a").name == "patches/a"
    assert apply_patch(ctx, "patches/b").name == "patches/b"

    assert [patch.name for patch in get_applied_patches(ctx)] == ["patches/a", "patches/b"]


def test_apply_is_idempotent() -> None:
    """Applying an applied patch changes nothing."""
    repo = build_patch_repo(patches={"greeting": {"greeting.txt": "hi\n"}})
    ctx = _context(repo)
    apply_patch(ctx, "greeting")
    head = repo.git.head_sha
    commits = repo.git.commit_count()

    result = apply_patch(ctx, "patches/greeting")

    assert result.already_applied
    assert repo.git.head_sha == head
    assert repo.git.commit_count() == commits


def test_apply_missing_remote_branch_raises_and_leaves_branch_untouched() -> None:
    repo = build_patch_repo(patches={})
    ctx = _context(repo)

    with pytest.raises(PatchNotFoundError) as exc_info:
        apply_patch(ctx, "nope")

    assert exc_info.value.patch_name == "patches/nope"
    assert exc_info.value.repository == "patches"
    assert repo.git.head_sha == BASE_SHA


def test_apply_already_merged_branch_raises() -> None:
    """A patch branch with nothing beyond HEAD has no portable commit."""
    repo = build_patch_repo(extra_remote_branches={"patches/cow_merged": BASE_SHA})
    ctx = _context(repo)

    with pytest.raises(PatchNotFoundError):
        apply_patch(ctx, "merged")


def test_apply_requires_existing_remote() -> None:
    repo = build_patch_repo(patches={"a": {"a.txt": "A\n"}})
    ctx = _context(repo)

    with pytest.raises(RepositoryError):
        apply_patch(ctx, "elsewhere/a")


def test_apply_reports_applied_patch_whose_remote_is_gone() -> None:
    """The applied check runs before the remote lookup."""
    applied = FakeCommit(
        sha="f1",
        parents=(BASE_SHA,),
        message=encode("forks/x", version="1.0.0", original_hash="p-x"),
        tree={**BASE_TREE, "x.txt": "X\n"},
    )
    repo = build_patch_repo(work_commits=[applied])
    ctx = _context(repo)

    result = apply_patch(ctx, "forks/x")

    assert result.already_applied
    assert result.name == "forks/x"
    assert repo.git.head_sha == "f1"


def test_apply_version_ports_the_tagged_release() -> None:
    newer = FakeCommit(
        sha="p-a2",
        parents=("p-a",),
        message=published_message("a", "1.0.1"),
        tree={**BASE_TREE, "a.txt": "A2\n"},
    )
    repo = build_patch_repo(
        patches={"a": {"a.txt": "A\n"}},
        extra_commits=[newer],
        extra_remote_branches={"patches/cow_a": "p-a2"},
        remote_tags={"patches-a-v1.0.0": "p-a", "patches-a-v1.0.1": "p-a2"},
    )
    repo.git.fetch_all_tags(REPO_ROOT)
    ctx = _context(repo)

    result = apply_patch_version(ctx, "a", "1.0.0")

    assert result.name == "patches/a"
    assert repo.git.working_tree == {**BASE_TREE, "a.txt": "A\n"}
    record = decode(repo.git.get_commit_message(REPO_ROOT, "HEAD"))
    assert record.version == "1.0.0"
    assert record.original_commit_hash == "p-a"


def test_apply_version_without_tag_raises() -> None:
    repo = build_patch_repo(patches={"a": {"a.txt": "A\n"}})
    ctx = _context(repo)

    with pytest.raises(PatchNotFoundError, match="patches-a-v2.0.0"):
        apply_patch_version(ctx, "a", "2.0.0")

    assert repo.git.head_sha == BASE_SHA


def test_apply_refuses_protected_branch() -> None:
    repo = build_patch_repo(patches={"a": {"a.txt": "A\n"}}, current_branch="dev")
    ctx = _context(repo)

    with pytest.raises(ProtectedBranchError):
        apply_patch(ctx, "a")

    assert repo.git.local_branches["dev"] == BASE_SHA


def test_apply_conflict_rolls_back_to_snapshot() -> None:
    """A non-lockfile conflict leaves branch, HEAD and working tree unchanged."""
    # Arrange
    repo = build_patch_repo(
        patches={"b": {"README.md": "from b\n"}, "c": {"README.md": "from c\n"}}
    )
    ctx = _context(repo)
    apply_patch(ctx, "b")
    head_before = repo.git.head_sha
    tree_before = repo.git.working_tree

    # Act
    with pytest.raises(MergeConflictError) as exc_info:
        apply_patch(ctx, "c")

    # Assert
    assert exc_info.value.conflicted_paths == ("README.md",)
    assert repo.git.get_current_branch(REPO_ROOT) == "work"
    assert repo.git.head_sha == head_before
    assert repo.git.working_tree == tree_before
    assert repo.git.list_conflicted_files(REPO_ROOT) == []
    assert not repo.git.is_cherry_pick_in_progress(REPO_ROOT)


def test_apply_resolves_lockfile_conflicts_through_fallback() -> None:
    """Lockfile conflicts are handed to the handler and the result committed."""
    # Arrange
    repo = build_patch_repo(
        patches={
            "b": {"package.json": '{"b": 1}\n', "b.txt": "B\n"},
            "c": {"package.json": '{"c": 1}\n', "c.txt": "C\n"},
        }
    )
    lockfile = FakeLockfileHandler(resolvable_paths=frozenset({"package.json"}))
    ctx = _context(repo, lockfile=lockfile)
    apply_patch(ctx, "b")

    # Act
    result = apply_patch(ctx, "c")

    # Assert
    assert result.used_conflict_fallback
    assert PortState.RESOLVING_CONFLICTS in result.transitions
    assert lockfile.resolve_calls == [(["package.json"], repo.patch_shas["c"])]
    assert repo.git.working_tree["c.txt"] == "C\n"
    assert repo.git.working_tree["b.txt"] == "B\n"
    assert decode(repo.git.get_commit_message(REPO_ROOT, "HEAD")).name == "patches/c"
    assert [patch.name for patch in get_applied_patches(ctx)] == ["patches/b", "patches/c"]


def test_apply_keeps_uncommitted_work() -> None:
    repo = build_patch_repo(
        patches={"a": {"a.txt": "A\n"}},
        working_tree={**BASE_TREE, "notes.txt": "wip\n"},
    )
    ctx = _context(repo)

    apply_patch(ctx, "a")

    assert repo.git.working_tree == {**BASE_TREE, "a.txt": "A\n", "notes.txt": "wip\n"}
    assert repo.git.stashes == []


def test_apply_restores_uncommitted_work_on_failure() -> None:
    """A failed apply returns the branch and the stashed changes as they were."""
    local_tree = {**BASE_TREE, "README.md": "local\n"}
    repo = build_patch_repo(
        patches={"c": {"README.md": "c\n"}},
        work_commits=[
            FakeCommit(sha="w1", parents=(BASE_SHA,), message="local readme", tree=local_tree)
        ],
        working_tree={**local_tree, "notes.txt": "wip\n"},
    )
    ctx = _context(repo)

    with pytest.raises(MergeConflictError):
        apply_patch(ctx, "c")

    assert repo.git.head_sha == "w1"
    assert repo.git.working_tree == {**local_tree, "notes.txt": "wip\n"}
    assert repo.git.stashes == []


def test_apply_records_local_state_mirror() -> None:
    repo = build_patch_repo(patches={"a": {"a.txt": "A\n"}})
    store = InMemoryLocalStateStore()
    ctx = _context(repo, local_state=store)

    apply_patch(ctx, "a")

    assert store.states == {
        REPO_ROOT / ".git" / "cowpatch" / "state.json": LocalState(
            branch="work", applied_patches=["patches/a"]
        )
    }


def test_resolve_mod_base_tiers() -> None:
    """Metadata wins, then the first parent, then the current base."""
    repo = build_patch_repo(
        patches={"a": {"a.txt": "A\n"}},
        extra_commits=[FakeCommit(sha="orphan", parents=(), message="orphan")],
    )
    git = repo.git
    sha = repo.patch_shas["a"]
    message = git.get_commit_message(REPO_ROOT, sha)

    assert resolve_mod_base(git, REPO_ROOT, sha, message, "tip") == (
        BASE_SHA,
        ModBaseSource.METADATA,
    )
    assert resolve_mod_base(git, REPO_ROOT, sha, "Add a", "tip") == (
        BASE_SHA,
        ModBaseSource.FIRST_PARENT,
    )
    assert resolve_mod_base(git, REPO_ROOT, "orphan", "orphan", "tip") == (
        "tip",
        ModBaseSource.CURRENT_BASE,
    )

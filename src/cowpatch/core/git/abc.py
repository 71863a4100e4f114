"""High-level git operations interface.

This module provides a clean abstraction over git subprocess calls, making the
patch engine testable without a repository on disk.

Architecture:
- Git: Abstract base class defining the interface
- RealGit: Production implementation routed through cowpatch.core.subprocess
- FakeGit: In-memory commit graph for tests
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path


@dataclass(frozen=True)
class CommitInfo:
    """A commit hash together with its full message."""

    sha: str
    message: str


# ============================================================================
# Abstract Interface
# ============================================================================


class Git(ABC):
    """Abstract interface for git operations.

    All implementations (real and fake) must implement this interface.
    This interface contains ONLY runtime operations - no test setup methods.
    """

    # ------------------------------------------------------------------
    # Repository discovery
    # ------------------------------------------------------------------

    @abstractmethod
    def get_repository_root(self, cwd: Path) -> Path | None:
        """Get the top-level directory of the repository containing cwd.

        Returns:
            Repository root, or None if cwd is not inside a git repository
        """
        ...

    @abstractmethod
    def get_git_common_dir(self, cwd: Path) -> Path:
        """Get the common .git directory (shared across worktrees)."""
        ...

    # ------------------------------------------------------------------
    # Refs and history
    # ------------------------------------------------------------------

    @abstractmethod
    def get_current_branch(self, cwd: Path) -> str | None:
        """Get the currently checked-out branch, or None when HEAD is detached."""
        ...

    @abstractmethod
    def list_local_branches(self, cwd: Path) -> list[str]:
        """List all local branch names in the repository."""
        ...

    @abstractmethod
    def branch_exists(self, cwd: Path, branch: str) -> bool:
        """Check whether a local branch exists."""
        ...

    @abstractmethod
    def resolve_ref(self, cwd: Path, ref: str) -> str | None:
        """Resolve a ref to a full commit hash.

        Returns:
            Commit hash, or None if the ref does not exist
        """
        ...

    @abstractmethod
    def get_tree_hash(self, cwd: Path, ref: str) -> str:
        """Get the hash of the tree recorded by a commit."""
        ...

    @abstractmethod
    def get_commit_message(self, cwd: Path, ref: str) -> str:
        """Get the full message of a commit."""
        ...

    @abstractmethod
    def get_first_parent(self, cwd: Path, sha: str) -> str | None:
        """Get the first parent of a commit, or None for a root commit."""
        ...

    @abstractmethod
    def first_commit_not_in(self, cwd: Path, ref: str, exclude: str) -> str | None:
        """Find the tip of ref if it is not already reachable from exclude.

        This is the one-commit set difference `rev-list -n 1 <ref> ^<exclude>`.

        Returns:
            Commit hash, or None when ref is fully contained in exclude
        """
        ...

    @abstractmethod
    def list_commits(self, cwd: Path, base: str, head: str) -> list[CommitInfo]:
        """List commits in the range base..head, oldest first."""
        ...

    @abstractmethod
    def merge_base(self, cwd: Path, ref_a: str, ref_b: str) -> str | None:
        """Find the best common ancestor of two refs."""
        ...

    @abstractmethod
    def show_file(self, cwd: Path, ref: str, path: str) -> str | None:
        """Read a file as recorded at ref.

        Returns:
            File contents, or None if the file does not exist at ref
        """
        ...

    @abstractmethod
    def list_changed_files(self, cwd: Path, ref_a: str, ref_b: str) -> list[str]:
        """List paths whose contents differ between two commits."""
        ...

    # ------------------------------------------------------------------
    # Working tree
    # ------------------------------------------------------------------

    @abstractmethod
    def has_uncommitted_changes(self, cwd: Path) -> bool:
        """Check whether the working tree or index differs from HEAD."""
        ...

    @abstractmethod
    def list_conflicted_files(self, cwd: Path) -> list[str]:
        """List paths with unresolved merge conflicts."""
        ...

    @abstractmethod
    def stage_all(self, cwd: Path) -> None:
        """Stage every change in the working tree."""
        ...

    @abstractmethod
    def stage_paths(self, cwd: Path, paths: list[str]) -> None:
        """Stage specific paths, marking any conflicts on them as resolved."""
        ...

    @abstractmethod
    def checkout_branch(self, cwd: Path, branch: str) -> None:
        """Check out an existing local branch."""
        ...

    @abstractmethod
    def create_branch(self, cwd: Path, branch: str, start_point: str) -> None:
        """Create a local branch at start_point without checking it out."""
        ...

    @abstractmethod
    def delete_branch(self, cwd: Path, branch: str) -> None:
        """Force-delete a local branch."""
        ...

    @abstractmethod
    def force_branch(self, cwd: Path, branch: str, ref: str) -> None:
        """Move a local branch that is not checked out to ref."""
        ...

    @abstractmethod
    def reset_hard(self, cwd: Path, ref: str) -> None:
        """Hard-reset the current branch, index and working tree to ref."""
        ...

    # ------------------------------------------------------------------
    # Stash
    # ------------------------------------------------------------------

    @abstractmethod
    def stash_push(self, cwd: Path, message: str) -> None:
        """Stash uncommitted changes (including untracked files) under a message."""
        ...

    @abstractmethod
    def list_stashes(self, cwd: Path) -> list[str]:
        """List stash entries, newest first, one `stash@{N}: ...` line each."""
        ...

    @abstractmethod
    def stash_pop(self, cwd: Path, index: int) -> None:
        """Apply and drop the stash entry at index."""
        ...

    # ------------------------------------------------------------------
    # Commit creation
    # ------------------------------------------------------------------

    @abstractmethod
    def cherry_pick(self, cwd: Path, sha: str) -> bool:
        """Cherry-pick a commit onto HEAD.

        Returns:
            True if a new commit was created, False if git stopped (usually on
            conflicts). A stopped cherry-pick is left in progress.
        """
        ...

    @abstractmethod
    def cherry_pick_no_commit(self, cwd: Path, sha: str) -> bool:
        """Apply a commit's changes to the working tree without committing.

        Returns:
            True if the changes applied cleanly, False if paths are conflicted
        """
        ...

    @abstractmethod
    def is_cherry_pick_in_progress(self, cwd: Path) -> bool:
        """Check whether a stopped cherry-pick is waiting to be continued."""
        ...

    @abstractmethod
    def cherry_pick_abort(self, cwd: Path) -> None:
        """Abort an in-progress cherry-pick."""
        ...

    @abstractmethod
    def merge_squash(self, cwd: Path, ref: str) -> bool:
        """Squash-merge ref into the working tree without committing.

        Returns:
            True if the merge applied cleanly, False if paths are conflicted
        """
        ...

    @abstractmethod
    def commit(self, cwd: Path, message: str) -> None:
        """Commit staged changes with a message."""
        ...

    @abstractmethod
    def amend_commit_message(self, cwd: Path, message: str) -> None:
        """Replace the message of the HEAD commit."""
        ...

    # ------------------------------------------------------------------
    # Remotes and tags
    # ------------------------------------------------------------------

    @abstractmethod
    def list_remotes(self, cwd: Path) -> dict[str, str]:
        """Map every configured remote name to its fetch URL."""
        ...

    @abstractmethod
    def add_remote(self, cwd: Path, name: str, url: str) -> None:
        """Register a new remote."""
        ...

    @abstractmethod
    def remove_remote(self, cwd: Path, name: str) -> None:
        """Unregister a remote and its remote-tracking branches."""
        ...

    @abstractmethod
    def fetch(self, cwd: Path, remote: str, *, prune: bool = False) -> None:
        """Fetch a single remote."""
        ...

    @abstractmethod
    def fetch_all_tags(self, cwd: Path) -> None:
        """Fetch all remotes including every tag."""
        ...

    @abstractmethod
    def list_remote_branches(self, cwd: Path, remote: str) -> list[str]:
        """List remote-tracking branches of one remote as `remote/branch`."""
        ...

    @abstractmethod
    def list_tags(self, cwd: Path, pattern: str) -> list[str]:
        """List tags matching a glob pattern."""
        ...

    @abstractmethod
    def create_tag(self, cwd: Path, name: str, message: str) -> None:
        """Create an annotated tag at HEAD."""
        ...

    @abstractmethod
    def push(self, cwd: Path, remote: str, refspec: str, *, force: bool = False) -> None:
        """Push a branch or tag to a remote."""
        ...

    # ------------------------------------------------------------------
    # Repository-scoped configuration
    # ------------------------------------------------------------------

    @abstractmethod
    def get_config(self, cwd: Path, key: str) -> str | None:
        """Read a repository git config value, or None when unset."""
        ...

    @abstractmethod
    def set_config(self, cwd: Path, key: str, value: str) -> None:
        """Write a repository git config value."""
        ...

"""Repository state snapshot and rollback.

Git has no multi-command transactions. Every mutating multi-step operation
snapshots first and restores on any failure afterwards; this is the only
safety net between a failed apply/remove and a half-migrated branch.

Uncommitted work is stashed under a unique label and later located by label
substring, never by index, since other stash operations shift indices.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from cowpatch.core.branches import require_current_branch
from cowpatch.core.constants import STASH_LABEL_PREFIX
from cowpatch.core.errors import VcsCommandError
from cowpatch.core.git.abc import Git
from cowpatch.core.time.abc import Time, to_millis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GitStateSnapshot:
    """Branch, commit and optional stash label captured before a mutation."""

    branch: str
    commit_hash: str
    taken_at: datetime
    stash_label: str | None = None


def find_stash_index(stash_lines: list[str], label: str) -> int | None:
    """Locate a stash entry by label substring.

    Args:
        stash_lines: Output lines of `git stash list`, newest first
        label: Label passed to `git stash push -m`

    Returns:
        Index N of the matching `stash@{N}`, or None if absent
    """
    for index, line in enumerate(stash_lines):
        if label in line:
            return index
    return None


class SnapshotManager:
    """Takes, restores and discards GitStateSnapshots for one repository.

    Each snapshot is consumed exactly once, by restore() or discard().
    """

    def __init__(self, git: Git, repo_root: Path, time: Time) -> None:
        self._git = git
        self._repo_root = repo_root
        self._time = time
        self._consumed: set[GitStateSnapshot] = set()

    def snapshot(self) -> GitStateSnapshot:
        """Record the current branch and commit, stashing uncommitted changes."""
        branch = require_current_branch(self._git, self._repo_root)
        commit_hash = self._git.resolve_ref(self._repo_root, "HEAD")
        if commit_hash is None:
            raise VcsCommandError(["git", "rev-parse", "HEAD"], "resolve HEAD", 128)
        taken_at = self._time.now()

        stash_label: str | None = None
        if self._git.has_uncommitted_changes(self._repo_root):
            stash_label = f"{STASH_LABEL_PREFIX}{to_millis(taken_at)}"
            self._git.stash_push(self._repo_root, stash_label)
            logger.debug("stashed uncommitted changes as %s", stash_label)

        snapshot = GitStateSnapshot(
            branch=branch,
            commit_hash=commit_hash,
            taken_at=taken_at,
            stash_label=stash_label,
        )
        logger.debug("snapshot taken: %s", snapshot)
        return snapshot

    def restore(self, snapshot: GitStateSnapshot) -> None:
        """Return the repository to the snapshotted branch, commit and working tree.

        A missing stash entry is logged as a warning rather than raised; the
        branch and commit are already restored at that point.

        Raises:
            RuntimeError: If the snapshot was already restored or discarded
        """
        self._consume(snapshot)
        logger.debug("restoring snapshot: %s", snapshot)

        if self._git.is_cherry_pick_in_progress(self._repo_root):
            self._git.cherry_pick_abort(self._repo_root)
        self._git.reset_hard(self._repo_root, "HEAD")
        if self._git.get_current_branch(self._repo_root) != snapshot.branch:
            self._git.checkout_branch(self._repo_root, snapshot.branch)
        self._git.reset_hard(self._repo_root, snapshot.commit_hash)

        if snapshot.stash_label is not None:
            self._pop_stash(snapshot.stash_label)

    def discard(self, snapshot: GitStateSnapshot) -> None:
        """Abandon a snapshot after success, returning stashed work to the tree.

        If the stash no longer applies cleanly on the new HEAD it stays in the
        stash list and a warning names its label.
        """
        self._consume(snapshot)
        if snapshot.stash_label is None:
            return
        try:
            self._pop_stash(snapshot.stash_label)
        except VcsCommandError as e:
            logger.warning(
                "Could not re-apply stashed changes %s: %s. They remain in `git stash list`.",
                snapshot.stash_label,
                e.stderr or e,
            )

    def _pop_stash(self, label: str) -> None:
        index = find_stash_index(self._git.list_stashes(self._repo_root), label)
        if index is None:
            logger.warning("Stash %s not found; uncommitted changes were not restored", label)
            return
        self._git.stash_pop(self._repo_root, index)

    def _consume(self, snapshot: GitStateSnapshot) -> None:
        if snapshot in self._consumed:
            raise RuntimeError(f"Snapshot already consumed: {snapshot}")
        self._consumed.add(snapshot)

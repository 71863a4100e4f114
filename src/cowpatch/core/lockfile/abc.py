"""Dependency lockfile conflict handling interface.

Lockfile conflicts are the one class of conflict the patch engine resolves
automatically. Everything else fails the port and triggers rollback.
"""

from abc import ABC, abstractmethod
from pathlib import Path

from cowpatch.core.git.abc import Git


class LockfileHandler(ABC):
    """Abstract interface for resolving dependency manifest conflicts."""

    @abstractmethod
    def resolve_conflicts(
        self,
        git: Git,
        repo_root: Path,
        conflicted: list[str],
        source_commit: str | None,
    ) -> list[str]:
        """Resolve and stage conflicts on lockfile-managed paths.

        Args:
            git: Git operations for reading each side and staging results
            repo_root: Repository root
            conflicted: Every currently conflicted path
            source_commit: Commit being ported, used when git no longer
                records the incoming side (non-committing cherry-pick)

        Returns:
            The subset of conflicted paths that were resolved and staged

        Raises:
            CommandError: If lockfile regeneration fails
        """
        ...

    @abstractmethod
    def reconcile(self, git: Git, repo_root: Path) -> list[str]:
        """Resolve any lockfile conflicts still present after a full replay.

        Returns:
            Paths that were resolved (empty when the tree had none)
        """
        ...

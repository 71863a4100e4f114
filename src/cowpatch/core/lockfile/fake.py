"""Fake lockfile handler for testing."""

from pathlib import Path

from cowpatch.core.git.abc import Git
from cowpatch.core.lockfile.abc import LockfileHandler


class FakeLockfileHandler(LockfileHandler):
    """Resolves a configured set of paths by staging them.

    This class has NO public setup methods. All state is provided via constructor
    or captured during execution.
    """

    def __init__(self, resolvable_paths: frozenset[str] = frozenset()) -> None:
        self._resolvable_paths = resolvable_paths
        self._resolve_calls: list[tuple[list[str], str | None]] = []
        self._reconcile_calls = 0

    @property
    def resolve_calls(self) -> list[tuple[list[str], str | None]]:
        """(conflicted paths, source commit) for each resolve_conflicts() call."""
        return list(self._resolve_calls)

    @property
    def reconcile_calls(self) -> int:
        return self._reconcile_calls

    def resolve_conflicts(
        self,
        git: Git,
        repo_root: Path,
        conflicted: list[str],
        source_commit: str | None,
    ) -> list[str]:
        self._resolve_calls.append((list(conflicted), source_commit))
        handled = [path for path in conflicted if path in self._resolvable_paths]
        if handled:
            git.stage_paths(repo_root, handled)
        return handled

    def reconcile(self, git: Git, repo_root: Path) -> list[str]:
        self._reconcile_calls += 1
        conflicted = git.list_conflicted_files(repo_root)
        if not conflicted:
            return []
        return self.resolve_conflicts(git, repo_root, conflicted, None)

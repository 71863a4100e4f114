"""Local cache mirror of the applied patch set.

The commit graph between the base branch and HEAD is the ledger of applied
patches. This file only mirrors it for fast listing, and is rewritten from the
graph whenever the two disagree. It lives inside the git directory so it never
shows up as a working tree change.
"""

import json
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cowpatch.core.constants import STATE_DIR_NAME, STATE_FILE_NAME
from cowpatch.core.errors import ConfigError
from cowpatch.core.git.abc import Git


class LocalState(BaseModel):
    """Serialized form: `{"branch": ..., "appliedPatches": [...]}`."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    branch: str
    applied_patches: list[str] = Field(default_factory=list, alias="appliedPatches")


def local_state_path(git: Git, repo_root: Path) -> Path:
    return git.get_git_common_dir(repo_root) / STATE_DIR_NAME / STATE_FILE_NAME


class LocalStateStore(ABC):
    """Abstract persistence for LocalState."""

    @abstractmethod
    def load(self, path: Path) -> LocalState | None:
        """Load the mirror.

        Returns:
            The stored state, or None if nothing is stored yet

        Raises:
            ConfigError: If the stored data is malformed
        """
        ...

    @abstractmethod
    def save(self, path: Path, state: LocalState) -> None:
        """Persist the mirror."""
        ...


class FileLocalStateStore(LocalStateStore):
    """Production implementation storing JSON on disk."""

    def load(self, path: Path) -> LocalState | None:
        if not path.exists():
            return None
        try:
            return LocalState.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            raise ConfigError(path, str(e)) from e

    def save(self, path: Path, state: LocalState) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        data = state.model_dump(mode="json", by_alias=True)
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


class InMemoryLocalStateStore(LocalStateStore):
    """Test implementation keyed by path."""

    def __init__(self, states: dict[Path, LocalState] | None = None) -> None:
        self._states = dict(states or {})
        self._save_count = 0

    @property
    def states(self) -> dict[Path, LocalState]:
        return dict(self._states)

    @property
    def save_count(self) -> int:
        return self._save_count

    def load(self, path: Path) -> LocalState | None:
        return self._states.get(path)

    def save(self, path: Path, state: LocalState) -> None:
        self._states[path] = state
        self._save_count += 1


def reconcile_local_state(
    store: LocalStateStore,
    path: Path,
    branch: str,
    applied_names: list[str],
    cached: LocalState | None = None,
) -> LocalState:
    """Rewrite the mirror to match the names derived from the commit graph.

    Args:
        store: Where the mirror lives
        path: Mirror file path
        branch: Current working branch
        applied_names: Applied patch names from the commit graph, oldest first
        cached: Previously loaded mirror; when it already matches, nothing is written

    Returns:
        The state now stored
    """
    truth = LocalState(branch=branch, applied_patches=list(applied_names))
    if cached == truth:
        return cached
    store.save(path, truth)
    return truth

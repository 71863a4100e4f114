"""Application context with dependency injection."""

from dataclasses import dataclass
from pathlib import Path

from cowpatch.core.errors import RepositoryError
from cowpatch.core.git.abc import Git
from cowpatch.core.git.real import RealGit
from cowpatch.core.global_config import (
    ConfigStore,
    FilesystemConfigStore,
    GlobalConfig,
    InMemoryConfigStore,
)
from cowpatch.core.local_state import (
    FileLocalStateStore,
    InMemoryLocalStateStore,
    LocalStateStore,
)
from cowpatch.core.lockfile.abc import LockfileHandler
from cowpatch.core.lockfile.real import NpmLockfileHandler
from cowpatch.core.time.abc import Time
from cowpatch.core.time.real import RealTime
from cowpatch.core.verified.abc import VerifiedRepositories
from cowpatch.core.verified.real import GhVerifiedRepositories


@dataclass(frozen=True)
class CowpatchContext:
    """Immutable context holding all dependencies for cowpatch operations.

    Created once at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.

    Note: global_config is loaded eagerly; a malformed config file fails the
    invocation before any git command runs.
    """

    git: Git
    lockfile: LockfileHandler
    verified: VerifiedRepositories
    local_state: LocalStateStore
    config_store: ConfigStore
    global_config: GlobalConfig
    time: Time
    cwd: Path
    repo_root: Path | None

    def require_repo_root(self) -> Path:
        """Get the repository root, failing outside a git repository.

        Raises:
            RepositoryError: If cwd is not inside a git repository
        """
        if self.repo_root is None:
            raise RepositoryError(f"Not inside a git repository: {self.cwd}")
        return self.repo_root

    @staticmethod
    def for_test(
        git: Git | None = None,
        lockfile: LockfileHandler | None = None,
        verified: VerifiedRepositories | None = None,
        local_state: LocalStateStore | None = None,
        config_store: ConfigStore | None = None,
        global_config: GlobalConfig | None = None,
        time: Time | None = None,
        cwd: Path | None = None,
        repo_root: Path | None = None,
    ) -> "CowpatchContext":
        """Create test context with optional pre-configured implementations.

        Any dependency left as None is replaced with its fake or in-memory
        counterpart, so tests never touch the filesystem, the clock or gh by
        accident.

        Args:
            git: Optional Git implementation. If None, creates an empty FakeGit.
            lockfile: Optional LockfileHandler. If None, creates a FakeLockfileHandler
                that resolves nothing.
            verified: Optional VerifiedRepositories. If None, nothing is verified.
            local_state: Optional LocalStateStore. If None, stores in memory.
            config_store: Optional ConfigStore. If None, stores in memory.
            global_config: Optional GlobalConfig. If None, uses defaults.
            time: Optional Time. If None, uses FakeTime.
            cwd: Current working directory. If None, uses a sentinel test path.
            repo_root: Repository root. If None, uses cwd.

        Returns:
            CowpatchContext configured with the provided values and test defaults
        """
        from cowpatch.core.git.fake import FakeGit
        from cowpatch.core.lockfile.fake import FakeLockfileHandler
        from cowpatch.core.time.fake import FakeTime
        from cowpatch.core.verified.fake import FakeVerifiedRepositories

        resolved_cwd = cwd if cwd is not None else Path("/test/repo")
        resolved_config_store = config_store if config_store is not None else InMemoryConfigStore()

        return CowpatchContext(
            git=git if git is not None else FakeGit(),
            lockfile=lockfile if lockfile is not None else FakeLockfileHandler(),
            verified=verified if verified is not None else FakeVerifiedRepositories(),
            local_state=local_state if local_state is not None else InMemoryLocalStateStore(),
            config_store=resolved_config_store,
            global_config=(
                global_config if global_config is not None else resolved_config_store.load()
            ),
            time=time if time is not None else FakeTime(),
            cwd=resolved_cwd,
            repo_root=repo_root if repo_root is not None else resolved_cwd,
        )


def create_context(cwd: Path | None = None) -> CowpatchContext:
    """Create production context with real implementations.

    Called once at CLI entry point to create the context for the entire
    command execution.

    Args:
        cwd: Working directory; defaults to the process working directory

    Returns:
        CowpatchContext with real implementations

    Raises:
        ConfigError: If ~/.cowpatch/config.toml is malformed
    """
    resolved_cwd = cwd if cwd is not None else Path.cwd()
    git = RealGit()
    config_store = FilesystemConfigStore()
    global_config = config_store.load()

    return CowpatchContext(
        git=git,
        lockfile=NpmLockfileHandler(),
        verified=GhVerifiedRepositories(global_config.verified_source),
        local_state=FileLocalStateStore(),
        config_store=config_store,
        global_config=global_config,
        time=RealTime(),
        cwd=resolved_cwd,
        repo_root=git.get_repository_root(resolved_cwd),
    )

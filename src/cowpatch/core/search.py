"""Search published patches across every registered repository.

Each remote is refreshed and listed independently; this is read-only with
respect to the working tree and index, so remotes are queried concurrently.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

from cowpatch.core.constants import BRANCH_PREFIX
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import VcsCommandError
from cowpatch.core.git.abc import Git
from cowpatch.core.patch_names import strip_branch_prefix
from cowpatch.core.repositories import Repository, list_repositories

logger = logging.getLogger(__name__)

MAX_WORKERS = 8

# Release backups are pushed as cow_<repo>_<patch>_v<version>
_BACKUP_BRANCH_RE = re.compile(rf"^{BRANCH_PREFIX}.+_.+_v\d")


@dataclass(frozen=True)
class PublishedPatch:
    repository: str
    name: str
    verified: bool

    @property
    def namespaced_name(self) -> str:
        return f"{self.repository}/{self.name}"


def is_backup_branch(branch: str) -> bool:
    return _BACKUP_BRANCH_RE.match(branch) is not None


def _patches_on_remote(
    git: Git, repo_root: Path, repository: Repository, term: str
) -> list[PublishedPatch]:
    try:
        git.fetch(repo_root, repository.name, prune=True)
    except VcsCommandError as e:
        logger.warning("Skipping %s: %s", repository.name, e.stderr or e)
        return []

    prefix = f"{repository.name}/"
    found: list[PublishedPatch] = []
    for ref in git.list_remote_branches(repo_root, repository.name):
        branch = ref[len(prefix) :] if ref.startswith(prefix) else ref
        if not branch.startswith(BRANCH_PREFIX) or is_backup_branch(branch):
            continue
        name = strip_branch_prefix(branch)
        if term and term.lower() not in name.lower():
            continue
        found.append(
            PublishedPatch(repository=repository.name, name=name, verified=repository.verified)
        )
    return found


def search_patches(ctx: CowpatchContext, term: str = "") -> list[PublishedPatch]:
    """Find patch branches on every remote whose name contains term.

    Unreachable remotes are skipped with a warning.

    Returns:
        Matches sorted by (repository, name)
    """
    repo_root = ctx.require_repo_root()
    repositories = list_repositories(ctx)
    if not repositories:
        return []

    with ThreadPoolExecutor(max_workers=min(MAX_WORKERS, len(repositories))) as pool:
        per_remote = list(
            pool.map(
                lambda repository: _patches_on_remote(ctx.git, repo_root, repository, term),
                repositories,
            )
        )

    results = [patch for patches in per_remote for patch in patches]
    return sorted(results, key=lambda patch: (patch.repository, patch.name))

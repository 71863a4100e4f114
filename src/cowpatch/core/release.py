"""Release a working branch as a new version of a patch.

A release squashes the working branch onto the base tip as a single annotated
commit on `cow_<patch>`, tags it `<repo>-<patch>-v<version>` and pushes both to
the target repository. A previous release branch is kept as
`cow_<repo>_<patch>_v<version>` before being reset.
"""

import logging
from dataclasses import dataclass

from cowpatch.core.branches import (
    ensure_not_protected,
    get_base_branch,
    get_base_remote,
    get_base_tip,
    patch_branch_name,
    require_current_branch,
)
from cowpatch.core.commit_metadata import encode
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import MergeConflictError, RepositoryError
from cowpatch.core.patch_config import (
    get_patch_name_for_branch,
    get_preferred_repository,
    set_patch_name_for_branch,
    set_preferred_repository,
)
from cowpatch.core.patch_names import namespaced_name, strip_branch_prefix
from cowpatch.core.snapshot import SnapshotManager
from cowpatch.core.versions import next_version, version_tag

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReleaseResult:
    patch_name: str
    repository: str
    version: str
    branch: str
    tag: str
    backup_branch: str | None


def backup_branch_name(repository: str, patch_name: str, version: str) -> str:
    return f"cow_{repository}_{strip_branch_prefix(patch_name)}_v{version}"


def resolve_release_repository(
    ctx: CowpatchContext, patch_name: str, requested: str | None
) -> str:
    """Pick the remote a release goes to.

    Order: the explicit request, the stored preference for the patch, the only
    remote besides origin.

    Raises:
        RepositoryError: If the requested remote is missing or no choice is possible
    """
    repo_root = ctx.require_repo_root()
    remotes = ctx.git.list_remotes(repo_root)
    if requested is not None:
        if requested not in remotes:
            raise RepositoryError(f"Remote '{requested}' does not exist", requested)
        return requested

    preferred = get_preferred_repository(ctx.git, repo_root, patch_name)
    if preferred is not None:
        return preferred

    candidates = sorted(name for name in remotes if name != "origin")
    if len(candidates) == 1:
        return candidates[0]
    raise RepositoryError(
        "Cannot choose a release repository; pass --repository "
        f"(available: {', '.join(sorted(remotes)) or 'none'})"
    )


def release_patch(
    ctx: CowpatchContext,
    source_branch: str | None = None,
    patch_name: str | None = None,
    repository: str | None = None,
) -> ReleaseResult:
    """Publish source_branch as the next version of a patch.

    Args:
        ctx: Invocation context
        source_branch: Branch to release; defaults to the current branch
        patch_name: Patch name; defaults to the name stored for the branch
        repository: Target remote; defaults to the stored preference

    Raises:
        ProtectedBranchError: If source_branch is protected
        RepositoryError: If no target repository can be resolved
        MergeConflictError: If the squash merge conflicts outside lockfiles
    """
    repo_root = ctx.require_repo_root()
    current = require_current_branch(ctx.git, repo_root)
    source = source_branch or current
    ensure_not_protected(ctx.git, repo_root, source, "release")

    name = patch_name or get_patch_name_for_branch(ctx.git, repo_root, source)
    name = strip_branch_prefix(name)
    target = resolve_release_repository(ctx, name, repository)
    full_name = namespaced_name(target, name)

    version = next_version(ctx.git, repo_root, full_name)
    tag = version_tag(full_name, version)
    release_branch = patch_branch_name(name)

    base_branch = get_base_branch(ctx.git, repo_root)
    base_remote = get_base_remote(ctx.git, repo_root, ctx.global_config.canonical_url)
    base_tip = get_base_tip(ctx.git, repo_root, base_branch, base_remote)
    if base_tip is None:
        raise RepositoryError(f"Base branch '{base_branch}' does not exist")

    manager = SnapshotManager(ctx.git, repo_root, ctx.time)
    snapshot = manager.snapshot()
    backup: str | None = None
    try:
        if ctx.git.branch_exists(repo_root, release_branch):
            backup = backup_branch_name(target, name, version)
            ctx.git.create_branch(repo_root, backup, release_branch)
            ctx.git.checkout_branch(repo_root, release_branch)
            ctx.git.reset_hard(repo_root, base_tip)
        else:
            ctx.git.create_branch(repo_root, release_branch, base_tip)
            ctx.git.checkout_branch(repo_root, release_branch)

        if not ctx.git.merge_squash(repo_root, source):
            conflicted = ctx.git.list_conflicted_files(repo_root)
            ctx.lockfile.resolve_conflicts(ctx.git, repo_root, conflicted, source)
            remaining = ctx.git.list_conflicted_files(repo_root)
            if remaining:
                raise MergeConflictError(full_name, remaining)

        ctx.git.stage_all(repo_root)
        ctx.git.commit(
            repo_root,
            encode(
                full_name,
                version=version,
                mod_base_hash=base_tip,
                current_base_hash=base_tip,
            ),
        )
        ctx.git.create_tag(repo_root, tag, f"{full_name} version {version}")

        ctx.git.push(repo_root, target, release_branch, force=True)
        ctx.git.push(repo_root, target, tag)
        if backup is not None:
            ctx.git.push(repo_root, target, backup, force=True)

        ctx.git.checkout_branch(repo_root, current)
    except Exception:
        manager.restore(snapshot)
        raise

    manager.discard(snapshot)
    set_preferred_repository(ctx.git, repo_root, name, target)
    set_patch_name_for_branch(ctx.git, repo_root, source, name)
    logger.debug("released %s v%s to %s", full_name, version, target)

    return ReleaseResult(
        patch_name=name,
        repository=target,
        version=version,
        branch=release_branch,
        tag=tag,
        backup_branch=backup,
    )

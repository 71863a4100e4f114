"""Feature branches used to develop patches.

`init` creates a development branch for a patch from the base branch and
records which patch and repository it releases as. `update-branch` and
`update-all` bring such branches up to date with the upstream base by
replaying their commits on top of it, optionally releasing the result.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from cowpatch.core.branches import (
    ensure_feature_branch,
    get_base_branch,
    get_base_remote,
    get_base_tip,
    is_feature_branch,
    require_current_branch,
    temporary_branch_name,
)
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError, RepositoryError
from cowpatch.core.git.abc import Git
from cowpatch.core.lockfile.real import PACKAGE_LOCK
from cowpatch.core.patch_config import (
    get_patch_name_for_branch,
    get_preferred_repository,
    set_patch_name_for_branch,
    set_preferred_repository,
)
from cowpatch.core.patch_engine import port_commit
from cowpatch.core.patch_names import parse_patch_name, strip_branch_prefix
from cowpatch.core.port_state import PortState, PortStateMachine
from cowpatch.core.release import ReleaseResult, release_patch
from cowpatch.core.snapshot import SnapshotManager
from cowpatch.core.time.abc import to_millis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InitResult:
    branch: str
    patch_name: str
    repository: str
    created: bool
    start_point: str


@dataclass(frozen=True)
class BranchUpdateResult:
    """Outcome of bringing one feature branch up to date.

    changed is False when the branch was already current or only the npm
    lockfile moved; auto-release skips such branches.
    """

    branch: str
    patch_name: str
    upstream: str
    replayed_commits: int
    changed: bool
    release: ReleaseResult | None = None


@dataclass(frozen=True)
class BranchFailure:
    branch: str
    error: str


@dataclass(frozen=True)
class UpdateAllResult:
    updated: tuple[BranchUpdateResult, ...]
    failures: tuple[BranchFailure, ...]


def _require_registered(remotes: dict[str, str], repository: str) -> None:
    if repository not in remotes:
        raise RepositoryError(
            f"Repository '{repository}' is not registered. "
            "Use `cowpatch repository add` to add it first.",
            repository,
        )


def init_patch_branch(
    ctx: CowpatchContext,
    patch_name: str,
    *,
    repository: str | None = None,
    branch: str | None = None,
) -> InitResult:
    """Create (or check out) the development branch for a patch.

    Args:
        ctx: Invocation context
        patch_name: `name`, `cow_name` or `repo/name`; a namespace selects the
            repository unless repository is given
        repository: Remote the patch will be released to
        branch: Development branch name; defaults to the bare patch name

    Raises:
        RepositoryError: If the target repository is not a configured remote
        ProtectedBranchError: If branch names a trunk, release or scratch branch
    """
    git = ctx.git
    repo_root = ctx.require_repo_root()
    parsed = parse_patch_name(patch_name)
    clean_name = strip_branch_prefix(parsed.patch_name)
    dev_branch = branch or clean_name
    ensure_feature_branch(git, repo_root, dev_branch, "develop a patch")

    remotes = git.list_remotes(repo_root)
    requested = repository or parsed.repo_name
    if requested is not None:
        _require_registered(remotes, requested)
        target = requested
    else:
        target = (
            get_preferred_repository(git, repo_root, clean_name)
            or ctx.global_config.default_remote
        )
        _require_registered(remotes, target)

    base_branch = get_base_branch(git, repo_root)
    base_remote = get_base_remote(git, repo_root, ctx.global_config.canonical_url)
    if base_remote is not None:
        git.fetch(repo_root, base_remote)
    if target != base_remote:
        git.fetch(repo_root, target)

    start_point = get_base_tip(git, repo_root, base_branch, base_remote)
    if start_point is None:
        raise RepositoryError(f"Base branch '{base_branch}' does not exist")

    created = not git.branch_exists(repo_root, dev_branch)
    if created:
        git.create_branch(repo_root, dev_branch, start_point)
        logger.debug("created %s at %s", dev_branch, start_point)
    if git.get_current_branch(repo_root) != dev_branch:
        try:
            git.checkout_branch(repo_root, dev_branch)
        except CowpatchError:
            if created:
                git.delete_branch(repo_root, dev_branch)
            raise

    set_patch_name_for_branch(git, repo_root, dev_branch, clean_name)
    set_preferred_repository(git, repo_root, clean_name, target)

    return InitResult(
        branch=dev_branch,
        patch_name=clean_name,
        repository=target,
        created=created,
        start_point=start_point,
    )


def _resolve_upstream(git: Git, repo_root: Path, base_branch: str, base_remote: str | None) -> str:
    if base_remote is not None:
        remote_ref = f"{base_remote}/{base_branch}"
        if git.resolve_ref(repo_root, remote_ref) is not None:
            return remote_ref
    if git.resolve_ref(repo_root, base_branch) is None:
        raise RepositoryError(f"Base branch '{base_branch}' does not exist")
    return base_branch


def has_significant_changes(git: Git, repo_root: Path, old: str, new: str) -> bool:
    """Whether the trees differ in anything besides the npm lockfile."""
    changed = git.list_changed_files(repo_root, old, new)
    return bool(changed) and changed != [PACKAGE_LOCK]


def update_branch(
    ctx: CowpatchContext,
    branch: str | None = None,
    *,
    auto_release: bool = False,
    fetch: bool = True,
) -> BranchUpdateResult:
    """Rebase a feature branch onto `<base_remote>/<base>`.

    Each commit unique to the branch is replayed onto the upstream tip through
    the same cherry-pick fallback patches use, so lockfile conflicts are
    regenerated rather than reported. Any other conflict rolls the branch back.
    The originally checked-out branch is current again afterwards.

    Args:
        ctx: Invocation context
        branch: Branch to update; defaults to the current branch
        auto_release: Release the branch when the update changed it
        fetch: Fetch the base remote first

    Raises:
        ProtectedBranchError: If branch is not a feature branch
        MergeConflictError: If a replayed commit conflicts outside lockfiles
    """
    git = ctx.git
    repo_root = ctx.require_repo_root()
    current = require_current_branch(git, repo_root)
    target = branch or current
    if not git.branch_exists(repo_root, target):
        raise RepositoryError(f"Branch '{target}' does not exist")
    ensure_feature_branch(git, repo_root, target, "update branches")
    patch_name = get_patch_name_for_branch(git, repo_root, target)

    base_branch = get_base_branch(git, repo_root)
    base_remote = get_base_remote(git, repo_root, ctx.global_config.canonical_url)
    if fetch and base_remote is not None:
        git.fetch(repo_root, base_remote)
    upstream = _resolve_upstream(git, repo_root, base_branch, base_remote)
    upstream_tip = git.resolve_ref(repo_root, upstream)
    old_head = git.resolve_ref(repo_root, target)

    manager = SnapshotManager(git, repo_root, ctx.time)
    machine = PortStateMachine()
    snapshot = manager.snapshot()
    machine.transition(PortState.SNAPSHOTTED)
    temp_branch = temporary_branch_name(to_millis(ctx.time.now()))
    replayed = 0
    used_fallback = False

    try:
        if target != current:
            git.checkout_branch(repo_root, target)

        if git.merge_base(repo_root, "HEAD", upstream) != upstream_tip:
            git.create_branch(repo_root, temp_branch, "HEAD")
            git.reset_hard(repo_root, upstream)
            for commit in git.list_commits(repo_root, upstream, temp_branch):
                used_fallback |= port_commit(
                    ctx,
                    repo_root,
                    machine,
                    commit.sha,
                    commit.message,
                    patch_name,
                    rewrite_message=False,
                    skip_empty=True,
                )
                replayed += 1
            git.delete_branch(repo_root, temp_branch)
        else:
            logger.debug("%s already contains %s", target, upstream)

        new_head = git.resolve_ref(repo_root, "HEAD")
        if target != current:
            git.checkout_branch(repo_root, current)
        machine.transition(PortState.COMMITTED)
    except Exception:
        if git.is_cherry_pick_in_progress(repo_root):
            git.cherry_pick_abort(repo_root)
        if target != current and git.get_current_branch(repo_root) == target and old_head:
            git.reset_hard(repo_root, old_head)
        if machine.can_transition(PortState.ROLLED_BACK):
            machine.transition(PortState.ROLLED_BACK)
        manager.restore(snapshot)
        if git.branch_exists(repo_root, temp_branch):
            git.delete_branch(repo_root, temp_branch)
        raise

    manager.discard(snapshot)

    changed = False
    if old_head is not None and new_head is not None and old_head != new_head:
        changed = used_fallback or has_significant_changes(git, repo_root, old_head, new_head)

    release: ReleaseResult | None = None
    if auto_release and changed:
        logger.info("Releasing %s after update", target)
        release = release_patch(ctx, target, patch_name)
    elif auto_release:
        logger.info("No significant changes on %s; skipping release", target)

    return BranchUpdateResult(
        branch=target,
        patch_name=patch_name,
        upstream=upstream,
        replayed_commits=replayed,
        changed=changed,
        release=release,
    )


def update_all_branches(ctx: CowpatchContext, *, auto_release: bool = False) -> UpdateAllResult:
    """Update every local feature branch, continuing past failures."""
    git = ctx.git
    repo_root = ctx.require_repo_root()
    branches = [
        name
        for name in git.list_local_branches(repo_root)
        if is_feature_branch(git, repo_root, name)
    ]
    base_remote = get_base_remote(git, repo_root, ctx.global_config.canonical_url)
    if branches and base_remote is not None:
        git.fetch(repo_root, base_remote)

    updated: list[BranchUpdateResult] = []
    failures: list[BranchFailure] = []
    for name in branches:
        try:
            updated.append(update_branch(ctx, name, auto_release=auto_release, fetch=False))
        except CowpatchError as exc:
            logger.warning("Could not update %s: %s", name, exc)
            failures.append(BranchFailure(branch=name, error=str(exc)))

    return UpdateAllResult(updated=tuple(updated), failures=tuple(failures))

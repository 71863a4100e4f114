"""Patch engine: apply, remove, update and list patches on a working branch.

The commit graph between the base branch and HEAD is the ledger of applied
patches: each patch is exactly one commit whose message carries the `cow:`
prefix and encoded provenance. Every mutating operation here follows the same
discipline:

1. Check preconditions without touching the repository
2. Snapshot branch, commit and uncommitted work
3. Port commits through PortStateMachine
4. On any failure, restore the snapshot and re-raise

so a command ends either fully applied or fully unapplied.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from cowpatch.core.branches import (
    ensure_feature_branch,
    ensure_not_protected,
    get_base_branch,
    get_base_remote,
    get_base_tip,
    patch_branch_name,
    require_current_branch,
    temporary_branch_name,
)
from cowpatch.core.commit_metadata import (
    ParsedPatchCommit,
    PatchRecord,
    encode,
    extract_version,
    parse_commit_message,
)
from cowpatch.core.constants import UNKNOWN
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import (
    CowpatchError,
    MergeConflictError,
    PatchNotFoundError,
    RepositoryError,
)
from cowpatch.core.git.abc import Git
from cowpatch.core.local_state import local_state_path, reconcile_local_state
from cowpatch.core.patch_names import namespaced_name, parse_patch_name, strip_branch_prefix
from cowpatch.core.port_state import PortState, PortStateMachine
from cowpatch.core.snapshot import GitStateSnapshot, SnapshotManager
from cowpatch.core.time.abc import to_millis
from cowpatch.core.versions import latest_known_version, version_tag

logger = logging.getLogger(__name__)


# ============================================================================
# Result types
# ============================================================================


@dataclass(frozen=True)
class AppliedPatch:
    """A patch commit found between the base branch and HEAD."""

    record: PatchRecord
    commit_sha: str

    @property
    def name(self) -> str:
        return self.record.name


@dataclass(frozen=True)
class ApplyResult:
    name: str
    already_applied: bool
    commit_sha: str | None = None
    used_conflict_fallback: bool = False
    transitions: tuple[PortState, ...] = ()


@dataclass(frozen=True)
class RemoveResult:
    name: str
    replayed_commits: int
    reconciled_paths: tuple[str, ...] = ()
    transitions: tuple[PortState, ...] = ()


@dataclass(frozen=True)
class ListedPatch:
    applied: AppliedPatch
    base_changed: bool
    latest_version: str | None = None


@dataclass(frozen=True)
class PatchListing:
    branch: str
    base_branch: str
    base_remote: str | None
    base_tip: str | None
    commits_behind_base: int
    patches: list[ListedPatch]


@dataclass(frozen=True)
class ResetResult:
    branch: str
    base_branch: str
    base_tip: str
    previous_head: str | None
    dropped: tuple[str, ...]


@dataclass(frozen=True)
class SyncFailure:
    name: str
    error: str


@dataclass(frozen=True)
class SyncResult:
    """Outcome of rebuilding the applied set on the latest base.

    A patch that no longer applies is reported in failures and left out; the
    others are applied regardless.
    """

    branch: str
    base_branch: str
    base_tip: str
    reapplied: tuple[str, ...]
    failures: tuple[SyncFailure, ...]


class ModBaseSource(Enum):
    """Which fallback tier produced a patch's mod-base hash."""

    METADATA = "metadata"
    FIRST_PARENT = "first-parent"
    CURRENT_BASE = "current-base"


# ============================================================================
# Ledger queries
# ============================================================================


def _require_base_branch(git: Git, repo_root: Path) -> str:
    base_branch = get_base_branch(git, repo_root)
    if git.resolve_ref(repo_root, base_branch) is None:
        raise RepositoryError(f"Base branch '{base_branch}' does not exist")
    return base_branch


def get_applied_patches(ctx: CowpatchContext) -> list[AppliedPatch]:
    """Reconstruct the applied patch set from base..HEAD, oldest first."""
    repo_root = ctx.require_repo_root()
    base_branch = _require_base_branch(ctx.git, repo_root)

    applied: list[AppliedPatch] = []
    for commit in ctx.git.list_commits(repo_root, base_branch, "HEAD"):
        parsed = parse_commit_message(commit.message)
        if isinstance(parsed, ParsedPatchCommit):
            applied.append(AppliedPatch(record=parsed.record, commit_sha=commit.sha))
    return applied


def is_patch_applied(ctx: CowpatchContext, name: str) -> bool:
    return any(patch.name == name for patch in get_applied_patches(ctx))


def resolve_applied_name(applied: list[AppliedPatch], requested: str) -> str:
    """Match a user-supplied name against the applied set.

    Accepts `repo/name`, `repo/cow_name`, or a bare name when exactly one
    applied patch has it.

    Raises:
        PatchNotFoundError: If nothing matches or a bare name is ambiguous
    """
    names = [patch.name for patch in applied]
    if requested in names:
        return requested

    parsed = parse_patch_name(requested)
    clean = strip_branch_prefix(parsed.patch_name)
    if parsed.repo_name is not None:
        candidate = namespaced_name(parsed.repo_name, clean)
        if candidate in names:
            return candidate
        raise PatchNotFoundError(requested, "not applied on this branch", parsed.repo_name)

    matches = [name for name in names if parse_patch_name(name).patch_name == clean]
    if len(matches) == 1:
        return matches[0]
    if len(matches) > 1:
        raise PatchNotFoundError(requested, f"ambiguous, matches {', '.join(matches)}")
    raise PatchNotFoundError(requested, "not applied on this branch")


def resolve_mod_base(
    git: Git,
    repo_root: Path,
    commit_sha: str,
    message: str,
    current_base: str | None,
) -> tuple[str, ModBaseSource]:
    """Find the base commit a patch was originally authored against.

    Tiers, in order:
    1. Metadata in the released commit: its current-base (the base it was
       released on), then its mod-base
    2. The released commit's first parent, for patches predating metadata
    3. The current base tip
    """
    parsed = parse_commit_message(message)
    if isinstance(parsed, ParsedPatchCommit):
        for candidate in (parsed.record.current_base_hash, parsed.record.mod_base_hash):
            if candidate != UNKNOWN:
                return candidate, ModBaseSource.METADATA

    parent = git.get_first_parent(repo_root, commit_sha)
    if parent is not None:
        return parent, ModBaseSource.FIRST_PARENT

    return current_base or UNKNOWN, ModBaseSource.CURRENT_BASE


def _version_of(message: str) -> str | None:
    parsed = parse_commit_message(message)
    if isinstance(parsed, ParsedPatchCommit) and parsed.record.version is not None:
        return parsed.record.version
    return extract_version(message)


def _current_base_tip(ctx: CowpatchContext, repo_root: Path, base_branch: str) -> str | None:
    base_remote = get_base_remote(ctx.git, repo_root, ctx.global_config.canonical_url)
    return get_base_tip(ctx.git, repo_root, base_branch, base_remote)


def _sync_local_state(ctx: CowpatchContext, repo_root: Path, branch: str) -> None:
    names = [patch.name for patch in get_applied_patches(ctx)]
    reconcile_local_state(ctx.local_state, local_state_path(ctx.git, repo_root), branch, names)


# ============================================================================
# Porting
# ============================================================================


def port_commit(
    ctx: CowpatchContext,
    repo_root: Path,
    machine: PortStateMachine,
    commit_sha: str,
    message: str,
    patch_name: str,
    *,
    rewrite_message: bool,
    skip_empty: bool = False,
) -> bool:
    """Move one commit onto HEAD.

    Cherry-picks the commit. If git stops, aborts and retries as a
    non-committing cherry-pick, hands lockfile conflicts to the lockfile
    handler, and commits the result with message.

    Args:
        ctx: Invocation context
        repo_root: Repository root
        machine: State machine for the enclosing operation
        commit_sha: Commit to port
        message: Message for the new commit
        patch_name: Name reported in MergeConflictError
        rewrite_message: Amend a cleanly cherry-picked commit to carry message
        skip_empty: Drop a commit whose changes are already on HEAD instead of
            failing on an empty commit

    Returns:
        True if the conflict fallback was needed

    Raises:
        MergeConflictError: If non-lockfile conflicts remain after the fallback
    """
    git = ctx.git
    machine.transition(PortState.CHERRY_PICKING)
    if git.cherry_pick(repo_root, commit_sha):
        machine.transition(PortState.COMMITTING)
        if rewrite_message:
            git.amend_commit_message(repo_root, message)
        return False

    logger.debug("cherry-pick of %s stopped; retrying without commit", commit_sha)
    if git.is_cherry_pick_in_progress(repo_root):
        git.cherry_pick_abort(repo_root)

    if not git.cherry_pick_no_commit(repo_root, commit_sha):
        machine.transition(PortState.RESOLVING_CONFLICTS)
        conflicted = git.list_conflicted_files(repo_root)
        ctx.lockfile.resolve_conflicts(git, repo_root, conflicted, commit_sha)
        remaining = git.list_conflicted_files(repo_root)
        if remaining:
            raise MergeConflictError(patch_name, remaining)

    machine.transition(PortState.COMMITTING)
    git.stage_all(repo_root)
    if skip_empty and not git.has_uncommitted_changes(repo_root):
        logger.debug("%s is already contained in HEAD; skipping", commit_sha)
        return True
    git.commit(repo_root, message)
    return True


def _rollback(
    manager: SnapshotManager, machine: PortStateMachine, snapshot: GitStateSnapshot
) -> None:
    if machine.can_transition(PortState.ROLLED_BACK):
        machine.transition(PortState.ROLLED_BACK)
    manager.restore(snapshot)


# ============================================================================
# Apply
# ============================================================================


def _port_patch(
    ctx: CowpatchContext,
    repo_root: Path,
    name: str,
    locate: Callable[[], str],
    *,
    version: str | None = None,
) -> ApplyResult:
    branch = require_current_branch(ctx.git, repo_root)
    ensure_not_protected(ctx.git, repo_root, branch, "apply patches")

    manager = SnapshotManager(ctx.git, repo_root, ctx.time)
    machine = PortStateMachine()
    snapshot = manager.snapshot()
    machine.transition(PortState.SNAPSHOTTED)

    try:
        commit_sha = locate()
        original_message = ctx.git.get_commit_message(repo_root, commit_sha)
        base_branch = _require_base_branch(ctx.git, repo_root)
        current_base = _current_base_tip(ctx, repo_root, base_branch)
        mod_base, source = resolve_mod_base(
            ctx.git, repo_root, commit_sha, original_message, current_base
        )
        logger.debug("mod-base for %s: %s (from %s)", name, mod_base, source.value)

        message = encode(
            name,
            version=version or _version_of(original_message),
            original_hash=commit_sha,
            mod_base_hash=mod_base,
            current_base_hash=current_base,
        )
        used_fallback = port_commit(
            ctx, repo_root, machine, commit_sha, message, name, rewrite_message=True
        )
        _sync_local_state(ctx, repo_root, branch)
        machine.transition(PortState.COMMITTED)
    except Exception:
        _rollback(manager, machine, snapshot)
        raise

    manager.discard(snapshot)
    return ApplyResult(
        name=name,
        already_applied=False,
        commit_sha=ctx.git.resolve_ref(repo_root, "HEAD"),
        used_conflict_fallback=used_fallback,
        transitions=machine.history,
    )


def _target_name(
    ctx: CowpatchContext, patch_name: str, remote: str | None
) -> tuple[str, str, str]:
    """Resolve (remote, bare name, namespaced name) for a patch argument."""
    parsed = parse_patch_name(patch_name)
    remote_name = remote or parsed.repo_name or ctx.global_config.default_remote
    clean_name = strip_branch_prefix(parsed.patch_name)
    return remote_name, clean_name, namespaced_name(remote_name, clean_name)


def apply_patch(ctx: CowpatchContext, patch_name: str, remote: str | None = None) -> ApplyResult:
    """Apply the released commit of a patch onto the current branch.

    Args:
        ctx: Invocation context
        patch_name: `name`, `cow_name` or `remote/name`
        remote: Remote to take the patch from; defaults to the namespace in
            patch_name, then to the configured default remote

    Returns:
        ApplyResult; already_applied is True when nothing was done, even if
        the remote it came from has since been removed

    Raises:
        RepositoryError: If the remote does not exist
        ProtectedBranchError: If the current branch is protected
        PatchNotFoundError: If the remote has no unmerged commit for the patch
        MergeConflictError: If non-lockfile conflicts remain
        VcsCommandError: If git fails in any other way
    """
    repo_root = ctx.require_repo_root()
    remote_name, clean_name, name = _target_name(ctx, patch_name, remote)

    if is_patch_applied(ctx, name):
        logger.debug("%s is already applied", name)
        return ApplyResult(name=name, already_applied=True)

    if remote_name not in ctx.git.list_remotes(repo_root):
        raise RepositoryError(f"Remote '{remote_name}' does not exist", remote_name)

    remote_branch = f"{remote_name}/{patch_branch_name(clean_name)}"

    def locate() -> str:
        if ctx.git.resolve_ref(repo_root, remote_branch) is None:
            raise PatchNotFoundError(name, f"branch {remote_branch} does not exist", remote_name)
        commit_sha = ctx.git.first_commit_not_in(repo_root, remote_branch, "HEAD")
        if commit_sha is None:
            raise PatchNotFoundError(name, f"{remote_branch} is already merged", remote_name)
        return commit_sha

    return _port_patch(ctx, repo_root, name, locate)


def apply_patch_version(
    ctx: CowpatchContext, patch_name: str, version: str, remote: str | None = None
) -> ApplyResult:
    """Apply a specific released version of a patch from its release tag.

    Tags are read locally; callers fetch them first.

    Raises:
        PatchNotFoundError: If no `<name>-v<version>` tag exists
    """
    repo_root = ctx.require_repo_root()
    _, _, name = _target_name(ctx, patch_name, remote)

    if is_patch_applied(ctx, name):
        logger.debug("%s is already applied", name)
        return ApplyResult(name=name, already_applied=True)

    tag = version_tag(name, version)

    def locate() -> str:
        if ctx.git.resolve_ref(repo_root, tag) is None:
            raise PatchNotFoundError(name, f"tag {tag} does not exist")
        commit_sha = ctx.git.first_commit_not_in(repo_root, tag, "HEAD")
        if commit_sha is None:
            raise PatchNotFoundError(name, f"{tag} is already merged")
        return commit_sha

    return _port_patch(ctx, repo_root, name, locate, version=version)


# ============================================================================
# Remove
# ============================================================================


def _identifies(message: str, name: str) -> bool:
    parsed = parse_commit_message(message)
    return isinstance(parsed, ParsedPatchCommit) and parsed.record.name == name


def remove_patch(ctx: CowpatchContext, patch_name: str) -> RemoveResult:
    """Remove an applied patch by rebuilding the branch without it.

    Later patches are not guaranteed independent of earlier ones, so instead of
    reverting, the branch is reset to the base branch and every other commit
    is replayed oldest first. A later commit with a content dependency on the
    removed patch conflicts, and the whole remove is rolled back.

    Raises:
        PatchNotFoundError: If the patch is not applied
        ProtectedBranchError: If the current branch is protected
        MergeConflictError: If a replayed commit conflicts outside lockfiles
    """
    repo_root = ctx.require_repo_root()
    name = resolve_applied_name(get_applied_patches(ctx), patch_name)

    branch = require_current_branch(ctx.git, repo_root)
    ensure_not_protected(ctx.git, repo_root, branch, "remove patches")
    base_branch = _require_base_branch(ctx.git, repo_root)

    manager = SnapshotManager(ctx.git, repo_root, ctx.time)
    machine = PortStateMachine()
    snapshot = manager.snapshot()
    machine.transition(PortState.SNAPSHOTTED)
    temp_branch = temporary_branch_name(to_millis(ctx.time.now()))

    try:
        ctx.git.create_branch(repo_root, temp_branch, "HEAD")
        ctx.git.reset_hard(repo_root, base_branch)

        commits = ctx.git.list_commits(repo_root, base_branch, temp_branch)
        replay = [commit for commit in commits if not _identifies(commit.message, name)]
        logger.debug("replaying %d of %d commits without %s", len(replay), len(commits), name)

        for commit in replay:
            port_commit(
                ctx,
                repo_root,
                machine,
                commit.sha,
                commit.message,
                name,
                rewrite_message=False,
            )

        ctx.git.delete_branch(repo_root, temp_branch)

        reconciled = ctx.lockfile.reconcile(ctx.git, repo_root)
        if reconciled:
            ctx.git.stage_all(repo_root)
            ctx.git.commit(repo_root, f"Reconcile dependency lockfiles after removing {name}")

        _sync_local_state(ctx, repo_root, branch)
        machine.transition(PortState.COMMITTED)
    except Exception:
        _rollback(manager, machine, snapshot)
        if ctx.git.branch_exists(repo_root, temp_branch):
            ctx.git.delete_branch(repo_root, temp_branch)
        raise

    manager.discard(snapshot)
    return RemoveResult(
        name=name,
        replayed_commits=len(replay),
        reconciled_paths=tuple(reconciled),
        transitions=machine.history,
    )


# ============================================================================
# Update
# ============================================================================


def update_patch(ctx: CowpatchContext, patch_name: str) -> ApplyResult:
    """Re-apply an applied patch from the current tip of its remote branch.

    Remove and apply each snapshot and roll back on their own; an outer
    snapshot covers a failure between the two, so the branch is never left
    with the patch removed but not re-applied.
    """
    repo_root = ctx.require_repo_root()
    name = resolve_applied_name(get_applied_patches(ctx), patch_name)
    remote_name = parse_patch_name(name).repo_name
    if remote_name is None:
        raise PatchNotFoundError(name, "patch has no repository namespace to update from")

    branch = require_current_branch(ctx.git, repo_root)
    ensure_not_protected(ctx.git, repo_root, branch, "update patches")
    ctx.git.fetch(repo_root, remote_name)

    manager = SnapshotManager(ctx.git, repo_root, ctx.time)
    snapshot = manager.snapshot()
    try:
        remove_patch(ctx, name)
        result = apply_patch(ctx, name)
    except Exception:
        manager.restore(snapshot)
        raise

    manager.discard(snapshot)
    return result


# ============================================================================
# Reset and sync
# ============================================================================


def _reset_onto_base(ctx: CowpatchContext, repo_root: Path) -> tuple[str, str]:
    """Refresh the base branch from its remote and hard-reset HEAD onto it.

    The local base branch is fast-forwarded when the remote moved ahead; a
    diverged local base is left alone and used as is.

    Returns:
        (base branch, commit HEAD now points at)
    """
    git = ctx.git
    base_branch = _require_base_branch(git, repo_root)
    base_remote = get_base_remote(git, repo_root, ctx.global_config.canonical_url)
    if base_remote is None:
        logger.warning("No base remote found; resetting onto local %s", base_branch)
    else:
        git.fetch(repo_root, base_remote)
        remote_tip = git.resolve_ref(repo_root, f"{base_remote}/{base_branch}")
        local_tip = git.resolve_ref(repo_root, base_branch)
        if remote_tip is not None and remote_tip != local_tip:
            if git.merge_base(repo_root, base_branch, remote_tip) == local_tip:
                git.force_branch(repo_root, base_branch, remote_tip)
                logger.debug("fast-forwarded %s to %s", base_branch, remote_tip)
            else:
                logger.warning(
                    "%s has diverged from %s/%s; using the local branch",
                    base_branch,
                    base_remote,
                    base_branch,
                )

    git.reset_hard(repo_root, base_branch)
    base_tip = git.resolve_ref(repo_root, "HEAD")
    if base_tip is None:
        raise RepositoryError(f"Base branch '{base_branch}' has no commits")
    return base_branch, base_tip


def reset_patches(ctx: CowpatchContext) -> ResetResult:
    """Drop every commit on the current branch and move it to the latest base.

    Patches and ordinary commits alike are discarded; uncommitted changes are
    carried over.

    Raises:
        ProtectedBranchError: Unless the current branch is a feature branch
    """
    repo_root = ctx.require_repo_root()
    branch = require_current_branch(ctx.git, repo_root)
    ensure_feature_branch(ctx.git, repo_root, branch, "reset patches")
    dropped = tuple(patch.name for patch in get_applied_patches(ctx))
    previous_head = ctx.git.resolve_ref(repo_root, "HEAD")

    manager = SnapshotManager(ctx.git, repo_root, ctx.time)
    snapshot = manager.snapshot()
    try:
        base_branch, base_tip = _reset_onto_base(ctx, repo_root)
        _sync_local_state(ctx, repo_root, branch)
    except Exception:
        manager.restore(snapshot)
        raise

    manager.discard(snapshot)
    return ResetResult(
        branch=branch,
        base_branch=base_branch,
        base_tip=base_tip,
        previous_head=previous_head,
        dropped=dropped,
    )


def _fetch_patch_sources(
    ctx: CowpatchContext, repo_root: Path, applied: list[AppliedPatch]
) -> None:
    remotes = ctx.git.list_remotes(repo_root)
    if any(patch.record.version is not None for patch in applied):
        ctx.git.fetch_all_tags(repo_root)
    unpinned = {
        parse_patch_name(patch.name).repo_name for patch in applied if patch.record.version is None
    }
    for remote in sorted(name for name in unpinned if name is not None and name in remotes):
        ctx.git.fetch(repo_root, remote)


def _reapply(ctx: CowpatchContext, patch: AppliedPatch) -> ApplyResult:
    if patch.record.version is not None:
        return apply_patch_version(ctx, patch.name, patch.record.version)
    return apply_patch(ctx, patch.name)


def sync_patches(ctx: CowpatchContext) -> SyncResult:
    """Rebuild the current branch on the latest base with the same patches.

    Versioned patches are re-applied from their release tag, so a sync never
    upgrades them; unversioned ones come from their remote branch. A patch
    that fails to re-apply is left out and reported instead of aborting the
    sync.

    Raises:
        ProtectedBranchError: Unless the current branch is a feature branch
    """
    repo_root = ctx.require_repo_root()
    branch = require_current_branch(ctx.git, repo_root)
    ensure_feature_branch(ctx.git, repo_root, branch, "sync patches")
    applied = get_applied_patches(ctx)
    _fetch_patch_sources(ctx, repo_root, applied)

    manager = SnapshotManager(ctx.git, repo_root, ctx.time)
    snapshot = manager.snapshot()
    reapplied: list[str] = []
    failures: list[SyncFailure] = []
    try:
        base_branch, base_tip = _reset_onto_base(ctx, repo_root)
        for patch in applied:
            try:
                _reapply(ctx, patch)
            except CowpatchError as exc:
                logger.warning("Could not re-apply %s: %s", patch.name, exc)
                failures.append(SyncFailure(name=patch.name, error=str(exc)))
                continue
            reapplied.append(patch.name)
        _sync_local_state(ctx, repo_root, branch)
    except Exception:
        manager.restore(snapshot)
        raise

    manager.discard(snapshot)
    return SyncResult(
        branch=branch,
        base_branch=base_branch,
        base_tip=base_tip,
        reapplied=tuple(reapplied),
        failures=tuple(failures),
    )


# ============================================================================
# List
# ============================================================================


def list_patches(ctx: CowpatchContext, *, include_versions: bool = False) -> PatchListing:
    """Describe the applied patch set and refresh the local cache mirror.

    Args:
        ctx: Invocation context
        include_versions: Also look up the latest released version of each
            patch (fetches tags from every remote once)

    Raises:
        ConfigError: If the local cache mirror is malformed
    """
    repo_root = ctx.require_repo_root()
    branch = require_current_branch(ctx.git, repo_root)
    base_branch = _require_base_branch(ctx.git, repo_root)
    base_remote = get_base_remote(ctx.git, repo_root, ctx.global_config.canonical_url)
    base_tip = get_base_tip(ctx.git, repo_root, base_branch, base_remote)

    applied = get_applied_patches(ctx)
    if include_versions and applied:
        ctx.git.fetch_all_tags(repo_root)

    behind = 0
    if base_tip is not None:
        behind = len(ctx.git.list_commits(repo_root, "HEAD", base_tip))

    listed: list[ListedPatch] = []
    for patch in applied:
        mod_base = patch.record.mod_base_hash
        base_changed = base_tip is not None and mod_base != UNKNOWN and mod_base != base_tip
        version = None
        if include_versions:
            version = latest_known_version(ctx.git, repo_root, patch.name)
        listed.append(ListedPatch(applied=patch, base_changed=base_changed, latest_version=version))

    state_path = local_state_path(ctx.git, repo_root)
    cached = ctx.local_state.load(state_path)
    reconcile_local_state(
        ctx.local_state, state_path, branch, [patch.name for patch in applied], cached
    )

    return PatchListing(
        branch=branch,
        base_branch=base_branch,
        base_remote=base_remote,
        base_tip=base_tip,
        commits_behind_base=behind,
        patches=listed,
    )

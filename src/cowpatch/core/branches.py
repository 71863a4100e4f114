"""Branch naming, classification and base-branch resolution.

The repository model is deliberately simple: one trunk, "dev" when a local
dev branch exists and "main" otherwise. Patch branches carry the `cow_` prefix;
remove builds on `temp-<millis>` scratch branches.
"""

import logging
from enum import Enum
from pathlib import Path

from cowpatch.core.constants import (
    BRANCH_PREFIX,
    COMMON_BASE_BRANCHES,
    FALLBACK_BASE_BRANCH,
    ORIGIN_REMOTE,
    PREFERRED_BASE_BRANCH,
    TEMPORARY_BRANCH_PREFIX,
)
from cowpatch.core.errors import ProtectedBranchError, RepositoryError
from cowpatch.core.git.abc import Git
from cowpatch.core.patch_names import strip_branch_prefix

logger = logging.getLogger(__name__)


class BranchClassification(Enum):
    BASE = "base"
    PATCH = "patch"
    TEMPORARY = "temporary"
    OTHER = "other"


def get_base_branch(git: Git, repo_root: Path) -> str:
    """Return "dev" if a local dev branch exists, else "main"."""
    if git.branch_exists(repo_root, PREFERRED_BASE_BRANCH):
        return PREFERRED_BASE_BRANCH
    return FALLBACK_BASE_BRANCH


def is_protected(git: Git, repo_root: Path, branch: str) -> bool:
    """Check whether branch is the base branch or a common trunk name."""
    return branch == get_base_branch(git, repo_root) or branch in COMMON_BASE_BRANCHES


def ensure_not_protected(git: Git, repo_root: Path, branch: str, operation: str) -> None:
    """Raise ProtectedBranchError if a mutating operation targets a protected branch."""
    if is_protected(git, repo_root, branch):
        raise ProtectedBranchError(branch, operation)


def require_current_branch(git: Git, repo_root: Path) -> str:
    """Get the checked-out branch, refusing to work on a detached HEAD."""
    branch = git.get_current_branch(repo_root)
    if branch is None:
        raise RepositoryError("HEAD is detached; check out a branch first")
    return branch


def patch_branch_name(patch_name: str) -> str:
    """Branch name for a patch, with exactly one `cow_` prefix."""
    return f"{BRANCH_PREFIX}{strip_branch_prefix(patch_name)}"


def temporary_branch_name(millis: int) -> str:
    return f"{TEMPORARY_BRANCH_PREFIX}{millis}"


def classify(git: Git, repo_root: Path, branch: str) -> BranchClassification:
    """Derive a branch's classification from its name."""
    if is_protected(git, repo_root, branch):
        return BranchClassification.BASE
    if branch.startswith(BRANCH_PREFIX):
        return BranchClassification.PATCH
    if branch.startswith(TEMPORARY_BRANCH_PREFIX):
        return BranchClassification.TEMPORARY
    return BranchClassification.OTHER


def is_feature_branch(git: Git, repo_root: Path, branch: str) -> bool:
    """A branch users work on: not a trunk, not a release branch, not scratch."""
    return classify(git, repo_root, branch) is BranchClassification.OTHER


def ensure_feature_branch(git: Git, repo_root: Path, branch: str, operation: str) -> None:
    """Raise ProtectedBranchError unless branch is a feature branch.

    Stricter than ensure_not_protected: release branches (`cow_*`) and
    scratch branches are rebuilt by cowpatch itself and are refused too.
    """
    if not is_feature_branch(git, repo_root, branch):
        raise ProtectedBranchError(branch, operation)


def _normalize_url(url: str) -> str:
    normalized = url.strip().rstrip("/")
    if normalized.endswith(".git"):
        normalized = normalized[: -len(".git")]
    return normalized.lower()


def urls_match(left: str, right: str) -> bool:
    """Compare remote URLs ignoring case, trailing slashes and a `.git` suffix."""
    return _normalize_url(left) == _normalize_url(right)


def get_base_remote(git: Git, repo_root: Path, canonical_url: str | None) -> str | None:
    """Pick the remote that hosts the upstream base branch.

    Normally "origin". When a canonical upstream URL is configured and origin
    points elsewhere (a fork), a remote pointing at the canonical URL wins.

    Returns:
        Remote name, or None when no suitable remote exists
    """
    remotes = git.list_remotes(repo_root)

    canonical_remote: str | None = None
    if canonical_url is not None:
        for name, url in sorted(remotes.items()):
            if urls_match(url, canonical_url):
                canonical_remote = name
                break

    if ORIGIN_REMOTE not in remotes:
        return canonical_remote

    if canonical_remote is not None and not urls_match(remotes[ORIGIN_REMOTE], canonical_url or ""):
        logger.debug("origin is a fork; using %s as base remote", canonical_remote)
        return canonical_remote

    return ORIGIN_REMOTE


def get_base_tip(
    git: Git, repo_root: Path, base_branch: str, base_remote: str | None
) -> str | None:
    """Resolve the freshest known tip of the base branch.

    Prefers `<base_remote>/<base_branch>` and falls back to the local branch.
    """
    if base_remote is not None:
        remote_tip = git.resolve_ref(repo_root, f"{base_remote}/{base_branch}")
        if remote_tip is not None:
            return remote_tip
    return git.resolve_ref(repo_root, base_branch)

"""Per-patch preferences stored in the repository's git config.

Keys:
- cowpatch.mod.<patch>.repository: remote a patch is released to
- cowpatch.mod.<branch>.patchName: patch name a working branch releases as
"""

from pathlib import Path

from cowpatch.core.constants import CONFIG_NAMESPACE
from cowpatch.core.git.abc import Git
from cowpatch.core.patch_names import strip_branch_prefix


def repository_key(patch_name: str) -> str:
    return f"{CONFIG_NAMESPACE}.mod.{patch_name}.repository"


def patch_name_key(branch: str) -> str:
    return f"{CONFIG_NAMESPACE}.mod.{branch}.patchName"


def get_patch_name_for_branch(git: Git, repo_root: Path, branch: str) -> str:
    """Resolve the patch name a branch releases as.

    Order: stored mapping, then the branch name without `cow_`.
    """
    configured = git.get_config(repo_root, patch_name_key(branch))
    if configured is not None and configured.strip():
        return configured.strip()
    return strip_branch_prefix(branch)


def set_patch_name_for_branch(git: Git, repo_root: Path, branch: str, patch_name: str) -> None:
    git.set_config(repo_root, patch_name_key(branch), patch_name)


def get_preferred_repository(git: Git, repo_root: Path, patch_name: str) -> str | None:
    """Stored release remote for a patch, ignored once that remote is gone."""
    configured = git.get_config(repo_root, repository_key(patch_name))
    if configured is None or not configured.strip():
        return None
    name = configured.strip()
    if name not in git.list_remotes(repo_root):
        return None
    return name


def set_preferred_repository(git: Git, repo_root: Path, patch_name: str, repository: str) -> None:
    git.set_config(repo_root, repository_key(patch_name), repository)

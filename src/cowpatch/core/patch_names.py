"""Patch naming: namespaced `repository/patch` names and branch prefixes."""

from dataclasses import dataclass

from cowpatch.core.constants import BRANCH_PREFIX


@dataclass(frozen=True)
class ParsedPatchName:
    """A patch name split into its repository namespace and bare name."""

    repo_name: str | None
    patch_name: str


def strip_branch_prefix(name: str) -> str:
    """Remove a leading `cow_` if present."""
    if name.startswith(BRANCH_PREFIX):
        return name[len(BRANCH_PREFIX) :]
    return name


def is_namespaced(name: str) -> bool:
    return "/" in name


def parse_patch_name(full_name: str) -> ParsedPatchName:
    """Split `repo/patch` on its first slash.

    Examples:
        >>> parse_patch_name("repoA/mod-x")
        ParsedPatchName(repo_name='repoA', patch_name='mod-x')
        >>> parse_patch_name("mod-x")
        ParsedPatchName(repo_name=None, patch_name='mod-x')
    """
    if not is_namespaced(full_name):
        return ParsedPatchName(repo_name=None, patch_name=full_name)
    repo_name, _, patch_name = full_name.partition("/")
    return ParsedPatchName(repo_name=repo_name, patch_name=patch_name)


def namespaced_name(repo_name: str, patch_name: str) -> str:
    """Build the `repo/patch` name recorded in commit metadata."""
    return f"{repo_name}/{strip_branch_prefix(patch_name)}"

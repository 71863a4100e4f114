"""Tag-based semantic versions for patches.

Each release of a patch is an annotated tag `<sanitized-name>-v<major>.<minor>.<patch>`
where the namespace slash is replaced with a hyphen.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

from cowpatch.core.git.abc import Git

logger = logging.getLogger(__name__)

INITIAL_VERSION = "1.0.0"

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


@dataclass(frozen=True, order=True)
class Version:
    major: int
    minor: int
    patch: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}.{self.patch}"

    def bump_patch(self) -> "Version":
        return Version(self.major, self.minor, self.patch + 1)


def parse_version(text: str) -> Version | None:
    """Parse `major.minor.patch`, or None if text is not a plain version triple."""
    match = _VERSION_RE.match(text.strip())
    if match is None:
        return None
    return Version(int(match.group(1)), int(match.group(2)), int(match.group(3)))


def tag_compatible_name(patch_name: str) -> str:
    """Replace namespace separators so the name is legal inside a tag."""
    return patch_name.replace("/", "-")


def version_tag(patch_name: str, version: str) -> str:
    return f"{tag_compatible_name(patch_name)}-v{version}"


def _versions_from_tags(tags: list[str], patch_name: str) -> list[Version]:
    prefix = f"{tag_compatible_name(patch_name)}-v"
    versions: list[Version] = []
    for tag in tags:
        if not tag.startswith(prefix):
            continue
        version = parse_version(tag[len(prefix) :])
        if version is None:
            logger.debug("ignoring non-version tag %s", tag)
            continue
        versions.append(version)
    return sorted(versions, reverse=True)


def sort_versions(tags: list[str], patch_name: str) -> list[str]:
    """Extract versions from tags and sort them newest first.

    Comparison is numeric on (major, minor, patch), so 1.10.0 sorts above
    1.9.0. Tags whose suffix is not a version triple are skipped.
    """
    return [str(v) for v in _versions_from_tags(tags, patch_name)]


def _local_versions(git: Git, repo_root: Path, patch_name: str) -> list[Version]:
    tags = git.list_tags(repo_root, f"{tag_compatible_name(patch_name)}-v*")
    return _versions_from_tags(tags, patch_name)


def _fetch_versions(git: Git, repo_root: Path, patch_name: str) -> list[Version]:
    # Local tags are never assumed current.
    git.fetch_all_tags(repo_root)
    return _local_versions(git, repo_root, patch_name)


def list_versions(git: Git, repo_root: Path, patch_name: str) -> list[str]:
    """List released versions of a patch, newest first, after refreshing tags."""
    return [str(v) for v in _fetch_versions(git, repo_root, patch_name)]


def latest_version(git: Git, repo_root: Path, patch_name: str) -> str | None:
    versions = _fetch_versions(git, repo_root, patch_name)
    return str(versions[0]) if versions else None


def latest_known_version(git: Git, repo_root: Path, patch_name: str) -> str | None:
    """Newest version among tags already present locally.

    For callers that refresh tags once themselves before looking up many patches.
    """
    versions = _local_versions(git, repo_root, patch_name)
    return str(versions[0]) if versions else None


def next_version(git: Git, repo_root: Path, patch_name: str) -> str:
    """Version the next release of a patch should carry."""
    versions = _fetch_versions(git, repo_root, patch_name)
    if not versions:
        return INITIAL_VERSION
    return str(versions[0].bump_patch())

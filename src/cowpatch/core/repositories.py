"""Patch repository registry.

Repositories are plain git remotes; there is no separate store. Adding a
repository adds the remote and fetches it, listing enumerates remotes and marks
those whose URL is on the verified allow-list.
"""

import logging
import re
from dataclasses import dataclass

from cowpatch.core.branches import urls_match
from cowpatch.core.constants import ORIGIN_REMOTE
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import RepositoryError, VcsCommandError

logger = logging.getLogger(__name__)

REPOSITORY_NAME_RE = re.compile(r"^[a-zA-Z0-9_-]+$")

_HOSTED_OWNER_RE = re.compile(r"(?:github\.com|gitlab\.com|bitbucket\.org)[/:]([^/]+)")
_SSH_OWNER_RE = re.compile(r"@[^:]+:([^/]+)")
_DOMAIN_RE = re.compile(r"//([^/]+)")


@dataclass(frozen=True)
class Repository:
    name: str
    url: str
    verified: bool


def _last_path_segment(url: str) -> str:
    segment = url.rstrip("/").rsplit("/", 1)[-1]
    if segment.endswith(".git"):
        segment = segment[: -len(".git")]
    return segment


def derive_repository_name(url: str) -> str:
    """Suggest a remote name for a repository URL.

    Hosted forges yield the owner (`https://github.com/alice/repo` -> `alice`).
    Other SSH URLs yield the path owner, other HTTP URLs the first label of the
    host, and anything else the last path segment.
    """
    hosted = _HOSTED_OWNER_RE.search(url)
    if hosted is not None:
        return hosted.group(1)

    ssh = _SSH_OWNER_RE.search(url)
    if ssh is not None:
        return ssh.group(1)

    domain = _DOMAIN_RE.search(url)
    if domain is not None:
        label = domain.group(1).split(".")[0]
        if label != "www":
            return label

    return _last_path_segment(url)


def is_valid_repository_name(name: str) -> bool:
    return REPOSITORY_NAME_RE.match(name) is not None


def list_repositories(ctx: CowpatchContext) -> list[Repository]:
    """Every configured remote, sorted by name, with its verified flag."""
    repo_root = ctx.require_repo_root()
    remotes = ctx.git.list_remotes(repo_root)
    verified_urls = ctx.verified.list_verified_urls() if remotes else frozenset()
    return [
        Repository(
            name=name,
            url=url,
            verified=any(urls_match(url, verified) for verified in verified_urls),
        )
        for name, url in sorted(remotes.items())
    ]


def add_repository(ctx: CowpatchContext, name_or_url: str, url: str | None = None) -> Repository:
    """Register a patch repository as a remote and fetch it.

    Args:
        ctx: Invocation context
        name_or_url: Remote name, or the URL when url is omitted
        url: Repository URL

    Returns:
        The added repository

    Raises:
        RepositoryError: If the name is invalid or already taken
    """
    repo_root = ctx.require_repo_root()
    if url is None:
        url = name_or_url
        name = derive_repository_name(url)
    else:
        name = name_or_url

    if not is_valid_repository_name(name):
        raise RepositoryError(
            f"Invalid repository name '{name}': use only letters, numbers, underscore and hyphen",
            name,
        )
    if name in ctx.git.list_remotes(repo_root):
        raise RepositoryError(f"Remote '{name}' already exists", name)

    ctx.git.add_remote(repo_root, name, url)
    try:
        ctx.git.fetch(repo_root, name)
    except VcsCommandError as e:
        logger.warning(
            "Remote %s was added but the initial fetch failed; it may be unreachable: %s",
            name,
            e.stderr or e,
        )

    verified = any(urls_match(url, v) for v in ctx.verified.list_verified_urls())
    return Repository(name=name, url=url, verified=verified)


def remove_repository(ctx: CowpatchContext, name: str) -> None:
    """Unregister a patch repository.

    Raises:
        RepositoryError: If no remote has that name
    """
    repo_root = ctx.require_repo_root()
    if name not in ctx.git.list_remotes(repo_root):
        raise RepositoryError(f"Remote '{name}' does not exist", name)
    ctx.git.remove_remote(repo_root, name)


def verify_origin(ctx: CowpatchContext, target_url: str) -> None:
    """Check that origin points at the expected repository.

    Raises:
        RepositoryError: If origin is missing or points elsewhere
    """
    repo_root = ctx.require_repo_root()
    origin_url = ctx.git.list_remotes(repo_root).get(ORIGIN_REMOTE)
    if origin_url is None or not urls_match(origin_url, target_url):
        raise RepositoryError(
            f"Not in the correct repository. Expected origin to be {target_url}",
            ORIGIN_REMOTE,
        )

"""Verified repository list fetched from GitHub through the gh CLI."""

import json
import logging

from cowpatch.core.errors import CommandError
from cowpatch.core.subprocess import run_subprocess_with_context
from cowpatch.core.verified.abc import VerifiedRepositories

logger = logging.getLogger(__name__)


def parse_verified_urls(payload: str) -> frozenset[str]:
    """Extract URLs from a JSON array of `{"url": ...}` entries.

    Raises:
        ValueError: If payload is not a JSON array of objects
    """
    data = json.loads(payload)
    if not isinstance(data, list):
        raise ValueError("verified repository list must be a JSON array")
    urls: set[str] = set()
    for entry in data:
        if not isinstance(entry, dict):
            raise ValueError("verified repository entries must be objects")
        url = entry.get("url")
        if isinstance(url, str) and url:
            urls.add(url)
    return frozenset(urls)


class GhVerifiedRepositories(VerifiedRepositories):
    """Reads the allow-list file from a GitHub repository via `gh api`.

    The source is `owner/repo/path/to/file.json`. Any failure (gh missing,
    network error, malformed JSON) is logged and yields an empty list. The
    result is kept on the instance, so each context fetches at most once.
    """

    def __init__(self, source: str) -> None:
        self._source = source
        self._urls: frozenset[str] | None = None

    def list_verified_urls(self) -> frozenset[str]:
        if self._urls is None:
            self._urls = self._fetch()
        return self._urls

    def _fetch(self) -> frozenset[str]:
        owner, _, rest = self._source.partition("/")
        repo, _, path = rest.partition("/")
        if not owner or not repo or not path:
            logger.warning("Invalid verified repository source '%s'", self._source)
            return frozenset()

        try:
            result = run_subprocess_with_context(
                [
                    "gh",
                    "api",
                    f"repos/{owner}/{repo}/contents/{path}",
                    "-H",
                    "Accept: application/vnd.github.raw",
                ],
                operation_context="fetch verified repository list",
            )
        except CommandError as e:
            logger.warning("Could not fetch verified repositories: %s", e)
            return frozenset()

        try:
            return parse_verified_urls(result.stdout)
        except ValueError as e:
            logger.warning("Could not parse verified repositories: %s", e)
            return frozenset()

"""Fake verified repository list for testing."""

from cowpatch.core.verified.abc import VerifiedRepositories


class FakeVerifiedRepositories(VerifiedRepositories):
    """Returns a fixed set of URLs and counts lookups."""

    def __init__(self, urls: frozenset[str] = frozenset()) -> None:
        self._urls = urls
        self._lookups = 0

    @property
    def lookups(self) -> int:
        return self._lookups

    def list_verified_urls(self) -> frozenset[str]:
        self._lookups += 1
        return self._urls

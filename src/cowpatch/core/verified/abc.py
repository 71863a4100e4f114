"""Verified repository allow-list interface.

Verification is advisory: it marks remotes whose URL appears in a curated
list. Matching is by URL, never by remote name, since names are chosen
locally by each user.
"""

from abc import ABC, abstractmethod


class VerifiedRepositories(ABC):
    """Abstract source of verified repository URLs."""

    @abstractmethod
    def list_verified_urls(self) -> frozenset[str]:
        """Get every verified repository URL.

        Returns:
            Verified URLs; empty when the list cannot be fetched
        """
        ...

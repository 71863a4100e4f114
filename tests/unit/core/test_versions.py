"""Tests for tag-based patch versions."""

from pathlib import Path

from cowpatch.core.git.fake import FakeCommit, FakeGit
from cowpatch.core.versions import (
    Version,
    latest_known_version,
    latest_version,
    list_versions,
    next_version,
    parse_version,
    sort_versions,
    tag_compatible_name,
    version_tag,
)

ROOT = Path("/repo")
C0 = FakeCommit(sha="c0", parents=(), message="init")


def test_versions_compare_numerically() -> None:
    """1.10.0 sorts above 1.9.0."""
    tags = ["repoA-feat-v1.9.0", "repoA-feat-v1.10.0", "repoA-feat-v1.2.0"]

    assert sort_versions(tags, "repoA/feat") == ["1.10.0", "1.9.0", "1.2.0"]


def test_sort_versions_skips_other_patches_and_bad_suffixes() -> None:
    tags = ["repoA-feat-v1.0.0", "repoA-feature-v9.0.0", "repoA-feat-vnext", "repoA-feat-v1.0"]

    assert sort_versions(tags, "repoA/feat") == ["1.0.0"]


def test_parse_version() -> None:
    assert parse_version("1.2.3") == Version(1, 2, 3)
    assert parse_version("1.2") is None
    assert parse_version("v1.2.3") is None
    assert Version(1, 2, 3).bump_patch() == Version(1, 2, 4)


def test_tag_names_replace_namespace_slash() -> None:
    assert tag_compatible_name("repoA/feat") == "repoA-feat"
    assert version_tag("repoA/feat", "1.0.1") == "repoA-feat-v1.0.1"


def test_next_version_starts_at_initial() -> None:
    git = FakeGit(commits=[C0], branches={"dev": "c0"}, current_branch="dev")

    assert next_version(git, ROOT, "repoA/feat") == "1.0.0"
    assert latest_version(git, ROOT, "repoA/feat") is None


def test_next_version_bumps_patch_of_latest_remote_tag() -> None:
    """Tags are refreshed from remotes before the next version is computed."""
    git = FakeGit(
        commits=[C0],
        branches={"dev": "c0"},
        current_branch="dev",
        remote_tags={"repoA-feat-v1.9.0": "c0", "repoA-feat-v1.10.0": "c0"},
    )

    assert next_version(git, ROOT, "repoA/feat") == "1.10.1"
    assert git.tag_fetches == 1


def test_list_versions_newest_first() -> None:
    git = FakeGit(
        commits=[C0],
        branches={"dev": "c0"},
        current_branch="dev",
        tags={"repoA-feat-v1.0.0": "c0"},
        remote_tags={"repoA-feat-v1.0.1": "c0"},
    )

    assert list_versions(git, ROOT, "repoA/feat") == ["1.0.1", "1.0.0"]


def test_latest_known_version_reads_local_tags_only() -> None:
    git = FakeGit(
        commits=[C0],
        branches={"dev": "c0"},
        current_branch="dev",
        remote_tags={"repoA-feat-v1.0.0": "c0"},
    )

    assert latest_known_version(git, ROOT, "repoA/feat") is None
    assert git.tag_fetches == 0

    git.fetch_all_tags(ROOT)

    assert latest_known_version(git, ROOT, "repoA/feat") == "1.0.0"

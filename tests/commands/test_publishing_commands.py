"""Tests for release, versions, search, repository and config commands."""

import json

from click.testing import CliRunner

from cowpatch.cli.cli import cli
from cowpatch.core.context import CowpatchContext
from cowpatch.core.git.fake import FakeCommit, FakeGit
from cowpatch.core.global_config import GlobalConfig, InMemoryConfigStore
from cowpatch.core.verified.fake import FakeVerifiedRepositories
from tests.fakes.graph import BASE_SHA, BASE_TREE, ORIGIN_URL, PATCHES_URL, build_patch_repo

GREETING = FakeCommit(
    sha="w1",
    parents=(BASE_SHA,),
    message="Add greeting",
    tree={**BASE_TREE, "greeting.txt": "hi\n"},
)


# ============================================================================
# release / versions
# ============================================================================


def test_release_prints_branch_and_tag() -> None:
    repo = build_patch_repo(
        extra_commits=[GREETING],
        extra_branches={"greeting": "w1"},
        current_branch="greeting",
    )
    ctx = CowpatchContext.for_test(git=repo.git)

    result = CliRunner().invoke(cli, ["release"], obj=ctx, catch_exceptions=False)

    assert result.exit_code == 0, result.output
    assert "✓ Released greeting v1.0.0 to patches" in result.stderr
    assert "branch: cow_greeting" in result.stderr
    assert "tag:    patches-greeting-v1.0.0" in result.stderr
    assert "backup:" not in result.stderr


def test_release_with_unknown_repository_fails() -> None:
    repo = build_patch_repo(
        extra_commits=[GREETING],
        extra_branches={"greeting": "w1"},
        current_branch="greeting",
    )
    ctx = CowpatchContext.for_test(git=repo.git)

    result = CliRunner().invoke(cli, ["release", "-r", "nowhere"], obj=ctx)

    assert result.exit_code == 1
    assert "Remote 'nowhere' does not exist" in result.stderr
    assert repo.git.pushes == []


def test_versions_prints_newest_first_on_stdout() -> None:
    repo = build_patch_repo(
        remote_tags={
            "patches-greeting-v1.0.0": BASE_SHA,
            "patches-greeting-v1.0.10": BASE_SHA,
            "patches-greeting-v1.0.2": BASE_SHA,
        }
    )
    ctx = CowpatchContext.for_test(git=repo.git)

    result = CliRunner().invoke(cli, ["versions", "cow_greeting"], obj=ctx, catch_exceptions=False)

    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["1.0.10", "1.0.2", "1.0.0"]


def test_versions_without_releases() -> None:
    ctx = CowpatchContext.for_test(git=build_patch_repo().git)

    result = CliRunner().invoke(cli, ["versions", "forks/greeting"], obj=ctx)

    assert result.exit_code == 0
    assert "No released versions of forks/greeting" in result.stderr
    assert result.stdout == ""


# ============================================================================
# search
# ============================================================================


def _search_context() -> CowpatchContext:
    repo = build_patch_repo(patches={"avatars": {"a.js": "1\n"}, "chat": {"c.js": "1\n"}})
    verified = FakeVerifiedRepositories(frozenset({PATCHES_URL}))
    return CowpatchContext.for_test(git=repo.git, verified=verified)


def test_search_renders_table() -> None:
    result = CliRunner().invoke(cli, ["search", "chat"], obj=_search_context())

    assert result.exit_code == 0
    assert "patches/chat" in result.stderr
    assert "patches/avatars" not in result.stderr


def test_search_json() -> None:
    result = CliRunner().invoke(cli, ["search", "--json"], obj=_search_context())

    assert result.exit_code == 0
    assert json.loads(result.stdout) == [
        {"repository": "patches", "name": "avatars", "verified": True},
        {"repository": "patches", "name": "chat", "verified": True},
    ]


def test_search_without_matches() -> None:
    result = CliRunner().invoke(cli, ["search", "zzz"], obj=_search_context())

    assert result.exit_code == 0
    assert "No patches found" in result.stderr


# ============================================================================
# repository
# ============================================================================


def test_repository_add_from_url() -> None:
    git = FakeGit(remotes={"origin": ORIGIN_URL})
    ctx = CowpatchContext.for_test(git=git)

    result = CliRunner().invoke(
        cli,
        ["repository", "add", "https://github.com/alice/mods.git"],
        obj=ctx,
        catch_exceptions=False,
    )

    assert result.exit_code == 0
    assert "✓ Added alice -> https://github.com/alice/mods.git" in result.stderr
    assert git.remotes["alice"] == "https://github.com/alice/mods.git"


def test_repository_add_duplicate_fails() -> None:
    ctx = CowpatchContext.for_test(git=FakeGit(remotes={"patches": PATCHES_URL}))

    result = CliRunner().invoke(cli, ["repository", "add", "patches", PATCHES_URL], obj=ctx)

    assert result.exit_code == 1
    assert "Remote 'patches' already exists" in result.stderr


def test_repository_list_marks_verified() -> None:
    git = FakeGit(remotes={"origin": ORIGIN_URL, "patches": PATCHES_URL})
    verified = FakeVerifiedRepositories(frozenset({PATCHES_URL}))
    ctx = CowpatchContext.for_test(git=git, verified=verified)

    result = CliRunner().invoke(cli, ["repository", "list"], obj=ctx, catch_exceptions=False)

    lines = result.stderr.splitlines()
    assert lines == [
        f"origin   {ORIGIN_URL}",
        f"patches  {PATCHES_URL} ✓ verified",
    ]


def test_repository_list_empty() -> None:
    result = CliRunner().invoke(cli, ["repository", "list"], obj=CowpatchContext.for_test())

    assert "No repositories configured" in result.stderr


def test_repository_remove() -> None:
    git = FakeGit(remotes={"patches": PATCHES_URL})
    ctx = CowpatchContext.for_test(git=git)

    result = CliRunner().invoke(cli, ["repository", "remove", "patches"], obj=ctx)

    assert result.exit_code == 0
    assert git.remotes == {}


def test_verify_origin_uses_canonical_url() -> None:
    ctx = CowpatchContext.for_test(
        git=FakeGit(remotes={"origin": ORIGIN_URL}),
        global_config=GlobalConfig(canonical_url="https://github.com/acme/app"),
    )

    result = CliRunner().invoke(cli, ["repository", "verify-origin"], obj=ctx)

    assert result.exit_code == 0
    assert "origin points at https://github.com/acme/app" in result.stderr


def test_verify_origin_mismatch_and_missing_url() -> None:
    ctx = CowpatchContext.for_test(git=FakeGit(remotes={"origin": ORIGIN_URL}))
    runner = CliRunner()

    mismatch = runner.invoke(
        cli, ["repository", "verify-origin", "https://github.com/other/app"], obj=ctx
    )
    missing = runner.invoke(cli, ["repository", "verify-origin"], obj=ctx)

    assert mismatch.exit_code == 1
    assert "Not in the correct repository" in mismatch.stderr
    assert missing.exit_code == 1
    assert "canonical_url is not configured" in missing.stderr


# ============================================================================
# config
# ============================================================================


def test_config_set_saves_through_store() -> None:
    store = InMemoryConfigStore()
    ctx = CowpatchContext.for_test(config_store=store)

    result = CliRunner().invoke(
        cli, ["config", "set", "default_remote", "forks"], obj=ctx, catch_exceptions=False
    )

    assert result.exit_code == 0
    assert store.saved == [GlobalConfig(default_remote="forks")]
    assert "Set default_remote in /test/config.toml" in result.stderr


def test_config_get_and_list() -> None:
    ctx = CowpatchContext.for_test(
        global_config=GlobalConfig(canonical_url="https://github.com/acme/app")
    )
    runner = CliRunner()

    got = runner.invoke(cli, ["config", "get", "canonical_url"], obj=ctx)
    listed = runner.invoke(cli, ["config", "list"], obj=ctx)

    assert got.stdout == "https://github.com/acme/app\n"
    assert "canonical_url=https://github.com/acme/app" in listed.stdout.splitlines()
    assert "default_remote=patches" in listed.stdout.splitlines()


def test_config_rejects_unknown_key() -> None:
    result = CliRunner().invoke(
        cli, ["config", "set", "color", "blue"], obj=CowpatchContext.for_test()
    )

    assert result.exit_code == 2

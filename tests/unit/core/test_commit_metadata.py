"""Tests for the commit metadata codec."""

import pytest

from cowpatch.core.commit_metadata import (
    CommitLayout,
    NotAPatchCommit,
    ParsedPatchCommit,
    PatchRecord,
    decode,
    encode,
    encode_single_line,
    extract_version,
    is_patch_commit,
    parse_commit_message,
)


def test_encode_writes_multi_line_layout() -> None:
    """encode() produces the header, separator and all three keys."""
    message = encode("repoA/feature", "1.0.0", "abc123", "def456", "0789ab")

    assert message == (
        "cow: repoA/feature v1.0.0\n"
        "---\n"
        "mod-hash: abc123\n"
        "mod-base: def456\n"
        "current-base: 0789ab\n"
    )


def test_encode_fills_missing_values_with_unknown() -> None:
    """Missing version is omitted from the header; missing hashes become unknown."""
    message = encode("repoA/feature", original_hash="abc123")

    assert message.splitlines() == [
        "cow: repoA/feature",
        "---",
        "mod-hash: abc123",
        "mod-base: unknown",
        "current-base: unknown",
    ]


def test_multi_line_round_trip() -> None:
    """Decoding an encoded message yields the original record."""
    message = encode("repoA/feature", "2.3.4", "h1", "h2", "h3")

    parsed = parse_commit_message(message)

    assert isinstance(parsed, ParsedPatchCommit)
    assert parsed.layout is CommitLayout.MULTI_LINE
    assert parsed.schema_version == 2
    assert parsed.record == PatchRecord(
        name="repoA/feature",
        version="2.3.4",
        original_commit_hash="h1",
        mod_base_hash="h2",
        current_base_hash="h3",
    )


def test_partial_round_trip_keeps_unknowns() -> None:
    """A record with only a name decodes with every hash unknown."""
    record = decode(encode("repoA/feature"))

    assert record == PatchRecord(name="repoA/feature")
    assert record.version is None


def test_single_line_legacy_layout_decodes() -> None:
    """Legacy single-line commits stay readable."""
    message = "cow: repoA/feature v1.0.0 --- mod-hash: a1 mod-base: b2 current-base: c3"

    parsed = parse_commit_message(message)

    assert isinstance(parsed, ParsedPatchCommit)
    assert parsed.layout is CommitLayout.SINGLE_LINE
    assert parsed.schema_version == 1
    assert parsed.record.name == "repoA/feature"
    assert parsed.record.version == "1.0.0"
    assert parsed.record.original_commit_hash == "a1"
    assert parsed.record.mod_base_hash == "b2"
    assert parsed.record.current_base_hash == "c3"


def test_encode_single_line_matches_legacy_format() -> None:
    message = encode_single_line("repoA/feature", "1.0.0", "a1", None, "c3")

    assert message == (
        "cow: repoA/feature v1.0.0 --- mod-hash: a1 mod-base: unknown current-base: c3"
    )
    assert decode(message).mod_base_hash == "unknown"


def test_non_patch_commit_is_reported_not_raised() -> None:
    """Ordinary commits yield NotAPatchCommit and an empty-named record."""
    parsed = parse_commit_message("Fix typo in README")

    assert isinstance(parsed, NotAPatchCommit)
    assert decode("Fix typo in README") == PatchRecord(name="")
    assert not is_patch_commit("Fix typo in README")


def test_prefix_without_name_is_not_a_patch() -> None:
    assert isinstance(parse_commit_message("cow:"), NotAPatchCommit)
    assert isinstance(parse_commit_message(""), NotAPatchCommit)


def test_name_containing_v_is_not_split() -> None:
    """Only a trailing major.minor.patch counts as the version."""
    record = decode("cow: repoA/add v2 support")

    assert record.name == "repoA/add v2 support"
    assert record.version is None


@pytest.mark.parametrize("suffix", ["v2", "v1.2", "v1.2.3.4"])
def test_trailing_version_needs_three_parts(suffix: str) -> None:
    record = decode(f"cow: repoA/widget {suffix}\n---\nmod-hash: x\n")

    assert record.name == f"repoA/widget {suffix}"
    assert record.version is None


def test_unrecognized_metadata_keys_are_ignored() -> None:
    record = decode("cow: repoA/widget\n---\nauthor: someone\nmod-base: b2\n")

    assert record.mod_base_hash == "b2"
    assert record.original_commit_hash == "unknown"


def test_name_containing_v_with_version() -> None:
    record = decode("cow: repoA/my v2 thing v1.2.0\n---\nmod-hash: x\n")

    assert record.name == "repoA/my v2 thing"
    assert record.version == "1.2.0"
    assert record.original_commit_hash == "x"


def test_metadata_lines_before_separator_are_ignored() -> None:
    message = "cow: repoA/feature\nmod-hash: wrong\n---\nmod-hash: right\n"

    assert decode(message).original_commit_hash == "right"


def test_extract_version_finds_first_semver() -> None:
    assert extract_version("feature v1.2.3 (was v1.0.0)") == "1.2.3"
    assert extract_version("no version here") is None


def test_display_name() -> None:
    versioned = PatchRecord(name="repoA/feature", version="1.0.0")
    assert versioned.display_name == "repoA/feature v1.0.0"
    assert PatchRecord(name="repoA/feature").display_name == "repoA/feature"

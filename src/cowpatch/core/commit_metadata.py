"""Commit metadata codec.

Patch commits carry their provenance in the commit message. Two layouts exist
on the wire and both must stay decodable forever:

Multi-line (current, schema 2)::

    cow: repoA/feature v1.0.0
    ---
    mod-hash: <original commit>
    mod-base: <base commit the patch was authored against>
    current-base: <base tip when the patch was last applied>

Single-line (legacy, schema 1)::

    cow: repoA/feature v1.0.0 --- mod-hash: <h> mod-base: <h> current-base: <h>

Every key is always written; missing values are written as "unknown".
"""

import re
from dataclasses import dataclass
from enum import Enum

from cowpatch.core.constants import (
    COMMIT_PREFIX,
    CURRENT_BASE_KEY,
    INLINE_METADATA_SEPARATOR,
    METADATA_KEYS,
    METADATA_SEPARATOR,
    MOD_BASE_KEY,
    MOD_HASH_KEY,
    UNKNOWN,
)

_FIRST_LINE_RE = re.compile(rf"^{re.escape(COMMIT_PREFIX)}\s+(.+)$")
_VERSION_RE = re.compile(r"\d+\.\d+\.\d+")
_SEMVER_IN_TEXT_RE = re.compile(r"v(\d+\.\d+\.\d+)")


class CommitLayout(Enum):
    SINGLE_LINE = "single-line"
    MULTI_LINE = "multi-line"


SCHEMA_VERSIONS = {CommitLayout.SINGLE_LINE: 1, CommitLayout.MULTI_LINE: 2}


@dataclass(frozen=True)
class PatchRecord:
    """Provenance of one applied patch.

    Hash fields hold "unknown" rather than None so fallback logic has a single
    comparison target. version is None for unreleased patches.
    """

    name: str
    version: str | None = None
    original_commit_hash: str = UNKNOWN
    mod_base_hash: str = UNKNOWN
    current_base_hash: str = UNKNOWN

    @property
    def display_name(self) -> str:
        if self.version is None:
            return self.name
        return f"{self.name} v{self.version}"


@dataclass(frozen=True)
class ParsedPatchCommit:
    """A commit message that decoded as a patch commit."""

    record: PatchRecord
    layout: CommitLayout

    @property
    def schema_version(self) -> int:
        return SCHEMA_VERSIONS[self.layout]


@dataclass(frozen=True)
class NotAPatchCommit:
    """A commit message that is not a patch commit, with the reason why."""

    reason: str


def _known(value: str | None) -> str:
    if value is None or not value.strip():
        return UNKNOWN
    return value.strip()


def _header(name: str, version: str | None) -> str:
    version_info = f" v{version}" if version else ""
    return f"{COMMIT_PREFIX} {name}{version_info}"


def encode(
    name: str,
    version: str | None = None,
    original_hash: str | None = None,
    mod_base_hash: str | None = None,
    current_base_hash: str | None = None,
) -> str:
    """Encode patch provenance as a multi-line commit message."""
    lines = [
        _header(name, version),
        METADATA_SEPARATOR,
        f"{MOD_HASH_KEY}: {_known(original_hash)}",
        f"{MOD_BASE_KEY}: {_known(mod_base_hash)}",
        f"{CURRENT_BASE_KEY}: {_known(current_base_hash)}",
    ]
    return "\n".join(lines) + "\n"


def encode_single_line(
    name: str,
    version: str | None = None,
    original_hash: str | None = None,
    mod_base_hash: str | None = None,
    current_base_hash: str | None = None,
) -> str:
    """Encode patch provenance in the legacy single-line layout."""
    metadata = " ".join(
        [
            f"{MOD_HASH_KEY}: {_known(original_hash)}",
            f"{MOD_BASE_KEY}: {_known(mod_base_hash)}",
            f"{CURRENT_BASE_KEY}: {_known(current_base_hash)}",
        ]
    )
    return f"{_header(name, version)}{INLINE_METADATA_SEPARATOR}{metadata}"


def is_patch_commit(message: str) -> bool:
    """Check whether a message carries the patch commit prefix."""
    first_line = message.strip().split("\n", 1)[0]
    return _FIRST_LINE_RE.match(first_line) is not None


def extract_version(message: str) -> str | None:
    """Find the first `v<major>.<minor>.<patch>` in a message."""
    match = _SEMVER_IN_TEXT_RE.search(message)
    if match is None:
        return None
    return match.group(1)


def _split_name_version(text: str) -> tuple[str, str | None]:
    # Names may themselves contain " v"; only a trailing major.minor.patch is a version.
    index = text.rfind(" v")
    if index == -1:
        return text, None
    candidate = text[index + 2 :].strip()
    if _VERSION_RE.fullmatch(candidate) is None:
        return text, None
    return text[:index].strip(), candidate


def _assign(values: dict[str, str], key: str, value: str) -> None:
    if key in METADATA_KEYS and value:
        values[key] = value


def _scan_inline_metadata(text: str) -> dict[str, str]:
    values: dict[str, str] = {}
    tokens = text.split()
    for index, token in enumerate(tokens):
        if not token.endswith(":") or index + 1 >= len(tokens):
            continue
        _assign(values, token[:-1], tokens[index + 1])
    return values


def _scan_metadata_block(lines: list[str]) -> dict[str, str]:
    values: dict[str, str] = {}
    in_metadata = False
    for raw_line in lines:
        line = raw_line.strip()
        if line == METADATA_SEPARATOR:
            in_metadata = True
            continue
        if not in_metadata:
            continue
        key, sep, value = line.partition(":")
        if not sep:
            continue
        _assign(values, key.strip(), value.strip())
    return values


def parse_commit_message(message: str) -> ParsedPatchCommit | NotAPatchCommit:
    """Parse a commit message into a patch record.

    Never raises: anything that is not a patch commit yields NotAPatchCommit.
    """
    lines = message.strip().split("\n")
    first_line = lines[0].strip() if lines else ""
    match = _FIRST_LINE_RE.match(first_line)
    if match is None:
        return NotAPatchCommit(reason=f"first line does not start with '{COMMIT_PREFIX}'")

    if INLINE_METADATA_SEPARATOR in first_line:
        head, _, tail = first_line.partition(INLINE_METADATA_SEPARATOR)
        name_version = head[len(COMMIT_PREFIX) :].strip()
        values = _scan_inline_metadata(tail)
        layout = CommitLayout.SINGLE_LINE
    else:
        name_version = match.group(1).strip()
        values = _scan_metadata_block(lines[1:])
        layout = CommitLayout.MULTI_LINE

    name, version = _split_name_version(name_version)
    if not name:
        return NotAPatchCommit(reason="patch name is empty")

    record = PatchRecord(
        name=name,
        version=version,
        original_commit_hash=values.get(MOD_HASH_KEY, UNKNOWN),
        mod_base_hash=values.get(MOD_BASE_KEY, UNKNOWN),
        current_base_hash=values.get(CURRENT_BASE_KEY, UNKNOWN),
    )
    return ParsedPatchCommit(record=record, layout=layout)


def decode(message: str) -> PatchRecord:
    """Decode a commit message, yielding an empty-named record for non-patch commits."""
    parsed = parse_commit_message(message)
    if isinstance(parsed, NotAPatchCommit):
        return PatchRecord(name="")
    return parsed.record

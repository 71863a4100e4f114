"""npm lockfile handler.

Resolves conflicts on the three files patches routinely collide on:

- package.json: three-way merge of ours (HEAD), theirs (the ported commit)
  and base (its first parent), preferring newer dependency versions
- package-lock.json: deleted and regenerated with `npm install --package-lock-only`
- .env.example: union of both sides of every conflict hunk
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

from cowpatch.core.git.abc import Git
from cowpatch.core.lockfile.abc import LockfileHandler
from cowpatch.core.subprocess import run_subprocess_with_context

logger = logging.getLogger(__name__)

PACKAGE_JSON = "package.json"
PACKAGE_LOCK = "package-lock.json"
ENV_EXAMPLE = ".env.example"
MANAGED_PATHS = frozenset({PACKAGE_JSON, PACKAGE_LOCK, ENV_EXAMPLE})

DEPENDENCY_KEYS = frozenset(
    {"dependencies", "devDependencies", "peerDependencies", "optionalDependencies"}
)

_PLAIN_VERSION_RE = re.compile(r"^\d+(?:\.\d+)*$")


# ============================================================================
# package.json merge
# ============================================================================


def is_newer_version(candidate: str | None, current: str | None) -> bool:
    """Compare two dependency specifiers, treating ranges as incomparable.

    A leading ^ or ~ is ignored. Anything that is not a plain dotted version
    after that (ranges, tags, URLs) compares as not newer.
    """
    if not candidate or not current:
        return False
    left = candidate.lstrip("^~")
    right = current.lstrip("^~")
    if not _PLAIN_VERSION_RE.match(left) or not _PLAIN_VERSION_RE.match(right):
        return False
    left_parts = [int(part) for part in left.split(".")]
    right_parts = [int(part) for part in right.split(".")]
    width = max(len(left_parts), len(right_parts))
    left_parts += [0] * (width - len(left_parts))
    right_parts += [0] * (width - len(right_parts))
    return left_parts > right_parts


def merge_dependencies(
    base: dict[str, str], ours: dict[str, str], theirs: dict[str, str]
) -> dict[str, str]:
    """Merge one dependency map.

    Theirs wins for a package when ours lacks it, when ours left it at the
    base version while theirs changed it, or when theirs is a newer version.
    """
    merged = {**base, **ours}
    for package, version in theirs.items():
        if package not in ours:
            merged[package] = version
        elif base.get(package) == ours[package] and base.get(package) != version:
            merged[package] = version
        elif is_newer_version(version, ours[package]):
            merged[package] = version
    return merged


def merge_package_json(
    base: dict[str, Any], ours: dict[str, Any], theirs: dict[str, Any]
) -> dict[str, Any]:
    """Three-way merge of package.json documents."""
    merged: dict[str, Any] = dict(base)
    keys = list(dict.fromkeys([*base, *ours, *theirs]))
    for key in keys:
        our_value = ours.get(key)
        their_value = theirs.get(key)
        if key in DEPENDENCY_KEYS:
            merged[key] = merge_dependencies(
                base.get(key) or {}, our_value or {}, their_value or {}
            )
        elif isinstance(our_value, list) and isinstance(their_value, list):
            merged[key] = _union(our_value, their_value)
        elif isinstance(our_value, dict) and isinstance(their_value, dict):
            merged[key] = {**(base.get(key) or {}), **our_value, **their_value}
        elif key in theirs and their_value != base.get(key):
            merged[key] = their_value
        elif key in ours:
            merged[key] = our_value
        else:
            merged.pop(key, None)
    return merged


def _union(left: list[Any], right: list[Any]) -> list[Any]:
    result: list[Any] = []
    for item in [*left, *right]:
        if item not in result:
            result.append(item)
    return result


# ============================================================================
# .env.example merge
# ============================================================================


def union_conflict_hunks(content: str) -> str:
    """Replace every conflict hunk with the deduplicated union of both sides."""
    output: list[str] = []
    ours: list[str] = []
    theirs: list[str] = []
    section: str | None = None

    for line in content.splitlines():
        if line.startswith("<<<<<<<"):
            section = "ours"
            ours, theirs = [], []
        elif section is not None and line.startswith("|||||||"):
            section = "base"
        elif section is not None and line.startswith("======="):
            section = "theirs"
        elif section is not None and line.startswith(">>>>>>>"):
            output.extend(_union(ours, theirs))
            section = None
        elif section == "ours":
            ours.append(line)
        elif section == "theirs":
            theirs.append(line)
        elif section is None:
            output.append(line)

    return "\n".join(output) + "\n"


# ============================================================================
# Handler
# ============================================================================


class NpmLockfileHandler(LockfileHandler):
    """Production lockfile handler for npm projects."""

    def resolve_conflicts(
        self,
        git: Git,
        repo_root: Path,
        conflicted: list[str],
        source_commit: str | None,
    ) -> list[str]:
        managed = [path for path in conflicted if path in MANAGED_PATHS]
        if not managed:
            return []

        handled: list[str] = []

        if PACKAGE_JSON in managed and self._merge_package_json(git, repo_root, source_commit):
            handled.append(PACKAGE_JSON)

        if PACKAGE_LOCK in managed:
            self._regenerate_lockfile(git, repo_root)
            handled.append(PACKAGE_LOCK)

        if ENV_EXAMPLE in managed:
            env_path = repo_root / ENV_EXAMPLE
            env_path.write_text(
                union_conflict_hunks(env_path.read_text(encoding="utf-8")), encoding="utf-8"
            )
            git.stage_paths(repo_root, [ENV_EXAMPLE])
            handled.append(ENV_EXAMPLE)

        logger.debug("resolved lockfile conflicts: %s", handled)
        return handled

    def reconcile(self, git: Git, repo_root: Path) -> list[str]:
        conflicted = git.list_conflicted_files(repo_root)
        if not conflicted:
            return []
        return self.resolve_conflicts(git, repo_root, conflicted, None)

    def _merge_package_json(self, git: Git, repo_root: Path, source_commit: str | None) -> bool:
        theirs_ref = self._incoming_ref(git, repo_root, source_commit)
        if theirs_ref is None:
            logger.warning("Cannot find the incoming side of package.json; leaving it conflicted")
            return False

        base_ref = git.merge_base(repo_root, "HEAD", theirs_ref)
        if source_commit is not None:
            base_ref = git.get_first_parent(repo_root, source_commit) or base_ref

        try:
            ours = self._read_json(git, repo_root, "HEAD")
            theirs = self._read_json(git, repo_root, theirs_ref)
            base = self._read_json(git, repo_root, base_ref) if base_ref is not None else {}
        except json.JSONDecodeError as e:
            logger.warning("package.json is not valid JSON (%s); leaving it conflicted", e)
            return False

        merged = merge_package_json(base, ours, theirs)
        (repo_root / PACKAGE_JSON).write_text(json.dumps(merged, indent=2) + "\n", encoding="utf-8")
        git.stage_paths(repo_root, [PACKAGE_JSON])
        return True

    def _incoming_ref(self, git: Git, repo_root: Path, source_commit: str | None) -> str | None:
        for ref in ("CHERRY_PICK_HEAD", "MERGE_HEAD"):
            if git.resolve_ref(repo_root, ref) is not None:
                return ref
        return source_commit

    def _read_json(self, git: Git, repo_root: Path, ref: str) -> dict[str, Any]:
        content = git.show_file(repo_root, ref, PACKAGE_JSON)
        if content is None:
            return {}
        return json.loads(content)

    def _regenerate_lockfile(self, git: Git, repo_root: Path) -> None:
        (repo_root / PACKAGE_LOCK).unlink(missing_ok=True)
        run_subprocess_with_context(
            ["npm", "install", "--package-lock-only"],
            operation_context="regenerate package-lock.json",
            cwd=repo_root,
        )
        git.stage_paths(repo_root, [PACKAGE_LOCK])

"""Fake git operations for testing.

FakeGit is an in-memory commit graph with file trees. It models enough of git
(branches, remote-tracking refs, tags, stash, three-way cherry-pick and
squash-merge with per-file conflicts) for the patch engine to be exercised
end to end without a repository on disk.
"""

import fnmatch
import hashlib
from dataclasses import dataclass, field
from pathlib import Path

from cowpatch.core.errors import VcsCommandError
from cowpatch.core.git.abc import CommitInfo, Git

CONFLICT_MARKER = "<<<<<<< conflict >>>>>>>"


@dataclass(frozen=True)
class FakeCommit:
    """A commit in the fake graph: parents, message and full file tree."""

    sha: str
    parents: tuple[str, ...]
    message: str
    tree: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PushRecord:
    remote: str
    refspec: str
    force: bool


@dataclass(frozen=True)
class _StashEntry:
    message: str
    branch: str
    base: dict[str, str]
    tree: dict[str, str]


def tree_hash(tree: dict[str, str]) -> str:
    """Deterministic content hash of a file tree."""
    digest = hashlib.sha1()
    for path in sorted(tree):
        digest.update(path.encode("utf-8"))
        digest.update(b"\0")
        digest.update(tree[path].encode("utf-8"))
        digest.update(b"\0")
    return digest.hexdigest()


def _fail(args: list[str], context: str, stderr: str) -> VcsCommandError:
    return VcsCommandError(["git", *args], context, 1, stderr=stderr)


class FakeGit(Git):
    """In-memory fake implementation of git operations.

    State Management:
    -----------------
    All state is provided via constructor. The fake mutates its own graph as
    the code under test commits, resets and cherry-picks, and exposes read-only
    properties for assertions.

    Conflict Model:
    ---------------
    Cherry-picks and squash-merges run a per-file three-way merge against the
    picked commit's first parent. A path changed differently on both sides is
    conflicted. Staging a conflicted path resolves it to the incoming side.
    """

    def __init__(
        self,
        *,
        commits: list[FakeCommit] | None = None,
        branches: dict[str, str] | None = None,
        remote_branches: dict[str, str] | None = None,
        current_branch: str | None = None,
        remotes: dict[str, str] | None = None,
        tags: dict[str, str] | None = None,
        config: dict[str, str] | None = None,
        working_tree: dict[str, str] | None = None,
        repository_root: Path | None = None,
        git_common_dir: Path | None = None,
        remote_tags: dict[str, str] | None = None,
        fetch_failures: set[str] | None = None,
        push_failures: set[str] | None = None,
    ) -> None:
        """Create FakeGit with pre-configured state.

        Args:
            commits: Every commit in the graph
            branches: Mapping of local branch name -> commit sha
            remote_branches: Mapping of `remote/branch` -> commit sha
            current_branch: Checked-out branch (None = detached/unborn)
            remotes: Mapping of remote name -> URL
            tags: Mapping of local tag name -> commit sha
            config: Repository git config values
            working_tree: Working tree contents (defaults to the HEAD tree)
            repository_root: Value returned by get_repository_root()
            git_common_dir: Value returned by get_git_common_dir()
            remote_tags: Tags that become local after fetch_all_tags()
            fetch_failures: Remote names whose fetch raises VcsCommandError
            push_failures: Remote names whose push raises VcsCommandError
        """
        self._commits: dict[str, FakeCommit] = {c.sha: c for c in commits or []}
        self._branches = dict(branches or {})
        self._remote_branches = dict(remote_branches or {})
        self._current_branch = current_branch
        self._remotes = dict(remotes or {})
        self._tags = dict(tags or {})
        self._config = dict(config or {})
        self._repository_root = repository_root
        self._git_common_dir = git_common_dir
        self._remote_tags = dict(remote_tags or {})
        self._fetch_failures = set(fetch_failures or set())
        self._push_failures = set(push_failures or set())

        self._conflicts: dict[str, str | None] = {}
        self._cherry_pick_head: str | None = None
        self._stashes: list[_StashEntry] = []
        self._commit_counter = 0

        if working_tree is not None:
            self._working_tree = dict(working_tree)
        else:
            self._working_tree = dict(self._head_tree())

        self._cherry_picks: list[str] = []
        self._fetched_remotes: list[str] = []
        self._tag_fetches = 0
        self._pushes: list[PushRecord] = []
        self._created_tags: list[str] = []
        self._deleted_branches: list[str] = []
        self._added_remotes: list[tuple[str, str]] = []
        self._removed_remotes: list[str] = []
        self._stash_pushes: list[str] = []

    # ------------------------------------------------------------------
    # Read-only properties for test assertions
    # ------------------------------------------------------------------

    @property
    def head_sha(self) -> str | None:
        """Commit the current branch points at."""
        if self._current_branch is None:
            return None
        return self._branches.get(self._current_branch)

    @property
    def working_tree(self) -> dict[str, str]:
        return dict(self._working_tree)

    @property
    def local_branches(self) -> dict[str, str]:
        return dict(self._branches)

    @property
    def tags(self) -> dict[str, str]:
        return dict(self._tags)

    @property
    def config(self) -> dict[str, str]:
        return dict(self._config)

    @property
    def remotes(self) -> dict[str, str]:
        return dict(self._remotes)

    @property
    def stashes(self) -> list[str]:
        return [entry.message for entry in self._stashes]

    @property
    def cherry_picks(self) -> list[str]:
        """Shas passed to cherry_pick(), in call order."""
        return list(self._cherry_picks)

    @property
    def fetched_remotes(self) -> list[str]:
        return list(self._fetched_remotes)

    @property
    def tag_fetches(self) -> int:
        return self._tag_fetches

    @property
    def pushes(self) -> list[PushRecord]:
        return list(self._pushes)

    @property
    def created_tags(self) -> list[str]:
        return list(self._created_tags)

    @property
    def deleted_branches(self) -> list[str]:
        return list(self._deleted_branches)

    @property
    def added_remotes(self) -> list[tuple[str, str]]:
        return list(self._added_remotes)

    @property
    def removed_remotes(self) -> list[str]:
        return list(self._removed_remotes)

    @property
    def stash_pushes(self) -> list[str]:
        return list(self._stash_pushes)

    def commit_count(self) -> int:
        """Number of commits in the graph, for asserting nothing was created."""
        return len(self._commits)

    # ------------------------------------------------------------------
    # Internal graph helpers
    # ------------------------------------------------------------------

    def _resolve(self, ref: str) -> str | None:
        if ref == "HEAD":
            return self.head_sha
        if ref == "CHERRY_PICK_HEAD":
            return self._cherry_pick_head
        if ref in self._branches:
            return self._branches[ref]
        if ref in self._remote_branches:
            return self._remote_branches[ref]
        if ref in self._tags:
            return self._tags[ref]
        if ref in self._commits:
            return ref
        return None

    def _require(self, ref: str) -> str:
        sha = self._resolve(ref)
        if sha is None:
            raise _fail(["rev-parse", ref], f"resolve {ref}", f"unknown revision '{ref}'")
        return sha

    def _tree_of(self, sha: str | None) -> dict[str, str]:
        if sha is None:
            return {}
        return self._commits[sha].tree

    def _head_tree(self) -> dict[str, str]:
        return self._tree_of(self.head_sha)

    def _ancestors(self, sha: str | None) -> set[str]:
        seen: set[str] = set()
        stack = [sha] if sha is not None else []
        while stack:
            current = stack.pop()
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._commits[current].parents)
        return seen

    def _new_commit(self, parents: tuple[str, ...], message: str, tree: dict[str, str]) -> str:
        self._commit_counter += 1
        seed = f"{self._commit_counter}:{len(self._commits)}:{message}:{tree_hash(tree)}"
        sha = hashlib.sha1(seed.encode("utf-8")).hexdigest()
        self._commits[sha] = FakeCommit(sha=sha, parents=parents, message=message, tree=tree)
        return sha

    def _advance_head(self, sha: str) -> None:
        if self._current_branch is None:
            raise _fail(["commit"], "commit changes", "HEAD is detached")
        self._branches[self._current_branch] = sha
        self._working_tree = dict(self._commits[sha].tree)

    def _clear_operation_state(self) -> None:
        self._conflicts = {}
        self._cherry_pick_head = None

    def _three_way(
        self, base: dict[str, str], ours: dict[str, str], theirs: dict[str, str]
    ) -> tuple[dict[str, str], dict[str, str | None]]:
        merged = dict(ours)
        conflicts: dict[str, str | None] = {}
        for path in sorted(set(base) | set(theirs)):
            base_content = base.get(path)
            their_content = theirs.get(path)
            if their_content == base_content:
                continue
            our_content = ours.get(path)
            if our_content == base_content or our_content == their_content:
                if their_content is None:
                    merged.pop(path, None)
                else:
                    merged[path] = their_content
                continue
            conflicts[path] = their_content
            merged[path] = CONFLICT_MARKER
        return merged, conflicts

    def _apply_commit(self, sha: str) -> dict[str, str | None]:
        commit = self._commits[sha]
        parent = commit.parents[0] if commit.parents else None
        merged, conflicts = self._three_way(
            self._tree_of(parent), self._working_tree, commit.tree
        )
        self._working_tree = merged
        self._conflicts = conflicts
        return conflicts

    def _is_dirty(self) -> bool:
        return self._working_tree != self._head_tree() or bool(self._conflicts)

    # ------------------------------------------------------------------
    # Repository discovery
    # ------------------------------------------------------------------

    def get_repository_root(self, cwd: Path) -> Path | None:
        return self._repository_root

    def get_git_common_dir(self, cwd: Path) -> Path:
        if self._git_common_dir is not None:
            return self._git_common_dir
        return cwd / ".git"

    # ------------------------------------------------------------------
    # Refs and history
    # ------------------------------------------------------------------

    def get_current_branch(self, cwd: Path) -> str | None:
        return self._current_branch

    def list_local_branches(self, cwd: Path) -> list[str]:
        return sorted(self._branches)

    def branch_exists(self, cwd: Path, branch: str) -> bool:
        return branch in self._branches

    def resolve_ref(self, cwd: Path, ref: str) -> str | None:
        return self._resolve(ref)

    def get_tree_hash(self, cwd: Path, ref: str) -> str:
        return tree_hash(self._tree_of(self._require(ref)))

    def get_commit_message(self, cwd: Path, ref: str) -> str:
        return self._commits[self._require(ref)].message

    def get_first_parent(self, cwd: Path, sha: str) -> str | None:
        parents = self._commits[self._require(sha)].parents
        return parents[0] if parents else None

    def first_commit_not_in(self, cwd: Path, ref: str, exclude: str) -> str | None:
        tip = self._require(ref)
        if tip in self._ancestors(self._resolve(exclude)):
            return None
        return tip

    def list_commits(self, cwd: Path, base: str, head: str) -> list[CommitInfo]:
        excluded = self._ancestors(self._resolve(base))
        result: list[CommitInfo] = []
        current: str | None = self._require(head)
        while current is not None and current not in excluded:
            commit = self._commits[current]
            result.append(CommitInfo(sha=commit.sha, message=commit.message))
            current = commit.parents[0] if commit.parents else None
        result.reverse()
        return result

    def merge_base(self, cwd: Path, ref_a: str, ref_b: str) -> str | None:
        a = self._resolve(ref_a)
        b_ancestors = self._ancestors(self._resolve(ref_b))
        queue = [a] if a is not None else []
        while queue:
            current = queue.pop(0)
            if current in b_ancestors:
                return current
            queue.extend(self._commits[current].parents)
        return None

    def show_file(self, cwd: Path, ref: str, path: str) -> str | None:
        sha = self._resolve(ref)
        if sha is None:
            return None
        return self._tree_of(sha).get(path)

    def list_changed_files(self, cwd: Path, ref_a: str, ref_b: str) -> list[str]:
        tree_a = self._tree_of(self._require(ref_a))
        tree_b = self._tree_of(self._require(ref_b))
        return sorted(
            path for path in set(tree_a) | set(tree_b) if tree_a.get(path) != tree_b.get(path)
        )

    # ------------------------------------------------------------------
    # Working tree
    # ------------------------------------------------------------------

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        return self._is_dirty()

    def list_conflicted_files(self, cwd: Path) -> list[str]:
        return sorted(self._conflicts)

    def stage_all(self, cwd: Path) -> None:
        self._conflicts = {}

    def stage_paths(self, cwd: Path, paths: list[str]) -> None:
        for path in paths:
            if path not in self._conflicts:
                continue
            incoming = self._conflicts.pop(path)
            if incoming is None:
                self._working_tree.pop(path, None)
            else:
                self._working_tree[path] = incoming

    def checkout_branch(self, cwd: Path, branch: str) -> None:
        if branch not in self._branches:
            raise _fail(["checkout", branch], f"checkout {branch}", "pathspec did not match")
        if self._is_dirty():
            raise _fail(
                ["checkout", branch], f"checkout {branch}", "local changes would be overwritten"
            )
        self._current_branch = branch
        self._working_tree = dict(self._head_tree())

    def create_branch(self, cwd: Path, branch: str, start_point: str) -> None:
        if branch in self._branches:
            raise _fail(["branch", branch], f"create branch {branch}", "already exists")
        self._branches[branch] = self._require(start_point)

    def delete_branch(self, cwd: Path, branch: str) -> None:
        if branch not in self._branches:
            raise _fail(["branch", "-D", branch], f"delete branch {branch}", "not found")
        if branch == self._current_branch:
            raise _fail(["branch", "-D", branch], f"delete branch {branch}", "checked out")
        del self._branches[branch]
        self._deleted_branches.append(branch)

    def force_branch(self, cwd: Path, branch: str, ref: str) -> None:
        if branch == self._current_branch:
            raise _fail(["branch", "-f", branch, ref], f"move branch {branch}", "checked out")
        self._branches[branch] = self._require(ref)

    def reset_hard(self, cwd: Path, ref: str) -> None:
        target = self._require(ref)
        self._clear_operation_state()
        self._advance_head(target)

    # ------------------------------------------------------------------
    # Stash
    # ------------------------------------------------------------------

    def stash_push(self, cwd: Path, message: str) -> None:
        branch = self._current_branch or "(no branch)"
        self._stashes.insert(
            0,
            _StashEntry(
                message=message,
                branch=branch,
                base=dict(self._head_tree()),
                tree=dict(self._working_tree),
            ),
        )
        self._stash_pushes.append(message)
        self._working_tree = dict(self._head_tree())

    def list_stashes(self, cwd: Path) -> list[str]:
        return [
            f"stash@{{{index}}}: On {entry.branch}: {entry.message}"
            for index, entry in enumerate(self._stashes)
        ]

    def stash_pop(self, cwd: Path, index: int) -> None:
        if index >= len(self._stashes):
            raise _fail(["stash", "pop"], f"pop stash@{{{index}}}", "no such stash")
        entry = self._stashes[index]
        # Replays the stashed diff; a path also changed since the stash keeps the stash entry
        merged, conflicts = self._three_way(entry.base, self._working_tree, entry.tree)
        if conflicts:
            raise _fail(
                ["stash", "pop"], f"pop stash@{{{index}}}", "local changes would be overwritten"
            )
        del self._stashes[index]
        self._working_tree = merged

    # ------------------------------------------------------------------
    # Commit creation
    # ------------------------------------------------------------------

    def cherry_pick(self, cwd: Path, sha: str) -> bool:
        self._cherry_picks.append(sha)
        if self._is_dirty():
            return False
        target = self._require(sha)
        conflicts = self._apply_commit(target)
        if conflicts or self._working_tree == self._head_tree():
            self._cherry_pick_head = target
            return False
        head = self.head_sha
        parents = (head,) if head is not None else ()
        new_sha = self._new_commit(parents, self._commits[target].message, dict(self._working_tree))
        self._advance_head(new_sha)
        return True

    def cherry_pick_no_commit(self, cwd: Path, sha: str) -> bool:
        conflicts = self._apply_commit(self._require(sha))
        return not conflicts

    def is_cherry_pick_in_progress(self, cwd: Path) -> bool:
        return self._cherry_pick_head is not None

    def cherry_pick_abort(self, cwd: Path) -> None:
        if self._cherry_pick_head is None:
            raise _fail(
                ["cherry-pick", "--abort"], "abort cherry-pick", "no cherry-pick in progress"
            )
        self._clear_operation_state()
        self._working_tree = dict(self._head_tree())

    def merge_squash(self, cwd: Path, ref: str) -> bool:
        source = self._require(ref)
        base = self.merge_base(cwd, "HEAD", source)
        merged, conflicts = self._three_way(
            self._tree_of(base), self._working_tree, self._tree_of(source)
        )
        self._working_tree = merged
        self._conflicts = conflicts
        return not conflicts

    def commit(self, cwd: Path, message: str) -> None:
        if self._conflicts:
            raise _fail(["commit", "-m", message], "commit changes", "unmerged files")
        if self._working_tree == self._head_tree():
            raise _fail(["commit", "-m", message], "commit changes", "nothing to commit")
        head = self.head_sha
        parents = (head,) if head is not None else ()
        new_sha = self._new_commit(parents, message, dict(self._working_tree))
        self._clear_operation_state()
        self._advance_head(new_sha)

    def amend_commit_message(self, cwd: Path, message: str) -> None:
        head = self._require("HEAD")
        commit = self._commits[head]
        new_sha = self._new_commit(commit.parents, message, dict(commit.tree))
        self._advance_head(new_sha)

    # ------------------------------------------------------------------
    # Remotes and tags
    # ------------------------------------------------------------------

    def list_remotes(self, cwd: Path) -> dict[str, str]:
        return dict(self._remotes)

    def add_remote(self, cwd: Path, name: str, url: str) -> None:
        if name in self._remotes:
            raise _fail(["remote", "add", name, url], f"add remote {name}", "already exists")
        self._remotes[name] = url
        self._added_remotes.append((name, url))

    def remove_remote(self, cwd: Path, name: str) -> None:
        if name not in self._remotes:
            raise _fail(["remote", "remove", name], f"remove remote {name}", "no such remote")
        del self._remotes[name]
        self._removed_remotes.append(name)
        prefix = f"{name}/"
        for ref in [ref for ref in self._remote_branches if ref.startswith(prefix)]:
            del self._remote_branches[ref]

    def fetch(self, cwd: Path, remote: str, *, prune: bool = False) -> None:
        if remote in self._fetch_failures:
            raise _fail(["fetch", remote], f"fetch {remote}", "could not read from remote")
        self._fetched_remotes.append(remote)

    def fetch_all_tags(self, cwd: Path) -> None:
        self._tag_fetches += 1
        self._tags.update(self._remote_tags)

    def list_remote_branches(self, cwd: Path, remote: str) -> list[str]:
        prefix = f"{remote}/"
        return sorted(ref for ref in self._remote_branches if ref.startswith(prefix))

    def list_tags(self, cwd: Path, pattern: str) -> list[str]:
        return sorted(tag for tag in self._tags if fnmatch.fnmatchcase(tag, pattern))

    def create_tag(self, cwd: Path, name: str, message: str) -> None:
        if name in self._tags:
            raise _fail(["tag", "-a", name], f"create tag {name}", "already exists")
        self._tags[name] = self._require("HEAD")
        self._created_tags.append(name)

    def push(self, cwd: Path, remote: str, refspec: str, *, force: bool = False) -> None:
        if remote in self._push_failures:
            raise _fail(["push", remote, refspec], f"push {refspec} to {remote}", "rejected")
        self._pushes.append(PushRecord(remote=remote, refspec=refspec, force=force))
        if refspec in self._branches:
            self._remote_branches[f"{remote}/{refspec}"] = self._branches[refspec]

    # ------------------------------------------------------------------
    # Repository-scoped configuration
    # ------------------------------------------------------------------

    def get_config(self, cwd: Path, key: str) -> str | None:
        return self._config.get(key)

    def set_config(self, cwd: Path, key: str, value: str) -> None:
        self._config[key] = value

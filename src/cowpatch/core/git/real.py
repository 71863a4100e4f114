"""Production Git implementation.

Every call is routed through cowpatch.core.subprocess: run_git for commands
whose failure is an error, query_git for queries and for commands whose failure
the caller treats as an outcome.
"""

from pathlib import Path

from cowpatch.core.constants import COMMIT_SEPARATOR
from cowpatch.core.git.abc import CommitInfo, Git
from cowpatch.core.subprocess import query_git, run_git

# ============================================================================
# Production Implementation
# ============================================================================


class RealGit(Git):
    """Production implementation backed by the git binary."""

    def get_repository_root(self, cwd: Path) -> Path | None:
        result = query_git(["rev-parse", "--show-toplevel"], cwd)
        if not result.ok or not result.stdout:
            return None
        return Path(result.stdout)

    def get_git_common_dir(self, cwd: Path) -> Path:
        output = run_git(["rev-parse", "--git-common-dir"], "locate git directory", cwd)
        common_dir = Path(output)
        if not common_dir.is_absolute():
            common_dir = cwd / common_dir
        return common_dir.resolve()

    def get_current_branch(self, cwd: Path) -> str | None:
        result = query_git(["branch", "--show-current"], cwd)
        if not result.ok or not result.stdout:
            return None
        return result.stdout

    def list_local_branches(self, cwd: Path) -> list[str]:
        output = run_git(
            ["for-each-ref", "--format=%(refname:short)", "refs/heads/"],
            "list local branches",
            cwd,
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    def branch_exists(self, cwd: Path, branch: str) -> bool:
        result = query_git(["show-ref", "--verify", "--quiet", f"refs/heads/{branch}"], cwd)
        return result.ok

    def resolve_ref(self, cwd: Path, ref: str) -> str | None:
        result = query_git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"], cwd)
        if not result.ok or not result.stdout:
            return None
        return result.stdout

    def get_tree_hash(self, cwd: Path, ref: str) -> str:
        return run_git(["rev-parse", f"{ref}^{{tree}}"], f"resolve tree of {ref}", cwd)

    def get_commit_message(self, cwd: Path, ref: str) -> str:
        return run_git(
            ["log", "-1", "--format=%B", ref], f"get commit message for {ref}", cwd
        )

    def get_first_parent(self, cwd: Path, sha: str) -> str | None:
        output = run_git(
            ["rev-list", "--parents", "-n", "1", sha], f"get parents of {sha}", cwd
        )
        parts = output.split()
        if len(parts) < 2:
            return None
        return parts[1]

    def first_commit_not_in(self, cwd: Path, ref: str, exclude: str) -> str | None:
        output = run_git(
            ["rev-list", "-n", "1", ref, f"^{exclude}"],
            f"find commits on {ref} missing from {exclude}",
            cwd,
        )
        return output or None

    def list_commits(self, cwd: Path, base: str, head: str) -> list[CommitInfo]:
        output = run_git(
            ["log", "--reverse", f"--format=%H%n%B%n{COMMIT_SEPARATOR}", f"{base}..{head}"],
            f"list commits between {base} and {head}",
            cwd,
        )
        commits: list[CommitInfo] = []
        for chunk in output.split(COMMIT_SEPARATOR):
            chunk = chunk.strip()
            if not chunk:
                continue
            sha, _, message = chunk.partition("\n")
            commits.append(CommitInfo(sha=sha.strip(), message=message.strip()))
        return commits

    def merge_base(self, cwd: Path, ref_a: str, ref_b: str) -> str | None:
        result = query_git(["merge-base", ref_a, ref_b], cwd)
        if not result.ok or not result.stdout:
            return None
        return result.stdout

    def show_file(self, cwd: Path, ref: str, path: str) -> str | None:
        result = query_git(["show", f"{ref}:{path}"], cwd)
        if not result.ok:
            return None
        return result.stdout

    def list_changed_files(self, cwd: Path, ref_a: str, ref_b: str) -> list[str]:
        output = run_git(
            ["diff", "--name-only", ref_a, ref_b], f"diff {ref_a} and {ref_b}", cwd
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    def has_uncommitted_changes(self, cwd: Path) -> bool:
        output = run_git(["status", "--porcelain"], "check git status", cwd)
        return bool(output)

    def list_conflicted_files(self, cwd: Path) -> list[str]:
        output = run_git(
            ["diff", "--name-only", "--diff-filter=U"], "list conflicted files", cwd
        )
        return [line.strip() for line in output.splitlines() if line.strip()]

    def stage_all(self, cwd: Path) -> None:
        run_git(["add", "-A"], "stage changes", cwd)

    def stage_paths(self, cwd: Path, paths: list[str]) -> None:
        run_git(["add", "-A", "--", *paths], f"stage {', '.join(paths)}", cwd)

    def checkout_branch(self, cwd: Path, branch: str) -> None:
        run_git(["checkout", branch], f"checkout {branch}", cwd)

    def create_branch(self, cwd: Path, branch: str, start_point: str) -> None:
        run_git(["branch", branch, start_point], f"create branch {branch}", cwd)

    def delete_branch(self, cwd: Path, branch: str) -> None:
        run_git(["branch", "-D", branch], f"delete branch {branch}", cwd)

    def force_branch(self, cwd: Path, branch: str, ref: str) -> None:
        run_git(["branch", "-f", branch, ref], f"move branch {branch} to {ref}", cwd)

    def reset_hard(self, cwd: Path, ref: str) -> None:
        run_git(["reset", "--hard", ref], f"reset to {ref}", cwd)

    def stash_push(self, cwd: Path, message: str) -> None:
        run_git(
            ["stash", "push", "--include-untracked", "-m", message], "stash changes", cwd
        )

    def list_stashes(self, cwd: Path) -> list[str]:
        output = run_git(["stash", "list"], "list stashes", cwd)
        return [line for line in output.splitlines() if line.strip()]

    def stash_pop(self, cwd: Path, index: int) -> None:
        run_git(["stash", "pop", f"stash@{{{index}}}"], f"pop stash@{{{index}}}", cwd)

    def cherry_pick(self, cwd: Path, sha: str) -> bool:
        return query_git(["cherry-pick", sha], cwd).ok

    def cherry_pick_no_commit(self, cwd: Path, sha: str) -> bool:
        return query_git(["cherry-pick", "-n", sha], cwd).ok

    def is_cherry_pick_in_progress(self, cwd: Path) -> bool:
        return query_git(["rev-parse", "--verify", "--quiet", "CHERRY_PICK_HEAD"], cwd).ok

    def cherry_pick_abort(self, cwd: Path) -> None:
        run_git(["cherry-pick", "--abort"], "abort cherry-pick", cwd)

    def merge_squash(self, cwd: Path, ref: str) -> bool:
        return query_git(["merge", "--squash", ref], cwd).ok

    def commit(self, cwd: Path, message: str) -> None:
        run_git(["commit", "-m", message], "commit changes", cwd)

    def amend_commit_message(self, cwd: Path, message: str) -> None:
        run_git(["commit", "--amend", "-m", message], "amend commit message", cwd)

    def list_remotes(self, cwd: Path) -> dict[str, str]:
        output = run_git(["remote", "-v"], "list remotes", cwd)
        remotes: dict[str, str] = {}
        for line in output.splitlines():
            parts = line.split()
            if len(parts) >= 3 and parts[2] == "(fetch)":
                remotes[parts[0]] = parts[1]
        return remotes

    def add_remote(self, cwd: Path, name: str, url: str) -> None:
        run_git(["remote", "add", name, url], f"add remote {name}", cwd)

    def remove_remote(self, cwd: Path, name: str) -> None:
        run_git(["remote", "remove", name], f"remove remote {name}", cwd)

    def fetch(self, cwd: Path, remote: str, *, prune: bool = False) -> None:
        args = ["fetch", remote]
        if prune:
            args.append("--prune")
        run_git(args, f"fetch {remote}", cwd)

    def fetch_all_tags(self, cwd: Path) -> None:
        run_git(["fetch", "--all", "--tags"], "fetch tags", cwd)

    def list_remote_branches(self, cwd: Path, remote: str) -> list[str]:
        output = run_git(
            ["for-each-ref", "--format=%(refname:short)", f"refs/remotes/{remote}/"],
            f"list branches of {remote}",
            cwd,
        )
        branches: list[str] = []
        for line in output.splitlines():
            name = line.strip()
            # Symbolic refs/remotes/<remote>/HEAD shortens to "<remote>" or "<remote>/HEAD"
            if "/" not in name or name.endswith("/HEAD"):
                continue
            branches.append(name)
        return branches

    def list_tags(self, cwd: Path, pattern: str) -> list[str]:
        output = run_git(["tag", "-l", pattern], "list tags", cwd)
        return [line.strip() for line in output.splitlines() if line.strip()]

    def create_tag(self, cwd: Path, name: str, message: str) -> None:
        run_git(["tag", "-a", name, "-m", message], f"create tag {name}", cwd)

    def push(self, cwd: Path, remote: str, refspec: str, *, force: bool = False) -> None:
        args = ["push"]
        if force:
            args.append("-f")
        args.extend([remote, refspec])
        run_git(args, f"push {refspec} to {remote}", cwd)

    def get_config(self, cwd: Path, key: str) -> str | None:
        result = query_git(["config", "--get", key], cwd)
        if not result.ok or not result.stdout:
            return None
        return result.stdout

    def set_config(self, cwd: Path, key: str, value: str) -> None:
        run_git(["config", key, value], f"set git config {key}", cwd)

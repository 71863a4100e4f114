import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.dev_branches import (
    BranchUpdateResult,
    update_all_branches,
    update_branch,
)
from cowpatch.core.errors import CowpatchError


def _report(result: BranchUpdateResult) -> None:
    styled = click.style(result.branch, fg="cyan", bold=True)
    if result.replayed_commits == 0 and not result.changed:
        user_output(f"{styled} is up to date with {result.upstream}")
    else:
        user_output(
            click.style("✓ ", fg="green")
            + f"Updated {styled} from {result.upstream} "
            + f"({result.replayed_commits} commit(s) replayed)"
        )
    if result.release is not None:
        user_output(
            f"  released {result.release.patch_name} v{result.release.version} "
            f"to {click.style(result.release.repository, fg='yellow')}"
        )


@click.command("update-branch")
@click.argument("branch", required=False)
@click.option("--auto-release", is_flag=True, help="Release the branch if the update changed it.")
@click.pass_obj
def update_branch_cmd(ctx: CowpatchContext, branch: str | None, auto_release: bool) -> None:
    """Rebase BRANCH (default: current branch) onto the upstream base branch."""
    result = Ensure.succeeds(
        lambda: update_branch(ctx, branch, auto_release=auto_release),
        f"Failed to update {branch or 'the current branch'}",
        CowpatchError,
    )
    _report(result)


@click.command("update-all")
@click.option("--auto-release", is_flag=True, help="Release every branch the update changed.")
@click.pass_obj
def update_all_cmd(ctx: CowpatchContext, auto_release: bool) -> None:
    """Rebase every local feature branch onto the upstream base branch.

    Trunks, `cow_*` release branches and scratch branches are skipped. A
    branch that fails is rolled back and the others are still updated.
    """
    result = Ensure.succeeds(
        lambda: update_all_branches(ctx, auto_release=auto_release),
        "Failed to update branches",
        CowpatchError,
    )
    if not result.updated and not result.failures:
        user_output("No feature branches to update")
        return
    for update in result.updated:
        _report(update)
    for failure in result.failures:
        user_output(click.style("✗ ", fg="red") + f"{failure.branch}: {failure.error}")
    Ensure.invariant(not result.failures, f"{len(result.failures)} branch(es) could not be updated")

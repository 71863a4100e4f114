import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.release import release_patch


@click.command("release")
@click.argument("branch", required=False)
@click.option("--repository", "-r", help="Repository to publish to.")
@click.option("--name", "-n", "patch_name", help="Patch name (defaults to the branch's patch).")
@click.pass_obj
def release_cmd(
    ctx: CowpatchContext, branch: str | None, repository: str | None, patch_name: str | None
) -> None:
    """Publish BRANCH (default: current branch) as the next version of a patch.

    The branch is squashed onto the base branch as one commit on `cow_<name>`,
    tagged, and pushed with the tag to the repository.
    """
    result = Ensure.succeeds(
        lambda: release_patch(ctx, branch, patch_name, repository),
        "Failed to release",
        CowpatchError,
    )
    user_output(
        click.style("✓ ", fg="green")
        + f"Released {click.style(result.patch_name, fg='cyan', bold=True)} "
        + f"v{result.version} to {click.style(result.repository, fg='yellow')}"
    )
    user_output(f"  branch: {result.branch}")
    user_output(f"  tag:    {result.tag}")
    if result.backup_branch is not None:
        user_output(f"  backup: {result.backup_branch}")

import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.dev_branches import init_patch_branch
from cowpatch.core.errors import CowpatchError


@click.command("init")
@click.argument("patch")
@click.option("--repository", "-r", help="Repository the patch will be released to.")
@click.option("--branch", "-b", help="Development branch name (defaults to the patch name).")
@click.pass_obj
def init_cmd(ctx: CowpatchContext, patch: str, repository: str | None, branch: str | None) -> None:
    """Start developing PATCH on a new branch cut from the base branch."""
    result = Ensure.succeeds(
        lambda: init_patch_branch(ctx, patch, repository=repository, branch=branch),
        f"Failed to initialize {patch}",
        CowpatchError,
    )
    verb = "Created" if result.created else "Checked out"
    user_output(
        click.style("✓ ", fg="green")
        + f"{verb} {click.style(result.branch, fg='cyan', bold=True)} "
        + f"for {result.patch_name}"
    )
    user_output(f"  repository: {click.style(result.repository, fg='yellow')}")
    user_output(f"  release with: cowpatch release {result.branch}")

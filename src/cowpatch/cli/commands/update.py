import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.patch_engine import update_patch


@click.command("update")
@click.argument("name")
@click.pass_obj
def update_cmd(ctx: CowpatchContext, name: str) -> None:
    """Re-apply an applied patch from the latest commit of its repository."""
    result = Ensure.succeeds(
        lambda: update_patch(ctx, name), f"Failed to update {name}", CowpatchError
    )
    user_output(
        click.style("✓ ", fg="green") + f"Updated {click.style(result.name, fg='cyan', bold=True)}"
    )

import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.repositories import remove_repository


@click.command("remove")
@click.argument("name")
@click.pass_obj
def remove_repository_cmd(ctx: CowpatchContext, name: str) -> None:
    """Remove a patch repository."""
    Ensure.succeeds(
        lambda: remove_repository(ctx, name), "Failed to remove repository", CowpatchError
    )
    user_output(click.style("✓ ", fg="green") + f"Removed {click.style(name, fg='cyan')}")

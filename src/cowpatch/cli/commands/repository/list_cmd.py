import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.repositories import list_repositories


@click.command("list")
@click.pass_obj
def list_repositories_cmd(ctx: CowpatchContext) -> None:
    """List configured repositories."""
    repositories = Ensure.succeeds(
        lambda: list_repositories(ctx), "Failed to list repositories", CowpatchError
    )
    if not repositories:
        user_output("No repositories configured")
        return

    width = max(len(repository.name) for repository in repositories)
    for repository in repositories:
        name = click.style(repository.name.ljust(width), fg="cyan")
        marker = click.style(" ✓ verified", fg="green") if repository.verified else ""
        user_output(f"{name}  {repository.url}{marker}")

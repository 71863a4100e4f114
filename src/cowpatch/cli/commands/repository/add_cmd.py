import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.repositories import add_repository


@click.command("add")
@click.argument("name_or_url")
@click.argument("url", required=False)
@click.pass_obj
def add_repository_cmd(ctx: CowpatchContext, name_or_url: str, url: str | None) -> None:
    """Add a patch repository.

    Pass `NAME URL`, or just `URL` to derive the name from it
    (`https://github.com/alice/patches` becomes `alice`).
    """
    repository = Ensure.succeeds(
        lambda: add_repository(ctx, name_or_url, url),
        "Failed to add repository",
        CowpatchError,
    )
    suffix = click.style(" (verified)", fg="green") if repository.verified else ""
    user_output(
        click.style("✓ ", fg="green")
        + f"Added {click.style(repository.name, fg='cyan', bold=True)} -> {repository.url}"
        + suffix
    )

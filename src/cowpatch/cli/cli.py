import logging
import os

import click

from cowpatch.cli.commands.apply import apply_cmd
from cowpatch.cli.commands.config import config_group
from cowpatch.cli.commands.init import init_cmd
from cowpatch.cli.commands.list_cmd import list_cmd
from cowpatch.cli.commands.release import release_cmd
from cowpatch.cli.commands.remove import remove_cmd
from cowpatch.cli.commands.repository import repository_group
from cowpatch.cli.commands.search import search_cmd
from cowpatch.cli.commands.sync import reset_cmd, sync_cmd
from cowpatch.cli.commands.update import update_cmd
from cowpatch.cli.commands.update_branch import update_all_cmd, update_branch_cmd
from cowpatch.cli.commands.versions import versions_cmd
from cowpatch.cli.ensure import Ensure
from cowpatch.core.context import create_context
from cowpatch.core.errors import CowpatchError

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="cowpatch")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Apply, remove and release versioned patches on git branches."""
    if os.getenv("COWPATCH_DEBUG"):
        logging.basicConfig(
            level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s"
        )
    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = Ensure.succeeds(create_context, "Failed to start", CowpatchError)


# Register all commands
cli.add_command(apply_cmd)
cli.add_command(config_group)
cli.add_command(init_cmd)
cli.add_command(list_cmd)
cli.add_command(release_cmd)
cli.add_command(remove_cmd)
cli.add_command(repository_group)
cli.add_command(reset_cmd)
cli.add_command(search_cmd)
cli.add_command(sync_cmd)
cli.add_command(update_cmd)
cli.add_command(update_all_cmd)
cli.add_command(update_branch_cmd)
cli.add_command(versions_cmd)


def main() -> None:
    """CLI entry point used by the `cowpatch` console script."""
    cli()

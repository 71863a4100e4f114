"""Patch repository management commands."""

import click

from cowpatch.cli.commands.repository.add_cmd import add_repository_cmd
from cowpatch.cli.commands.repository.list_cmd import list_repositories_cmd
from cowpatch.cli.commands.repository.remove_cmd import remove_repository_cmd
from cowpatch.cli.commands.repository.verify_cmd import verify_origin_cmd


@click.group("repository")
def repository_group() -> None:
    """Manage the git remotes patches are published to."""
    pass


# Register subcommands
repository_group.add_command(add_repository_cmd)
repository_group.add_command(list_repositories_cmd)
repository_group.add_command(remove_repository_cmd)
repository_group.add_command(verify_origin_cmd)

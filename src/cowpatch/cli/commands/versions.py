import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import machine_output, user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.patch_names import namespaced_name, parse_patch_name
from cowpatch.core.versions import list_versions


@click.command("versions")
@click.argument("name")
@click.pass_obj
def versions_cmd(ctx: CowpatchContext, name: str) -> None:
    """List released versions of a patch, newest first.

    NAME should be namespaced (`repo/patch`); a bare name is looked up in the
    default repository.
    """
    parsed = parse_patch_name(name)
    full_name = namespaced_name(
        parsed.repo_name or ctx.global_config.default_remote, parsed.patch_name
    )

    repo_root = Ensure.succeeds(ctx.require_repo_root, "Cannot list versions", CowpatchError)
    versions = Ensure.succeeds(
        lambda: list_versions(ctx.git, repo_root, full_name),
        f"Failed to list versions of {full_name}",
        CowpatchError,
    )
    if not versions:
        user_output(f"No released versions of {click.style(full_name, fg='cyan')}")
        return
    for version in versions:
        machine_output(version)

import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.patch_engine import remove_patch


@click.command("remove")
@click.argument("names", nargs=-1, required=True)
@click.pass_obj
def remove_cmd(ctx: CowpatchContext, names: tuple[str, ...]) -> None:
    """Remove applied patches from the current branch.

    The branch is rebuilt from the base branch without each patch, so
    commits made after it are kept.
    """
    for name in names:
        result = Ensure.succeeds(
            lambda n=name: remove_patch(ctx, n),
            f"Failed to remove {name}",
            CowpatchError,
        )
        user_output(
            click.style("✓ ", fg="green")
            + f"Removed {click.style(result.name, fg='cyan', bold=True)}"
        )
        if result.reconciled_paths:
            user_output(f"  Reconciled {', '.join(result.reconciled_paths)}")

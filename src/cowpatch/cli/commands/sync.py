import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.patch_engine import reset_patches, sync_patches


@click.command("sync")
@click.pass_obj
def sync_cmd(ctx: CowpatchContext) -> None:
    """Rebuild the current branch on the latest base with the same patches.

    Versioned patches come back at the version they were applied at. Patches
    that no longer apply are dropped and listed; the command then exits 1.
    """
    result = Ensure.succeeds(lambda: sync_patches(ctx), "Failed to sync", CowpatchError)
    user_output(
        click.style("✓ ", fg="green")
        + f"Reset {click.style(result.branch, fg='cyan', bold=True)} "
        + f"to {result.base_branch} ({result.base_tip[:7]})"
    )
    for name in result.reapplied:
        user_output(f"  re-applied {click.style(name, fg='cyan')}")
    for failure in result.failures:
        user_output(click.style("  ✗ ", fg="red") + f"{failure.name}: {failure.error}")
    Ensure.invariant(
        not result.failures, f"{len(result.failures)} patch(es) could not be re-applied"
    )


@click.command("reset")
@click.pass_obj
def reset_cmd(ctx: CowpatchContext) -> None:
    """Drop every commit on the current branch and move it to the latest base.

    Patches and your own commits are discarded. Uncommitted changes are kept.
    """
    result = Ensure.succeeds(lambda: reset_patches(ctx), "Failed to reset", CowpatchError)
    user_output(
        click.style("✓ ", fg="green")
        + f"Reset {click.style(result.branch, fg='cyan', bold=True)} "
        + f"to {result.base_branch} ({result.base_tip[:7]})"
    )
    if result.dropped:
        user_output(f"  dropped {', '.join(result.dropped)}")
    if result.previous_head is not None:
        user_output(f"  previous head: {result.previous_head}")

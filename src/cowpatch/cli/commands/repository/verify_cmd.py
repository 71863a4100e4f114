import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.repositories import verify_origin


@click.command("verify-origin")
@click.argument("url", required=False)
@click.pass_obj
def verify_origin_cmd(ctx: CowpatchContext, url: str | None) -> None:
    """Check that origin points at URL (default: the configured canonical_url)."""
    target = Ensure.not_none(
        url or ctx.global_config.canonical_url,
        "No URL given and canonical_url is not configured",
    )
    Ensure.succeeds(lambda: verify_origin(ctx, target), "Origin check failed", CowpatchError)
    user_output(click.style("✓ ", fg="green") + f"origin points at {target}")

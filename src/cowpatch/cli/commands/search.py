import click
from rich.console import Console
from rich.table import Table

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.json_output import emit_json
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.search import search_patches


@click.command("search")
@click.argument("term", required=False, default="")
@click.option("--json", "as_json", is_flag=True, help="Output JSON to stdout.")
@click.pass_obj
def search_cmd(ctx: CowpatchContext, term: str, as_json: bool) -> None:
    """Search published patches in every registered repository."""
    results = Ensure.succeeds(
        lambda: search_patches(ctx, term), "Failed to search patches", CowpatchError
    )
    if as_json:
        emit_json(
            [
                {"repository": p.repository, "name": p.name, "verified": p.verified}
                for p in results
            ]
        )
        return

    if not results:
        user_output("No patches found")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("patch", style="cyan", no_wrap=True)
    table.add_column("repository", no_wrap=True)
    table.add_column("verified", no_wrap=True)
    for patch in results:
        verified = "[green]✓[/green]" if patch.verified else "[dim]-[/dim]"
        table.add_row(patch.namespaced_name, patch.repository, verified)

    console = Console(stderr=True, width=200, force_terminal=True)
    console.print(table)

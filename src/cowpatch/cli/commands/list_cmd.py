import click
from rich.console import Console
from rich.table import Table

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.json_output import AppliedPatchJson, PatchListingJson, emit_json
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.patch_engine import PatchListing, list_patches


def _short(sha: str) -> str:
    return sha[:7] if len(sha) >= 7 else sha


def _to_json(listing: PatchListing) -> PatchListingJson:
    return PatchListingJson(
        branch=listing.branch,
        base_branch=listing.base_branch,
        base_remote=listing.base_remote,
        base_tip=listing.base_tip,
        commits_behind_base=listing.commits_behind_base,
        patches=[
            AppliedPatchJson(
                name=item.applied.name,
                version=item.applied.record.version,
                commit=item.applied.commit_sha,
                original_commit=item.applied.record.original_commit_hash,
                mod_base=item.applied.record.mod_base_hash,
                current_base=item.applied.record.current_base_hash,
                base_changed=item.base_changed,
                latest_version=item.latest_version,
            )
            for item in listing.patches
        ],
    )


def _render(listing: PatchListing, show_versions: bool) -> None:
    base = listing.base_branch
    if listing.base_remote is not None:
        base = f"{listing.base_remote}/{listing.base_branch}"
    user_output(
        f"On {click.style(listing.branch, fg='yellow')} "
        f"(base: {click.style(base, fg='yellow')})"
    )
    if listing.commits_behind_base:
        user_output(
            click.style("⚠ ", fg="yellow")
            + f"{listing.commits_behind_base} commit(s) behind {base}"
        )

    if not listing.patches:
        user_output("No patches applied")
        return

    table = Table(show_header=True, header_style="bold")
    table.add_column("patch", style="cyan", no_wrap=True)
    table.add_column("version", no_wrap=True)
    if show_versions:
        table.add_column("latest", no_wrap=True)
    table.add_column("commit", no_wrap=True)
    table.add_column("base", no_wrap=True)

    for item in listing.patches:
        record = item.applied.record
        version = record.version or "[dim]-[/dim]"
        base_cell = "[yellow]changed[/yellow]" if item.base_changed else "[green]current[/green]"
        row = [record.name, version]
        if show_versions:
            latest = item.latest_version
            if latest is None:
                row.append("[dim]-[/dim]")
            elif latest != record.version:
                row.append(f"[yellow]{latest}[/yellow]")
            else:
                row.append(latest)
        row.extend([_short(item.applied.commit_sha), base_cell])
        table.add_row(*row)

    # Output table to stderr (consistent with user_output convention)
    console = Console(stderr=True, width=200, force_terminal=True)
    console.print(table)


@click.command("list")
@click.option("--versions", "show_versions", is_flag=True, help="Show latest released versions.")
@click.option("--json", "as_json", is_flag=True, help="Output JSON to stdout.")
@click.pass_obj
def list_cmd(ctx: CowpatchContext, show_versions: bool, as_json: bool) -> None:
    """List patches applied to the current branch."""
    listing = Ensure.succeeds(
        lambda: list_patches(ctx, include_versions=show_versions),
        "Failed to list patches",
        CowpatchError,
    )
    if as_json:
        emit_json(_to_json(listing).model_dump(mode="json"))
        return
    _render(listing, show_versions)

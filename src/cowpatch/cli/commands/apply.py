import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.patch_engine import apply_patch
from cowpatch.core.patch_names import parse_patch_name


def _remote_for(ctx: CowpatchContext, name: str, remote: str | None) -> str:
    return remote or parse_patch_name(name).repo_name or ctx.global_config.default_remote


@click.command("apply")
@click.argument("names", nargs=-1, required=True)
@click.option("--remote", "-r", help="Repository to take the patches from.")
@click.pass_obj
def apply_cmd(ctx: CowpatchContext, names: tuple[str, ...], remote: str | None) -> None:
    """Apply one or more patches onto the current branch.

    NAMES may be bare (`my-patch`), prefixed (`cow_my-patch`) or namespaced
    (`repo/my-patch`). Each patch is applied as a single commit; a failure
    leaves the branch exactly as it was before that patch.
    """
    repo_root = Ensure.succeeds(ctx.require_repo_root, "Cannot apply", CowpatchError)

    fetched: set[str] = set()
    for name in names:
        remote_name = _remote_for(ctx, name, remote)
        if remote_name not in fetched and remote_name in ctx.git.list_remotes(repo_root):
            user_output(f"Fetching {click.style(remote_name, fg='cyan')}...")
            Ensure.succeeds(
                lambda r=remote_name: ctx.git.fetch(repo_root, r),
                f"Failed to fetch {remote_name}",
                CowpatchError,
            )
            fetched.add(remote_name)

        result = Ensure.succeeds(
            lambda n=name: apply_patch(ctx, n, remote),
            f"Failed to apply {name}",
            CowpatchError,
        )
        styled = click.style(result.name, fg="cyan", bold=True)
        if result.already_applied:
            user_output(f"{styled} is already applied")
        elif result.used_conflict_fallback:
            user_output(click.style("✓ ", fg="green") + f"Applied {styled} (lockfiles merged)")
        else:
            user_output(click.style("✓ ", fg="green") + f"Applied {styled}")

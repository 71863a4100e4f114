import click

from cowpatch.cli.ensure import Ensure
from cowpatch.cli.output import machine_output, user_output
from cowpatch.core.context import CowpatchContext
from cowpatch.core.errors import CowpatchError
from cowpatch.core.global_config import CONFIG_KEYS


@click.group("config")
def config_group() -> None:
    """Show or change global settings in ~/.cowpatch/config.toml."""
    pass


@config_group.command("list")
@click.pass_obj
def config_list(ctx: CowpatchContext) -> None:
    """Print every setting as key=value."""
    config = ctx.global_config
    for key in CONFIG_KEYS:
        value = getattr(config, key)
        machine_output(f"{key}={value if value is not None else ''}")


@config_group.command("get")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.pass_obj
def config_get(ctx: CowpatchContext, key: str) -> None:
    """Print one setting."""
    value = getattr(ctx.global_config, key)
    if value is not None:
        machine_output(value)


@config_group.command("set")
@click.argument("key", type=click.Choice(CONFIG_KEYS))
@click.argument("value")
@click.pass_obj
def config_set(ctx: CowpatchContext, key: str, value: str) -> None:
    """Change one setting."""
    updated = Ensure.succeeds(
        lambda: ctx.global_config.with_value(key, value),
        "Failed to update config",
        CowpatchError,
    )
    ctx.config_store.save(updated)
    user_output(f"Set {click.style(key, fg='cyan')} in {ctx.config_store.path()}")

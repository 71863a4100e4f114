"""Output routing for CLI commands.

user_output goes to stderr and carries everything meant for a person:
progress, tables, warnings and errors. machine_output goes to stdout and is
reserved for data a script may parse (JSON, bare names).
"""

from typing import Any

import click


def user_output(message: Any = "", nl: bool = True) -> None:
    """Write human-facing output to stderr."""
    click.echo(message, err=True, nl=nl)


def machine_output(message: Any = "", nl: bool = True) -> None:
    """Write machine-readable output to stdout."""
    click.echo(message, nl=nl)

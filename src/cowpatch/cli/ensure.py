"""CLI error handling utilities with styled output.

This module provides the Ensure class for asserting invariants in CLI commands
with consistent, user-friendly error messages. All errors use red "Error:" prefix
for visual consistency.
"""

from collections.abc import Callable
from typing import TypeVar

import click

from cowpatch.cli.output import user_output

T = TypeVar("T")


def _fail(error_message: str) -> None:
    user_output(click.style("Error: ", fg="red") + error_message)


class Ensure:
    """Helper class for asserting invariants with consistent error handling."""

    @staticmethod
    def invariant(condition: bool, error_message: str) -> None:
        """Ensure condition is true, otherwise output styled error and exit.

        Args:
            condition: Boolean condition to check
            error_message: Error message to display if condition is false.
                          "Error: " prefix will be added automatically in red.

        Raises:
            SystemExit: If condition is false (with exit code 1)
        """
        if not condition:
            _fail(error_message)
            raise SystemExit(1)

    @staticmethod
    def not_none(value: T | None, error_message: str) -> T:
        """Ensure value is not None, otherwise output styled error and exit.

        Takes `T | None` and returns `T`, so the type checker knows the value
        cannot be None after this call.

        Raises:
            SystemExit: If value is None (with exit code 1)
        """
        if value is None:
            _fail(error_message)
            raise SystemExit(1)
        return value

    @staticmethod
    def succeeds(
        operation: Callable[[], T],
        error_message: str,
        exception_type: type[Exception] = Exception,
    ) -> T:
        """Run operation, turning exception_type into a styled error and exit.

        The message shown is `error_message: <exception text>`. Other exception
        types propagate unchanged.

        Args:
            operation: Zero-argument callable to run
            error_message: Context for the failure
            exception_type: Exception class to convert

        Returns:
            Whatever operation returns

        Raises:
            SystemExit: If operation raises exception_type (with exit code 1),
                chained from the original exception
        """
        try:
            return operation()
        except exception_type as e:
            _fail(f"{error_message}: {e}")
            raise SystemExit(1) from e
